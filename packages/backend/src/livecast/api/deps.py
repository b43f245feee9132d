"""Shared FastAPI dependencies.

Learn: Long-lived objects (storage, registry, broadcaster, scheduler) are
built once by create_app() and parked on ``app.state``. Routes reach them
through these small dependency functions, so a test can build an app
around any Storage and every route uses it.
"""

from fastapi import Depends, HTTPException, Request

from livecast.config import Settings
from livecast.realtime.broadcast import Broadcaster
from livecast.realtime.registry import ConnectionRegistry
from livecast.services.campaign_service import CampaignService
from livecast.services.component_service import ComponentConflictError, ComponentService
from livecast.services.event_service import EventService
from livecast.services.scheduler import ComponentScheduler
from livecast.storage import Storage


def get_config(request: Request) -> Settings:
    return request.app.state.config


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_scheduler(request: Request) -> ComponentScheduler:
    return request.app.state.scheduler


def get_base_url(request: Request) -> str:
    """This server's public base URL, for absolutizing asset paths."""
    return request.app.state.url_resolver.from_request(request)


def campaign_service(storage: Storage = Depends(get_storage)) -> CampaignService:
    return CampaignService(storage)


def component_service(
    storage: Storage = Depends(get_storage),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    base_url: str = Depends(get_base_url),
) -> ComponentService:
    return ComponentService(storage, broadcaster, base_url)


def event_service(
    request: Request,
    storage: Storage = Depends(get_storage),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    base_url: str = Depends(get_base_url),
) -> EventService:
    return EventService(storage, broadcaster, request.app.state.recent_events, base_url)


def conflict(e: ComponentConflictError) -> HTTPException:
    """409 that tells the operator which campaign holds the component."""
    return HTTPException(
        status_code=409,
        detail={"message": str(e), "conflictingCampaignId": e.holder_campaign_id},
    )
