"""Live event API routes — operators push products, polls and contests.

Learn: One POST per event type. Each returns the exact payload that was
broadcast, so the operator UI can show what viewers received. The service
does all checks before any side effect, so an error response means nothing
was stored or sent.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from livecast.api.deps import event_service
from livecast.schemas.events import (
    ContestTrigger,
    PollTrigger,
    ProductTrigger,
    TriggerResponse,
)
from livecast.services.campaign_service import CampaignNotFoundError
from livecast.services.event_service import EventService, EventValidationError

router = APIRouter()


@router.post("/events/product", response_model=TriggerResponse)
async def trigger_product(body: ProductTrigger, svc: EventService = Depends(event_service)):
    """Show a product to viewers."""
    try:
        event = await svc.trigger_product(body)
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EventValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "event": event}


@router.post("/events/poll", response_model=TriggerResponse)
async def trigger_poll(body: PollTrigger, svc: EventService = Depends(event_service)):
    """Start a poll. ``options`` may be "A, B, C" or a list of option objects."""
    try:
        event = await svc.trigger_poll(body)
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EventValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "event": event}


@router.post("/events/contest", response_model=TriggerResponse)
async def trigger_contest(body: ContestTrigger, svc: EventService = Depends(event_service)):
    """Announce a contest."""
    try:
        event = await svc.trigger_contest(body)
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EventValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "event": event}


@router.get("/events")
async def list_events(
    campaign_id: Optional[int] = Query(None, alias="campaignId"),
    limit: int = Query(50, ge=1, le=500),
    svc: EventService = Depends(event_service),
):
    """Recent events, newest first: a campaign's log, or the global buffer."""
    try:
        return await svc.recent_events(campaign_id, limit=limit)
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
