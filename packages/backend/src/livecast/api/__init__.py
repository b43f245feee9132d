"""API route aggregation.

All routers registered here get mounted in main.py under /api.
"""

from fastapi import APIRouter

from livecast.api.campaigns import router as campaigns_router
from livecast.api.components import router as components_router
from livecast.api.events import router as events_router
from livecast.api.health import router as health_router
from livecast.api.scheduler import router as scheduler_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(events_router, tags=["events"])
api_router.include_router(campaigns_router, tags=["campaigns", "scheduled-components"])
api_router.include_router(components_router, tags=["components"])
api_router.include_router(scheduler_router, tags=["scheduler"])
