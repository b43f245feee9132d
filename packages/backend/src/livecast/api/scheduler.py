"""Scheduler API route — run a scheduler pass on demand.

Learn: Same pass the background loop runs every interval. Useful after
editing a schedule, and when the loop is disabled (LIVECAST_SCHEDULER_ENABLED
=false) and an external cron drives the ticks instead.
"""

from fastapi import APIRouter, Depends

from livecast.api.deps import get_scheduler
from livecast.services.scheduler import ComponentScheduler

router = APIRouter()


@router.post("/scheduler/tick")
async def run_tick(scheduler: ComponentScheduler = Depends(get_scheduler)):
    """Apply every due activation/deactivation now and report what changed."""
    return await scheduler.tick()
