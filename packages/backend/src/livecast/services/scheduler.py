"""Component scheduler — time-driven activation of campaign components.

Learn: Every interval the scheduler walks all active campaigns and their
linked components. A link with a ``scheduled_time`` moves:

  inactive → active    when now >= scheduled_time (and the window hasn't closed)
  active   → inactive  when end_time is set and now >= end_time

A link found after its whole window has passed is left inactive rather
than switched on and straight back off. Each transition goes through
ComponentService.set_status, so the cross-campaign availability rule and
the viewer broadcast are the same as for a manual toggle.

Failures are contained: a bad campaign or link is logged and the tick moves
on; a bad tick is logged and the loop keeps its schedule.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import structlog

from livecast.clock import ensure_utc, utcnow
from livecast.realtime.broadcast import Broadcaster
from livecast.services.component_service import ComponentConflictError, ComponentService
from livecast.storage import CampaignComponent, Storage, is_campaign_active
from livecast.storage.base import LINK_ACTIVE, LINK_INACTIVE
from livecast.urls import BaseUrlResolver

logger = structlog.get_logger()


@dataclass
class TickSummary:
    """What one scheduler pass did."""
    campaigns: int = 0
    activated: list[dict] = field(default_factory=list)
    deactivated: list[dict] = field(default_factory=list)
    conflicts: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return {
            "campaigns": self.campaigns,
            "activated": self.activated,
            "deactivated": self.deactivated,
            "conflicts": self.conflicts,
            "errors": self.errors,
        }


def due_transition(link: CampaignComponent, now: datetime) -> Optional[str]:
    """The status a scheduled link should move to at ``now``, or None."""
    start = ensure_utc(link.scheduled_time)
    if start is None:
        return None
    end = ensure_utc(link.end_time)
    window_closed = end is not None and now >= end

    if link.status == LINK_INACTIVE and now >= start and not window_closed:
        return LINK_ACTIVE
    if link.status == LINK_ACTIVE and window_closed:
        return LINK_INACTIVE
    return None


class ComponentScheduler:
    """Background loop that applies due transitions every ``interval_seconds``.

    Learn: Runs as a task started from the FastAPI lifespan. ``stop()``
    interrupts the wait between ticks but never a tick in progress, so a
    pass over the campaigns is always completed once started.

    Usage:
        scheduler = ComponentScheduler(storage, broadcaster, resolver, 60)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        storage: Storage,
        broadcaster: Broadcaster,
        url_resolver: BaseUrlResolver,
        interval_seconds: float = 60.0,
    ):
        self.storage = storage
        self.broadcaster = broadcaster
        self.url_resolver = url_resolver
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._sleeping = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Begin ticking: one pass now, then one per interval. No-op if running."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("scheduler.started", interval_seconds=self.interval_seconds)

    def stop(self) -> None:
        """Stop ticking. No-op if already stopped."""
        if not self._running:
            return
        self._running = False
        if self._task is not None and self._sleeping:
            self._task.cancel()
        self._task = None
        logger.info("scheduler.stopped")

    def _is_current(self) -> bool:
        # A loop left over from before a stop/start cycle retires itself.
        return self._running and asyncio.current_task() is self._task

    async def _run_loop(self) -> None:
        while self._is_current():
            try:
                await self.tick()
            except Exception:
                logger.exception("scheduler.tick_failed")
            if not self._is_current():
                break
            self._sleeping = True
            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break
            finally:
                self._sleeping = False

    async def tick(self, now: Optional[datetime] = None) -> dict:
        """Run one pass over all active campaigns and return its summary."""
        now = ensure_utc(now) or utcnow()
        summary = TickSummary()
        service = ComponentService(
            self.storage, self.broadcaster, self.url_resolver.resolve()
        )

        for campaign in await self.storage.list_campaigns():
            if not is_campaign_active(campaign, now):
                continue
            summary.campaigns += 1
            try:
                links = await self.storage.list_campaign_components(campaign.id)
            except Exception:
                summary.errors += 1
                logger.exception("scheduler.campaign_failed", campaign_id=campaign.id)
                continue

            for link in links:
                await self._apply(service, link, now, summary)

        if summary.activated or summary.deactivated or summary.errors:
            logger.info(
                "scheduler.tick",
                campaigns=summary.campaigns,
                activated=len(summary.activated),
                deactivated=len(summary.deactivated),
                conflicts=summary.conflicts,
                errors=summary.errors,
            )
        return summary.as_dict()

    async def _apply(
        self,
        service: ComponentService,
        link: CampaignComponent,
        now: datetime,
        summary: TickSummary,
    ) -> None:
        target = due_transition(link, now)
        if target is None:
            return
        log = logger.bind(campaign_id=link.campaign_id, component_id=link.component_id)
        entry = {"campaignId": link.campaign_id, "componentId": link.component_id}

        try:
            await service.set_status(link.campaign_id, link.component_id, target)
        except ComponentConflictError as e:
            summary.conflicts += 1
            log.warning("scheduler.activation_conflict", holder_campaign_id=e.holder_campaign_id)
            return
        except Exception:
            summary.errors += 1
            log.exception("scheduler.transition_failed", target=target)
            return

        if target == LINK_ACTIVE:
            summary.activated.append(entry)
            log.info("scheduler.component_activated")
        else:
            summary.deactivated.append(entry)
            log.info("scheduler.component_deactivated")
