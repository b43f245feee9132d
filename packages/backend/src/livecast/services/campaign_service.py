"""Campaign service — campaigns and their legacy scheduled components.

Learn: Thin business layer over Storage. Not-found conditions are raised as
exceptions here and mapped to 404 by the routes.
"""

from datetime import datetime
from typing import Optional

import structlog

from livecast.clock import ensure_utc
from livecast.storage import Campaign, ScheduledComponent, Storage

logger = structlog.get_logger()

# Fields that may not be cleared to null.
_REQUIRED_FIELDS = {"name"}

VALID_SCHEDULED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"sent", "cancelled"},
    "sent": set(),       # terminal
    "cancelled": set(),  # terminal
}


class CampaignNotFoundError(Exception):
    """Raised when a referenced campaign does not exist."""

    def __init__(self, campaign_id: int):
        self.campaign_id = campaign_id
        super().__init__(f"Campaign {campaign_id} not found")


class ScheduledComponentNotFoundError(Exception):
    """Raised when a scheduled component does not exist."""


class InvalidScheduleError(Exception):
    """Raised when an end time is not after its start time."""


class InvalidScheduledTransitionError(Exception):
    """Raised when a scheduled component status change is not allowed."""


class CampaignService:
    """Business logic for campaign management."""

    def __init__(self, storage: Storage):
        self.storage = storage

    # ─── Campaigns ──────────────────────────────────────

    async def create_campaign(self, name: str, **fields) -> Campaign:
        campaign = await self.storage.create_campaign(name, **fields)
        logger.info("campaign.created", campaign_id=campaign.id, name=campaign.name)
        return campaign

    async def list_campaigns(self) -> list[Campaign]:
        return await self.storage.list_campaigns()

    async def get_campaign(self, campaign_id: int) -> Campaign:
        campaign = await self.storage.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    async def update_campaign(self, campaign_id: int, changes: dict) -> Campaign:
        changes = {
            k: v for k, v in changes.items() if not (k in _REQUIRED_FIELDS and v is None)
        }
        campaign = await self.storage.update_campaign(campaign_id, changes)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)
        logger.info("campaign.updated", campaign_id=campaign_id, fields=sorted(changes))
        return campaign

    async def delete_campaign(self, campaign_id: int) -> None:
        if not await self.storage.delete_campaign(campaign_id):
            raise CampaignNotFoundError(campaign_id)
        logger.info("campaign.deleted", campaign_id=campaign_id)

    # ─── Scheduled components ───────────────────────────

    async def schedule_component(
        self,
        campaign_id: int,
        type: str,
        scheduled_time: datetime,
        end_time: Optional[datetime] = None,
        data: Optional[dict] = None,
    ) -> ScheduledComponent:
        await self.get_campaign(campaign_id)
        scheduled_time, end_time = ensure_utc(scheduled_time), ensure_utc(end_time)
        if end_time is not None and end_time <= scheduled_time:
            raise InvalidScheduleError("endTime must be after scheduledTime")
        item = await self.storage.create_scheduled_component(
            campaign_id, type, scheduled_time, end_time=end_time, data=data
        )
        logger.info(
            "scheduled_component.created",
            campaign_id=campaign_id,
            scheduled_id=item.id,
            type=type,
        )
        return item

    async def list_scheduled_components(self, campaign_id: int) -> list[ScheduledComponent]:
        await self.get_campaign(campaign_id)
        return await self.storage.list_scheduled_components(campaign_id)

    async def set_scheduled_status(self, scheduled_id: int, status: str) -> ScheduledComponent:
        """Move a scheduled component pending → sent | cancelled."""
        item = await self.storage.get_scheduled_component(scheduled_id)
        if item is None:
            raise ScheduledComponentNotFoundError(f"Scheduled component {scheduled_id} not found")
        if item.status == status:
            return item
        if status not in VALID_SCHEDULED_TRANSITIONS.get(item.status, set()):
            raise InvalidScheduledTransitionError(
                f"Cannot move scheduled component from {item.status} to {status}"
            )
        updated = await self.storage.set_scheduled_component_status(scheduled_id, status)
        logger.info("scheduled_component.status_changed", scheduled_id=scheduled_id, status=status)
        return updated

    async def delete_scheduled_component(self, scheduled_id: int) -> None:
        if not await self.storage.delete_scheduled_component(scheduled_id):
            raise ScheduledComponentNotFoundError(f"Scheduled component {scheduled_id} not found")
