"""Component service — the component library and campaign links.

Learn: A component is defined once and linked into many campaigns. Each link
has its own status, optional config override and optional schedule. The
one rule that spans campaigns:

  a component may be ``active`` in at most one campaign at a time.

``set_status`` enforces it for manual toggles and for the scheduler alike:
explicit pre-check (so the caller learns who holds it), then a conditional
write in storage that fails the same way if another activation won a race.

Every status flip is pushed to the campaign's viewers as
``component_status_changed``; edits to something already on screen are
pushed as ``component_config_updated``.
"""

from datetime import datetime
from typing import Optional

import structlog

from livecast.clock import ensure_utc
from livecast.realtime.broadcast import Broadcaster
from livecast.realtime.messages import component_config_updated, component_status_changed
from livecast.schemas.components import validate_component_config
from livecast.services.campaign_service import CampaignNotFoundError, InvalidScheduleError
from livecast.storage import (
    CampaignComponent,
    Component,
    ComponentConflictError,
    Storage,
)
from livecast.storage.base import LINK_ACTIVE, LINK_INACTIVE
from livecast.urls import normalize_urls

logger = structlog.get_logger()

__all__ = [
    "ComponentConfigError",
    "ComponentConflictError",
    "ComponentNotFoundError",
    "ComponentService",
    "LinkNotFoundError",
]


class ComponentNotFoundError(Exception):
    """Raised when a component does not exist."""


class LinkNotFoundError(Exception):
    """Raised when a component is not linked to the campaign."""


class ComponentConfigError(Exception):
    """Raised when a config does not match its component type."""


def _check_window(scheduled_time: Optional[datetime], end_time: Optional[datetime]) -> None:
    scheduled_time, end_time = ensure_utc(scheduled_time), ensure_utc(end_time)
    if scheduled_time and end_time and end_time <= scheduled_time:
        raise InvalidScheduleError("endTime must be after scheduledTime")


class ComponentService:
    """Business logic for components and campaign links."""

    def __init__(self, storage: Storage, broadcaster: Broadcaster, base_url: str):
        self.storage = storage
        self.broadcaster = broadcaster
        self.base_url = base_url

    # ─── Component library ──────────────────────────────

    async def create_component(self, type: str, name: str, config: dict) -> Component:
        config = self._validated(type, config)
        component = await self.storage.create_component(type, name, config)
        logger.info("component.created", component_id=component.id, type=type)
        return component

    async def list_components(self) -> list[Component]:
        return await self.storage.list_components()

    async def get_component(self, component_id: str) -> Component:
        component = await self.storage.get_component(component_id)
        if component is None:
            raise ComponentNotFoundError(f"Component {component_id} not found")
        return component

    async def update_component(
        self,
        component_id: str,
        name: Optional[str] = None,
        config: Optional[dict] = None,
    ) -> Component:
        current = await self.get_component(component_id)
        changes: dict = {}
        if name is not None:
            changes["name"] = name
        if config is not None:
            changes["config"] = self._validated(current.type, config)
        if not changes:
            return current

        component = await self.storage.update_component(component_id, changes)
        logger.info("component.updated", component_id=component_id, fields=sorted(changes))

        # Campaigns with their own override don't see base-config edits.
        for link in await self.storage.list_component_links(component_id):
            if link.status == LINK_ACTIVE and (link.custom_config is None or "name" in changes):
                await self.broadcaster.broadcast_to_room(
                    link.campaign_id, component_config_updated(link, self.base_url)
                )
        return component

    async def delete_component(self, component_id: str) -> None:
        await self.get_component(component_id)
        for link in await self.storage.list_component_links(component_id):
            if link.status == LINK_ACTIVE:
                await self.broadcaster.broadcast_to_room(
                    link.campaign_id,
                    component_status_changed(link, LINK_INACTIVE, self.base_url),
                )
        await self.storage.delete_component(component_id)
        logger.info("component.deleted", component_id=component_id)

    async def component_usage(self) -> list[dict]:
        """Which campaigns link each component, and which one holds it active."""
        usage = []
        for component in await self.storage.list_components():
            links = await self.storage.list_component_links(component.id)
            active = [l.campaign_id for l in links if l.status == LINK_ACTIVE]
            usage.append({
                "component_id": component.id,
                "campaign_ids": [l.campaign_id for l in links],
                "active_campaign_id": active[0] if active else None,
            })
        return usage

    # ─── Campaign links ─────────────────────────────────

    async def link_component(
        self,
        campaign_id: int,
        component_id: str,
        status: str = LINK_INACTIVE,
        custom_config: Optional[dict] = None,
        scheduled_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> CampaignComponent:
        await self._require_campaign(campaign_id)
        component = await self.get_component(component_id)
        if custom_config is not None:
            custom_config = self._validated(component.type, custom_config)
        _check_window(scheduled_time, end_time)

        if status == LINK_ACTIVE:
            await self._ensure_available(component_id, campaign_id)
        link = await self.storage.link_component(
            campaign_id,
            component_id,
            status=status,
            custom_config=custom_config,
            scheduled_time=scheduled_time,
            end_time=end_time,
        )
        logger.info(
            "component.linked",
            campaign_id=campaign_id,
            component_id=component_id,
            status=status,
        )
        if status == LINK_ACTIVE:
            await self.broadcaster.broadcast_to_room(
                campaign_id, component_status_changed(link, LINK_ACTIVE, self.base_url)
            )
        return link

    async def list_links(self, campaign_id: int) -> list[CampaignComponent]:
        await self._require_campaign(campaign_id)
        return await self.storage.list_campaign_components(campaign_id)

    async def get_link(self, campaign_id: int, component_id: str) -> CampaignComponent:
        link = await self.storage.get_campaign_component(campaign_id, component_id)
        if link is None:
            raise LinkNotFoundError(
                f"Component {component_id} is not linked to campaign {campaign_id}"
            )
        return link

    async def active_components(self, campaign_id: int) -> list[dict]:
        """Initial state for a viewer app: everything currently on screen."""
        links = await self.list_links(campaign_id)
        return [
            {
                "component_id": link.component_id,
                "type": link.component.type,
                "name": link.component.name,
                "config": normalize_urls(link.effective_config(), self.base_url),
                "status": link.status,
                "activated_at": link.activated_at,
            }
            for link in links
            if link.status == LINK_ACTIVE
        ]

    async def update_link(
        self, campaign_id: int, component_id: str, changes: dict
    ) -> CampaignComponent:
        """Apply a partial update: custom config, schedule and/or status.

        ``changes`` holds only the fields the caller sent, so an explicit
        None clears a schedule field or the override.
        """
        link = await self.get_link(campaign_id, component_id)
        changes = dict(changes)
        status = changes.pop("status", None)

        if changes.get("custom_config") is not None:
            changes["custom_config"] = self._validated(
                link.component.type, changes["custom_config"]
            )
        _check_window(
            changes.get("scheduled_time", link.scheduled_time),
            changes.get("end_time", link.end_time),
        )
        if status == LINK_ACTIVE and link.status != LINK_ACTIVE:
            # Refuse before anything is written; set_status checks again.
            await self._ensure_available(component_id, campaign_id)

        if changes:
            link = await self.storage.update_campaign_component(campaign_id, component_id, changes)
            logger.info(
                "component.link_updated",
                campaign_id=campaign_id,
                component_id=component_id,
                fields=sorted(changes),
            )

        if status is not None and status != link.status:
            return await self.set_status(campaign_id, component_id, status)

        if "custom_config" in changes and link.status == LINK_ACTIVE:
            await self.broadcaster.broadcast_to_room(
                campaign_id, component_config_updated(link, self.base_url)
            )
        return link

    async def set_status(
        self, campaign_id: int, component_id: str, status: str
    ) -> CampaignComponent:
        """Activate or deactivate a link and tell the campaign's viewers."""
        if status == LINK_ACTIVE:
            await self._ensure_available(component_id, campaign_id)
        link = await self.storage.set_campaign_component_status(campaign_id, component_id, status)
        if link is None:
            raise LinkNotFoundError(
                f"Component {component_id} is not linked to campaign {campaign_id}"
            )
        delivered = await self.broadcaster.broadcast_to_room(
            campaign_id, component_status_changed(link, status, self.base_url)
        )
        logger.info(
            "component.status_changed",
            campaign_id=campaign_id,
            component_id=component_id,
            status=status,
            delivered=delivered,
        )
        return link

    async def unlink_component(self, campaign_id: int, component_id: str) -> None:
        link = await self.get_link(campaign_id, component_id)
        await self.storage.unlink_component(campaign_id, component_id)
        if link.status == LINK_ACTIVE:
            await self.broadcaster.broadcast_to_room(
                campaign_id, component_status_changed(link, LINK_INACTIVE, self.base_url)
            )
        logger.info("component.unlinked", campaign_id=campaign_id, component_id=component_id)

    # ─── Internals ──────────────────────────────────────

    def _validated(self, component_type: str, config: dict) -> dict:
        try:
            return validate_component_config(component_type, config)
        except ValueError as e:
            raise ComponentConfigError(str(e)) from e

    async def _require_campaign(self, campaign_id: int) -> None:
        if await self.storage.get_campaign(campaign_id) is None:
            raise CampaignNotFoundError(campaign_id)

    async def _ensure_available(self, component_id: str, campaign_id: int) -> None:
        holder = await self.storage.find_active_holder(component_id, exclude_campaign_id=campaign_id)
        if holder is not None:
            raise ComponentConflictError(component_id, holder)
