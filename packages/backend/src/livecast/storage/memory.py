"""In-memory storage backend.

Learn: Everything lives in dicts on one event loop. No method awaits
between reading and writing, so each call is atomic with respect to other
coroutines — including the check-then-activate in
``set_campaign_component_status``. Data is lost on restart, which is why
config refuses this backend outside development by default.
"""

import itertools
from dataclasses import replace
from datetime import datetime
from typing import Any, Optional

from livecast.clock import ensure_utc, utcnow
from livecast.storage.base import (
    LINK_ACTIVE,
    LINK_INACTIVE,
    Campaign,
    CampaignComponent,
    Component,
    ComponentConflictError,
    LinkExistsError,
    ScheduledComponent,
    Storage,
    StoredEvent,
    new_component_id,
)

_CAMPAIGN_FIELDS = {
    "name",
    "logo",
    "description",
    "start_date",
    "end_date",
    "reachu_channel_id",
    "reachu_api_key",
    "tipio_liveshow_id",
}
_LINK_FIELDS = {"custom_config", "scheduled_time", "end_time"}
_DATE_FIELDS = {"start_date", "end_date", "scheduled_time", "end_time"}


def _clean(changes: dict, allowed: set[str]) -> dict:
    cleaned = {}
    for key, value in changes.items():
        if key not in allowed:
            continue
        cleaned[key] = ensure_utc(value) if key in _DATE_FIELDS else value
    return cleaned


class MemoryStorage(Storage):
    """Dict-backed ``Storage`` implementation."""

    def __init__(self) -> None:
        self._campaign_ids = itertools.count(1)
        self._event_ids = itertools.count(1)
        self._link_ids = itertools.count(1)
        self._scheduled_ids = itertools.count(1)

        self._campaigns: dict[int, Campaign] = {}
        self._events: dict[int, list[StoredEvent]] = {}
        self._components: dict[str, Component] = {}
        # (campaign_id, component_id) → link; ``component`` is re-attached on read
        self._links: dict[tuple[int, str], CampaignComponent] = {}
        self._scheduled: dict[int, ScheduledComponent] = {}

    # ─── Campaigns ──────────────────────────────────────

    async def create_campaign(self, name: str, **fields: Any) -> Campaign:
        campaign = Campaign(
            id=next(self._campaign_ids),
            name=name,
            **_clean(fields, _CAMPAIGN_FIELDS - {"name"}),
        )
        self._campaigns[campaign.id] = campaign
        return replace(campaign)

    async def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        campaign = self._campaigns.get(campaign_id)
        return replace(campaign) if campaign else None

    async def list_campaigns(self) -> list[Campaign]:
        return [replace(c) for c in sorted(self._campaigns.values(), key=lambda c: c.id)]

    async def update_campaign(self, campaign_id: int, changes: dict) -> Optional[Campaign]:
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            return None
        campaign = replace(campaign, **_clean(changes, _CAMPAIGN_FIELDS))
        self._campaigns[campaign_id] = campaign
        return replace(campaign)

    async def delete_campaign(self, campaign_id: int) -> bool:
        if self._campaigns.pop(campaign_id, None) is None:
            return False
        self._events.pop(campaign_id, None)
        for key in [k for k in self._links if k[0] == campaign_id]:
            del self._links[key]
        for sid in [s.id for s in self._scheduled.values() if s.campaign_id == campaign_id]:
            del self._scheduled[sid]
        return True

    # ─── Event log ──────────────────────────────────────

    async def append_event(self, campaign_id: int, event: dict) -> StoredEvent:
        stored = StoredEvent(
            id=next(self._event_ids),
            campaign_id=campaign_id,
            type=event["type"],
            payload=dict(event),
        )
        self._events.setdefault(campaign_id, []).append(stored)
        return stored

    async def list_events(self, campaign_id: int, limit: int = 50) -> list[dict]:
        log = self._events.get(campaign_id, [])
        return [dict(e.payload) for e in reversed(log[-limit:])] if limit > 0 else []

    # ─── Components ─────────────────────────────────────

    async def create_component(self, type: str, name: str, config: dict) -> Component:
        component = Component(id=new_component_id(), type=type, name=name, config=config)
        self._components[component.id] = component
        return replace(component)

    async def get_component(self, component_id: str) -> Optional[Component]:
        component = self._components.get(component_id)
        return replace(component) if component else None

    async def list_components(self) -> list[Component]:
        return [
            replace(c)
            for c in sorted(self._components.values(), key=lambda c: c.created_at, reverse=True)
        ]

    async def update_component(self, component_id: str, changes: dict) -> Optional[Component]:
        component = self._components.get(component_id)
        if component is None:
            return None
        allowed = {k: v for k, v in changes.items() if k in {"name", "config"}}
        component = replace(component, **allowed, updated_at=utcnow())
        self._components[component_id] = component
        return replace(component)

    async def delete_component(self, component_id: str) -> bool:
        if self._components.pop(component_id, None) is None:
            return False
        for key in [k for k in self._links if k[1] == component_id]:
            del self._links[key]
        return True

    # ─── Links ──────────────────────────────────────────

    def _view(self, link: CampaignComponent) -> CampaignComponent:
        return replace(link, component=replace(self._components[link.component_id]))

    def _holder(self, component_id: str, exclude_campaign_id: Optional[int]) -> Optional[int]:
        for (campaign_id, cid), link in self._links.items():
            if cid != component_id or campaign_id == exclude_campaign_id:
                continue
            if link.status == LINK_ACTIVE:
                return campaign_id
        return None

    async def link_component(
        self,
        campaign_id: int,
        component_id: str,
        status: str = LINK_INACTIVE,
        custom_config: Optional[dict] = None,
        scheduled_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> CampaignComponent:
        key = (campaign_id, component_id)
        if key in self._links:
            raise LinkExistsError(
                f"Component {component_id} is already linked to campaign {campaign_id}"
            )
        component = self._components[component_id]
        now = utcnow()
        if status == LINK_ACTIVE:
            holder = self._holder(component_id, campaign_id)
            if holder is not None:
                raise ComponentConflictError(component_id, holder)
        link = CampaignComponent(
            id=next(self._link_ids),
            campaign_id=campaign_id,
            component_id=component_id,
            component=component,
            status=status,
            custom_config=custom_config,
            scheduled_time=ensure_utc(scheduled_time),
            end_time=ensure_utc(end_time),
            activated_at=now if status == LINK_ACTIVE else None,
            updated_at=now,
        )
        self._links[key] = link
        return self._view(link)

    async def get_campaign_component(
        self, campaign_id: int, component_id: str
    ) -> Optional[CampaignComponent]:
        link = self._links.get((campaign_id, component_id))
        return self._view(link) if link else None

    async def list_campaign_components(self, campaign_id: int) -> list[CampaignComponent]:
        links = [l for (cid, _), l in self._links.items() if cid == campaign_id]
        return [self._view(l) for l in sorted(links, key=lambda l: l.id)]

    async def list_component_links(self, component_id: str) -> list[CampaignComponent]:
        links = [l for (_, comp), l in self._links.items() if comp == component_id]
        return [self._view(l) for l in sorted(links, key=lambda l: l.id)]

    async def update_campaign_component(
        self, campaign_id: int, component_id: str, changes: dict
    ) -> Optional[CampaignComponent]:
        key = (campaign_id, component_id)
        link = self._links.get(key)
        if link is None:
            return None
        link = replace(link, **_clean(changes, _LINK_FIELDS), updated_at=utcnow())
        self._links[key] = link
        return self._view(link)

    async def set_campaign_component_status(
        self, campaign_id: int, component_id: str, status: str
    ) -> Optional[CampaignComponent]:
        key = (campaign_id, component_id)
        link = self._links.get(key)
        if link is None:
            return None
        now = utcnow()
        if status == LINK_ACTIVE:
            holder = self._holder(component_id, campaign_id)
            if holder is not None:
                raise ComponentConflictError(component_id, holder)
            link = replace(link, status=status, activated_at=now, updated_at=now)
        else:
            link = replace(link, status=status, updated_at=now)
        self._links[key] = link
        return self._view(link)

    async def find_active_holder(
        self, component_id: str, exclude_campaign_id: Optional[int] = None
    ) -> Optional[int]:
        return self._holder(component_id, exclude_campaign_id)

    async def unlink_component(self, campaign_id: int, component_id: str) -> bool:
        return self._links.pop((campaign_id, component_id), None) is not None

    # ─── Scheduled components ───────────────────────────

    async def create_scheduled_component(
        self,
        campaign_id: int,
        type: str,
        scheduled_time: datetime,
        end_time: Optional[datetime] = None,
        data: Optional[dict] = None,
    ) -> ScheduledComponent:
        item = ScheduledComponent(
            id=next(self._scheduled_ids),
            campaign_id=campaign_id,
            type=type,
            scheduled_time=ensure_utc(scheduled_time),
            end_time=ensure_utc(end_time),
            data=data or {},
        )
        self._scheduled[item.id] = item
        return replace(item)

    async def list_scheduled_components(self, campaign_id: int) -> list[ScheduledComponent]:
        items = [s for s in self._scheduled.values() if s.campaign_id == campaign_id]
        return [replace(s) for s in sorted(items, key=lambda s: s.scheduled_time)]

    async def get_scheduled_component(self, scheduled_id: int) -> Optional[ScheduledComponent]:
        item = self._scheduled.get(scheduled_id)
        return replace(item) if item else None

    async def set_scheduled_component_status(
        self, scheduled_id: int, status: str
    ) -> Optional[ScheduledComponent]:
        item = self._scheduled.get(scheduled_id)
        if item is None:
            return None
        item = replace(item, status=status)
        self._scheduled[scheduled_id] = item
        return replace(item)

    async def delete_scheduled_component(self, scheduled_id: int) -> bool:
        return self._scheduled.pop(scheduled_id, None) is not None
