"""Persistence facade — the interface every storage backend implements.

Learn: Services, the scheduler and the API talk to ``Storage`` only. Two
backends exist: ``DatabaseStorage`` (PostgreSQL via async SQLAlchemy, the
production path) and ``MemoryStorage`` (dicts, for development and tests).
Backends return the plain record dataclasses defined here, never ORM rows,
so nothing outside ``livecast.storage`` depends on a session being open.
"""

import abc
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from livecast.clock import ensure_utc, utcnow

LINK_ACTIVE = "active"
LINK_INACTIVE = "inactive"

SCHEDULED_PENDING = "pending"
SCHEDULED_SENT = "sent"
SCHEDULED_CANCELLED = "cancelled"


class StorageError(Exception):
    """Base class for persistence-level failures."""


class ComponentConflictError(StorageError):
    """The component is already active in another campaign."""

    def __init__(self, component_id: str, holder_campaign_id: int):
        self.component_id = component_id
        self.holder_campaign_id = holder_campaign_id
        super().__init__(
            f"Component {component_id} is already active in campaign {holder_campaign_id}"
        )


class LinkExistsError(StorageError):
    """The component is already linked to this campaign."""


# ─── Records ────────────────────────────────────────────


@dataclass
class Campaign:
    id: int
    name: str
    logo: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    reachu_channel_id: Optional[str] = None
    reachu_api_key: Optional[str] = None
    tipio_liveshow_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return is_campaign_active(self)


@dataclass
class Component:
    id: str
    type: str
    name: str
    config: dict
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class CampaignComponent:
    id: int
    campaign_id: int
    component_id: str
    component: Component
    status: str = LINK_INACTIVE
    custom_config: Optional[dict] = None
    scheduled_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    updated_at: datetime = field(default_factory=utcnow)

    def effective_config(self) -> dict:
        """Per-campaign override if present, else the component's base config."""
        if self.custom_config is not None:
            return self.custom_config
        return self.component.config


@dataclass
class ScheduledComponent:
    id: int
    campaign_id: int
    type: str
    scheduled_time: datetime
    end_time: Optional[datetime] = None
    data: dict = field(default_factory=dict)
    status: str = SCHEDULED_PENDING
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class StoredEvent:
    id: int
    campaign_id: int
    type: str
    payload: dict
    created_at: datetime = field(default_factory=utcnow)


def new_component_id() -> str:
    return f"cmp_{uuid.uuid4().hex[:12]}"


def is_campaign_active(campaign: Campaign, now: Optional[datetime] = None) -> bool:
    """A campaign is active while it has no end date or the end is in the future."""
    if campaign.end_date is None:
        return True
    return ensure_utc(campaign.end_date) > (now or utcnow())


# ─── Interface ──────────────────────────────────────────


class Storage(abc.ABC):
    """Async persistence interface for campaigns, events and components."""

    async def init(self) -> None:
        """Prepare the backend (create tables, open pools)."""

    async def close(self) -> None:
        """Release backend resources."""

    async def ping(self) -> bool:
        return True

    # Campaigns

    @abc.abstractmethod
    async def create_campaign(self, name: str, **fields: Any) -> Campaign: ...

    @abc.abstractmethod
    async def get_campaign(self, campaign_id: int) -> Optional[Campaign]: ...

    @abc.abstractmethod
    async def list_campaigns(self) -> list[Campaign]: ...

    @abc.abstractmethod
    async def update_campaign(self, campaign_id: int, changes: dict) -> Optional[Campaign]: ...

    @abc.abstractmethod
    async def delete_campaign(self, campaign_id: int) -> bool:
        """Delete a campaign with its events, links and scheduled components."""

    # Event log (append-only)

    @abc.abstractmethod
    async def append_event(self, campaign_id: int, event: dict) -> StoredEvent: ...

    @abc.abstractmethod
    async def list_events(self, campaign_id: int, limit: int = 50) -> list[dict]:
        """Most recent events first."""

    # Component library

    @abc.abstractmethod
    async def create_component(self, type: str, name: str, config: dict) -> Component: ...

    @abc.abstractmethod
    async def get_component(self, component_id: str) -> Optional[Component]: ...

    @abc.abstractmethod
    async def list_components(self) -> list[Component]: ...

    @abc.abstractmethod
    async def update_component(self, component_id: str, changes: dict) -> Optional[Component]: ...

    @abc.abstractmethod
    async def delete_component(self, component_id: str) -> bool: ...

    # Campaign ↔ component links

    @abc.abstractmethod
    async def link_component(
        self,
        campaign_id: int,
        component_id: str,
        status: str = LINK_INACTIVE,
        custom_config: Optional[dict] = None,
        scheduled_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> CampaignComponent:
        """Create a link. Raises LinkExistsError or ComponentConflictError."""

    @abc.abstractmethod
    async def get_campaign_component(
        self, campaign_id: int, component_id: str
    ) -> Optional[CampaignComponent]: ...

    @abc.abstractmethod
    async def list_campaign_components(self, campaign_id: int) -> list[CampaignComponent]: ...

    @abc.abstractmethod
    async def list_component_links(self, component_id: str) -> list[CampaignComponent]: ...

    @abc.abstractmethod
    async def update_campaign_component(
        self, campaign_id: int, component_id: str, changes: dict
    ) -> Optional[CampaignComponent]:
        """Update custom config and schedule fields. Status goes through
        ``set_campaign_component_status``."""

    @abc.abstractmethod
    async def set_campaign_component_status(
        self, campaign_id: int, component_id: str, status: str
    ) -> Optional[CampaignComponent]:
        """Set a link's status, stamping ``activated_at`` on activation.

        Activation is conditional: raises ComponentConflictError when the
        component is active in another campaign. Returns None when the link
        does not exist.
        """

    @abc.abstractmethod
    async def find_active_holder(
        self, component_id: str, exclude_campaign_id: Optional[int] = None
    ) -> Optional[int]:
        """Campaign id holding ``component_id`` active, ignoring ``exclude_campaign_id``."""

    @abc.abstractmethod
    async def unlink_component(self, campaign_id: int, component_id: str) -> bool: ...

    # Legacy scheduled components

    @abc.abstractmethod
    async def create_scheduled_component(
        self,
        campaign_id: int,
        type: str,
        scheduled_time: datetime,
        end_time: Optional[datetime] = None,
        data: Optional[dict] = None,
    ) -> ScheduledComponent: ...

    @abc.abstractmethod
    async def list_scheduled_components(self, campaign_id: int) -> list[ScheduledComponent]: ...

    @abc.abstractmethod
    async def get_scheduled_component(self, scheduled_id: int) -> Optional[ScheduledComponent]: ...

    @abc.abstractmethod
    async def set_scheduled_component_status(
        self, scheduled_id: int, status: str
    ) -> Optional[ScheduledComponent]: ...

    @abc.abstractmethod
    async def delete_scheduled_component(self, scheduled_id: int) -> bool: ...
