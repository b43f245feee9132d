"""Pydantic schemas for campaigns and legacy scheduled components."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field

from livecast.schemas.events import CamelModel


# ─── Campaigns ──────────────────────────────────────────

class CampaignCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    logo: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    reachu_channel_id: Optional[str] = None
    reachu_api_key: Optional[str] = None
    tipio_liveshow_id: Optional[str] = None


class CampaignUpdate(CamelModel):
    """Partial update. Fields left out are unchanged; explicit nulls clear."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    logo: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    reachu_channel_id: Optional[str] = None
    reachu_api_key: Optional[str] = None
    tipio_liveshow_id: Optional[str] = None


class CampaignRead(CamelModel):
    id: int
    name: str
    logo: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    reachu_channel_id: Optional[str] = None
    tipio_liveshow_id: Optional[str] = None
    created_at: datetime
    is_active: bool = False

    model_config = {"from_attributes": True}


# ─── Scheduled components (legacy one-shot content) ─────

ScheduledStatus = Literal["pending", "sent", "cancelled"]


class ScheduledComponentCreate(CamelModel):
    type: str = Field(..., min_length=1, max_length=50)
    scheduled_time: datetime
    end_time: Optional[datetime] = None
    data: dict[str, Any] = Field(default_factory=dict)


class ScheduledComponentStatusUpdate(CamelModel):
    status: ScheduledStatus


class ScheduledComponentRead(CamelModel):
    id: int
    campaign_id: int
    type: str
    scheduled_time: datetime
    end_time: Optional[datetime] = None
    data: dict[str, Any]
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
