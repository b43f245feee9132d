"""Pydantic schemas for the component library and campaign links.

Learn: Each component type has its own config model. The type → model map
below is the single dispatch point; adding a component type means adding
one config class and one map entry.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from livecast.schemas.events import CamelModel, describe_validation_error

ComponentType = Literal[
    "banner",
    "countdown",
    "carousel_auto",
    "carousel_manual",
    "product_spotlight",
    "offer_badge",
]
LinkStatus = Literal["active", "inactive"]


# ─── Config variants ────────────────────────────────────

class _Config(CamelModel):
    # Viewer apps may carry keys this server does not know about.
    model_config = {"extra": "allow"}


class BannerConfig(_Config):
    image_url: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    subtitle: Optional[str] = None
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None


class CountdownConfig(_Config):
    end_date: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    style: Literal["minimal", "full"] = "full"


class CarouselAutoConfig(_Config):
    channel_id: str = Field(..., min_length=1)
    display_count: int = Field(default=5, ge=1)


class CarouselManualConfig(_Config):
    product_ids: list[str] = Field(..., min_length=1)


class ProductSpotlightConfig(_Config):
    product_id: str = Field(..., min_length=1)
    highlight_text: Optional[str] = None


class OfferBadgeConfig(_Config):
    text: str = Field(..., min_length=1)
    color: Literal["red", "blue", "green", "gold"] = "red"


COMPONENT_CONFIG_MODELS: dict[str, type[_Config]] = {
    "banner": BannerConfig,
    "countdown": CountdownConfig,
    "carousel_auto": CarouselAutoConfig,
    "carousel_manual": CarouselManualConfig,
    "product_spotlight": ProductSpotlightConfig,
    "offer_badge": OfferBadgeConfig,
}


def validate_component_config(component_type: str, config: dict) -> dict:
    """Validate ``config`` against its type's model and return the wire dict.

    Raises ValueError with a readable message on an unknown type or a bad
    config.
    """
    model = COMPONENT_CONFIG_MODELS.get(component_type)
    if model is None:
        raise ValueError(f"Unknown component type: {component_type}")
    try:
        parsed = model.model_validate(config)
    except ValidationError as e:
        raise ValueError(
            f"Invalid {component_type} config: {describe_validation_error(e)}"
        ) from e
    return parsed.model_dump(mode="json", by_alias=True, exclude_none=True)


# ─── Components ─────────────────────────────────────────

class ComponentCreate(CamelModel):
    type: ComponentType
    name: str = Field(..., min_length=1, max_length=200)
    config: dict = Field(default_factory=dict)


class ComponentUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    config: Optional[dict] = None


class ComponentRead(CamelModel):
    id: str
    type: str
    name: str
    config: dict
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ComponentUsage(CamelModel):
    component_id: str
    campaign_ids: list[int]
    active_campaign_id: Optional[int] = None


# ─── Campaign ↔ component links ─────────────────────────

class CampaignComponentCreate(CamelModel):
    component_id: str
    status: LinkStatus = "inactive"
    custom_config: Optional[dict] = None
    scheduled_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class CampaignComponentUpdate(CamelModel):
    """Partial update. Send ``null`` explicitly to clear a schedule field."""

    status: Optional[LinkStatus] = None
    custom_config: Optional[dict] = None
    scheduled_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class CampaignComponentRead(CamelModel):
    id: int
    campaign_id: int
    component_id: str
    status: str
    custom_config: Optional[dict] = None
    scheduled_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    updated_at: datetime
    component: ComponentRead

    model_config = {"from_attributes": True}


class ActiveComponentRead(CamelModel):
    component_id: str
    type: str
    name: str
    config: dict
    status: str
    activated_at: Optional[datetime] = None


class ComponentSnapshot(BaseModel):
    """The ``component`` object embedded in WebSocket component messages."""

    id: str
    type: str
    name: str
    config: dict
