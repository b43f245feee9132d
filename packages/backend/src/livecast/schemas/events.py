"""Pydantic schemas for live events (product, poll, contest).

Learn: Events are a tagged union on ``type``. The *Trigger models are the
lenient operator input (legacy poll option strings, string durations);
the *Event models are the strict shape that is stored and broadcast.
Wire format is camelCase, Python attributes are snake_case.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import (
    BaseModel,
    Field,
    PositiveFloat,
    PositiveInt,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from livecast.urls import is_absolute_url


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


# ─── Event payloads ─────────────────────────────────────

class ProductData(CamelModel):
    id: str
    product_id: Optional[str] = None
    name: str = Field(..., min_length=1)
    description: str = ""
    price: str = Field(..., min_length=1)
    currency: str = "USD"
    image_url: str

    @field_validator("image_url")
    @classmethod
    def image_url_must_be_absolute(cls, v: str) -> str:
        if not is_absolute_url(v):
            raise ValueError("imageUrl must be an absolute URL")
        return v


class PollOption(CamelModel):
    text: str = Field(..., min_length=1)
    image_url: Optional[str] = None


class PollData(CamelModel):
    id: str
    question: str = Field(..., min_length=1)
    options: list[PollOption] = Field(..., min_length=1)
    duration: Union[PositiveInt, PositiveFloat]
    image_url: Optional[str] = None


class ContestData(CamelModel):
    id: str
    name: str = Field(..., min_length=1)
    prize: str = Field(..., min_length=1)
    deadline: str = Field(..., min_length=1)
    max_participants: int = Field(..., gt=0)


class _EventBase(CamelModel):
    campaign_id: Optional[int] = None
    campaign_logo: Optional[str] = None
    timestamp: int  # epoch milliseconds


class ProductEvent(_EventBase):
    type: Literal["product"] = "product"
    data: ProductData


class PollEvent(_EventBase):
    type: Literal["poll"] = "poll"
    data: PollData


class ContestEvent(_EventBase):
    type: Literal["contest"] = "contest"
    data: ContestData


LiveEvent = Annotated[
    Union[ProductEvent, PollEvent, ContestEvent],
    Field(discriminator="type"),
]

live_event_adapter: TypeAdapter[LiveEvent] = TypeAdapter(LiveEvent)

EVENT_TYPES = ("product", "poll", "contest")


def dump_event(event) -> dict:
    """Wire representation of an event (camelCase, no null fields)."""
    return event.model_dump(mode="json", by_alias=True, exclude_none=True)


# ─── Operator input ─────────────────────────────────────

class _TriggerBase(CamelModel):
    campaign_id: Optional[int] = None
    campaign_logo: Optional[str] = None


class ProductTrigger(_TriggerBase):
    product_id: Optional[str] = None
    name: str
    description: str = ""
    price: Union[str, int, float]
    currency: str = "USD"
    image_url: str


class PollOptionInput(CamelModel):
    text: str
    image_url: Optional[str] = None


class PollTrigger(_TriggerBase):
    question: str
    # Legacy clients send "Red, Green, Blue"; current ones send objects.
    options: Union[str, list[PollOptionInput]]
    duration: Union[int, float, str]
    image_url: Optional[str] = None


class ContestTrigger(_TriggerBase):
    name: str
    prize: str
    deadline: str
    max_participants: int


class TriggerResponse(BaseModel):
    success: bool = True
    event: dict


def describe_validation_error(e: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one readable line."""
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
    )
