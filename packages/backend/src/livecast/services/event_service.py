"""Event service — the trigger pipeline for product, poll and contest events.

Learn: Every trigger runs the same steps, in this order:
1. Campaign must exist (if one is named) — before any side effect
2. Relative URLs → absolute, using this server's base URL
3. Build the payload with a fresh id and an epoch-ms timestamp
4. Validate against the strict event schema
5. Store: recent-events buffer always, campaign log when campaign-scoped
6. Broadcast: the campaign's room, or every room for legacy events

Steps 1–4 raise; nothing is stored or sent unless all of them pass.
"""

import itertools
import uuid
from collections import deque
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from livecast.clock import now_ms
from livecast.events.types import CONTEST, POLL, PRODUCT
from livecast.realtime.broadcast import Broadcaster
from livecast.schemas.events import (
    ContestTrigger,
    PollOptionInput,
    PollTrigger,
    ProductTrigger,
    describe_validation_error,
    dump_event,
    live_event_adapter,
)
from livecast.services.campaign_service import CampaignNotFoundError
from livecast.storage import Storage
from livecast.urls import normalize_url

logger = structlog.get_logger()


class EventValidationError(Exception):
    """Raised when a constructed event does not match its schema."""


class RecentEvents:
    """Bounded in-memory buffer of the latest events, newest first."""

    def __init__(self, maxlen: int = 100):
        self._events: deque[dict] = deque(maxlen=maxlen)

    def add(self, event: dict) -> None:
        self._events.appendleft(event)

    def recent(self, limit: int = 50) -> list[dict]:
        return list(itertools.islice(self._events, max(limit, 0)))

    def __len__(self) -> int:
        return len(self._events)


def parse_poll_options(
    options: Union[str, list[PollOptionInput]], base_url: str
) -> list[dict]:
    """Accept "A, B, C" (legacy) or a list of {text, imageUrl} objects."""
    if isinstance(options, str):
        return [{"text": part.strip()} for part in options.split(",") if part.strip()]
    parsed = []
    for option in options:
        item = {"text": option.text}
        if option.image_url:
            item["imageUrl"] = normalize_url(option.image_url, base_url)
        parsed.append(item)
    return parsed


def coerce_number(value: Union[int, float, str], field: str) -> Union[int, float]:
    if isinstance(value, (int, float)):
        return value
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise EventValidationError(f"{field} must be a number, got {value!r}")


class EventService:
    """Business logic for triggering live events."""

    def __init__(
        self,
        storage: Storage,
        broadcaster: Broadcaster,
        recent: RecentEvents,
        base_url: str,
    ):
        self.storage = storage
        self.broadcaster = broadcaster
        self.recent = recent
        self.base_url = base_url

    # ─── Triggers ───────────────────────────────────────

    async def trigger_product(self, body: ProductTrigger) -> dict:
        await self._require_campaign(body.campaign_id)
        payload = self._envelope(PRODUCT, body.campaign_id, body.campaign_logo)
        payload["data"] = {
            "id": f"prod_{uuid.uuid4()}",
            "productId": body.product_id,
            "name": body.name,
            "description": body.description,
            "price": str(body.price),
            "currency": body.currency or "USD",
            "imageUrl": normalize_url(body.image_url, self.base_url),
        }
        return await self._publish(payload)

    async def trigger_poll(self, body: PollTrigger) -> dict:
        await self._require_campaign(body.campaign_id)
        payload = self._envelope(POLL, body.campaign_id, body.campaign_logo)
        payload["data"] = {
            "id": f"poll_{uuid.uuid4()}",
            "question": body.question,
            "options": parse_poll_options(body.options, self.base_url),
            "duration": coerce_number(body.duration, "duration"),
            "imageUrl": normalize_url(body.image_url, self.base_url) or None,
        }
        return await self._publish(payload)

    async def trigger_contest(self, body: ContestTrigger) -> dict:
        await self._require_campaign(body.campaign_id)
        payload = self._envelope(CONTEST, body.campaign_id, body.campaign_logo)
        payload["data"] = {
            "id": f"contest_{uuid.uuid4()}",
            "name": body.name,
            "prize": body.prize,
            "deadline": body.deadline,
            "maxParticipants": body.max_participants,
        }
        return await self._publish(payload)

    # ─── Reads ──────────────────────────────────────────

    async def recent_events(self, campaign_id: Optional[int] = None, limit: int = 50) -> list[dict]:
        """Campaign log when scoped, the in-memory buffer otherwise."""
        if campaign_id is None:
            return self.recent.recent(limit)
        await self._require_campaign(campaign_id)
        return await self.storage.list_events(campaign_id, limit=limit)

    # ─── Internals ──────────────────────────────────────

    async def _require_campaign(self, campaign_id: Optional[int]) -> None:
        if campaign_id is None:
            return
        if await self.storage.get_campaign(campaign_id) is None:
            raise CampaignNotFoundError(campaign_id)

    def _envelope(self, event_type: str, campaign_id: Optional[int], logo: Optional[str]) -> dict:
        return {
            "type": event_type,
            "campaignId": campaign_id,
            "campaignLogo": normalize_url(logo, self.base_url) or None,
            "timestamp": now_ms(),
        }

    async def _publish(self, payload: dict) -> dict:
        try:
            event = dump_event(live_event_adapter.validate_python(payload))
        except ValidationError as e:
            raise EventValidationError(describe_validation_error(e)) from e

        self.recent.add(event)
        campaign_id = event.get("campaignId")
        if campaign_id is not None:
            await self.storage.append_event(campaign_id, event)
            delivered = await self.broadcaster.broadcast_to_room(campaign_id, event)
        else:
            delivered = await self.broadcaster.broadcast_legacy(event)

        logger.info(
            "event.triggered",
            type=event["type"],
            event_id=event["data"]["id"],
            campaign_id=campaign_id,
            delivered=delivered,
        )
        return event
