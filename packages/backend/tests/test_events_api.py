"""Tests for the live event trigger API — product, poll, contest.

Learn: Viewer sockets are FakeSockets placed straight into the app's
registry, so each test can check which rooms received an event and which
did not. A rejected trigger must leave no trace: nothing broadcast,
nothing in the recent-events buffer, nothing in a campaign log.
"""

import pytest

from livecast.realtime.registry import LEGACY_ROOM

BASE = "https://live.example.com"


async def _campaign(client, name="Spring launch", **extra) -> int:
    r = await client.post("/api/campaigns", json={"name": name, **extra})
    assert r.status_code == 201
    return r.json()["id"]


def _product(**overrides) -> dict:
    body = {
        "name": "Trail sneaker",
        "price": "89.90",
        "imageUrl": "/objects/sneaker.png",
    }
    body.update(overrides)
    return body


# ═══════════════════════════════════════════════════════════
# Product
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_product_goes_to_campaign_room_only(client, viewer):
    campaign_id = await _campaign(client)
    in_room = viewer(campaign_id)
    legacy = viewer(LEGACY_ROOM)
    other = viewer(campaign_id + 100)

    r = await client.post("/api/events/product", json=_product(campaignId=campaign_id))

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    event = body["event"]
    assert event["type"] == "product"
    assert event["campaignId"] == campaign_id
    assert event["data"]["id"].startswith("prod_")
    assert event["data"]["imageUrl"] == f"{BASE}/objects/sneaker.png"
    assert event["data"]["currency"] == "USD"
    assert isinstance(event["timestamp"], int)

    assert in_room.sent == [event]
    assert legacy.sent == []
    assert other.sent == []


@pytest.mark.asyncio
async def test_product_without_campaign_goes_to_every_room(client, viewer):
    sockets = [viewer(LEGACY_ROOM), viewer(3), viewer(8)]

    r = await client.post("/api/events/product", json=_product())

    assert r.status_code == 200
    event = r.json()["event"]
    assert "campaignId" not in event
    assert all(s.sent == [event] for s in sockets)


@pytest.mark.asyncio
async def test_campaign_logo_is_normalized(client, viewer):
    campaign_id = await _campaign(client)
    socket = viewer(campaign_id)

    r = await client.post(
        "/api/events/product",
        json=_product(campaignId=campaign_id, campaignLogo="/objects/logo.png"),
    )

    assert r.json()["event"]["campaignLogo"] == f"{BASE}/objects/logo.png"
    assert socket.sent[0]["campaignLogo"] == f"{BASE}/objects/logo.png"


@pytest.mark.asyncio
async def test_absolute_image_url_is_kept(client):
    url = "https://cdn.shop.com/sneaker.png"
    r = await client.post("/api/events/product", json=_product(imageUrl=url))
    assert r.json()["event"]["data"]["imageUrl"] == url


@pytest.mark.asyncio
async def test_numeric_price_is_sent_as_string(client):
    r = await client.post("/api/events/product", json=_product(price=49))
    assert r.json()["event"]["data"]["price"] == "49"


@pytest.mark.asyncio
async def test_unknown_campaign_is_404_and_sends_nothing(client, viewer):
    socket = viewer(LEGACY_ROOM)

    r = await client.post("/api/events/product", json=_product(campaignId=999))

    assert r.status_code == 404
    assert socket.sent == []
    r = await client.get("/api/events")
    assert r.json() == []


@pytest.mark.asyncio
async def test_invalid_product_is_400_and_sends_nothing(client, viewer):
    socket = viewer(LEGACY_ROOM)

    r = await client.post("/api/events/product", json=_product(name=""))

    assert r.status_code == 400
    assert "name" in r.json()["detail"]
    assert socket.sent == []


@pytest.mark.asyncio
async def test_missing_field_is_422(client):
    r = await client.post("/api/events/product", json={"name": "No price"})
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Poll
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_poll_with_legacy_option_string(client):
    r = await client.post(
        "/api/events/poll",
        json={"question": "Best color?", "options": " Red, Green ,, Blue ", "duration": "30"},
    )

    assert r.status_code == 200
    data = r.json()["event"]["data"]
    assert data["id"].startswith("poll_")
    assert data["options"] == [{"text": "Red"}, {"text": "Green"}, {"text": "Blue"}]
    assert data["duration"] == 30


@pytest.mark.asyncio
async def test_poll_with_option_objects_normalizes_images(client):
    r = await client.post(
        "/api/events/poll",
        json={
            "question": "Which one?",
            "options": [
                {"text": "Left", "imageUrl": "/objects/left.png"},
                {"text": "Right", "imageUrl": "https://cdn.io/right.png"},
                {"text": "Neither"},
            ],
            "duration": 12.5,
            "imageUrl": "/objects/poll.png",
        },
    )

    assert r.status_code == 200
    data = r.json()["event"]["data"]
    assert data["options"] == [
        {"text": "Left", "imageUrl": f"{BASE}/objects/left.png"},
        {"text": "Right", "imageUrl": "https://cdn.io/right.png"},
        {"text": "Neither"},
    ]
    assert data["duration"] == 12.5
    assert data["imageUrl"] == f"{BASE}/objects/poll.png"


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", ["abc", "0", -5])
async def test_poll_rejects_bad_duration(client, duration):
    r = await client.post(
        "/api/events/poll",
        json={"question": "Q?", "options": "A, B", "duration": duration},
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_poll_needs_an_option(client):
    r = await client.post(
        "/api/events/poll",
        json={"question": "Q?", "options": " , ", "duration": 10},
    )
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Contest
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_contest(client, viewer):
    campaign_id = await _campaign(client)
    socket = viewer(campaign_id)

    r = await client.post(
        "/api/events/contest",
        json={
            "campaignId": campaign_id,
            "name": "Summer draw",
            "prize": "Gift card",
            "deadline": "2026-08-31",
            "maxParticipants": 100,
        },
    )

    assert r.status_code == 200
    data = socket.sent[0]["data"]
    assert data["id"].startswith("contest_")
    assert data["maxParticipants"] == 100


@pytest.mark.asyncio
async def test_contest_needs_positive_participants(client):
    r = await client.post(
        "/api/events/contest",
        json={"name": "Draw", "prize": "Mug", "deadline": "soon", "maxParticipants": 0},
    )
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Reading events back
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_recent_events_newest_first(client):
    for name in ("first", "second", "third"):
        await client.post("/api/events/product", json=_product(name=name))

    r = await client.get("/api/events", params={"limit": 2})

    assert [e["data"]["name"] for e in r.json()] == ["third", "second"]


@pytest.mark.asyncio
async def test_campaign_event_log(client):
    a = await _campaign(client, "A")
    b = await _campaign(client, "B")
    await client.post("/api/events/product", json=_product(name="for a", campaignId=a))
    await client.post("/api/events/product", json=_product(name="for b", campaignId=b))
    await client.post("/api/events/product", json=_product(name="for all"))

    r = await client.get("/api/events", params={"campaignId": a})

    assert r.status_code == 200
    assert [e["data"]["name"] for e in r.json()] == ["for a"]


@pytest.mark.asyncio
async def test_event_log_of_unknown_campaign_is_404(client):
    r = await client.get("/api/events", params={"campaignId": 12345})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_recent_buffer_is_bounded(app, client):
    limit = app.state.config.recent_events_limit
    for i in range(limit + 5):
        await client.post("/api/events/product", json=_product(name=f"p{i}"))

    assert len(app.state.recent_events) == limit
    r = await client.get("/api/events", params={"limit": 500})
    names = [e["data"]["name"] for e in r.json()]
    assert len(names) == limit
    assert names[0] == f"p{limit + 4}"
