"""Tests for the component scheduler — time windows, isolation, loop control.

Learn: tick(now=...) takes an explicit clock, so each test pins "now"
relative to the link's window instead of sleeping.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from livecast.realtime.registry import LEGACY_ROOM
from livecast.services.scheduler import ComponentScheduler
from livecast.storage import MemoryStorage

BASE = "https://live.example.com"
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def scheduler(storage, broadcaster, resolver):
    return ComponentScheduler(storage, broadcaster, resolver, interval_seconds=60)


@pytest_asyncio.fixture()
async def banner(storage):
    return await storage.create_component(
        "banner", "Hero", {"imageUrl": "/objects/hero.png", "title": "Hello"}
    )


async def _scheduled_link(storage, component, start, end=None, status="inactive", campaign=None):
    campaign = campaign or await storage.create_campaign("Live show")
    link = await storage.link_component(
        campaign.id,
        component.id,
        status=status,
        scheduled_time=start,
        end_time=end,
    )
    return campaign, link


# ═══════════════════════════════════════════════════════════
# Window behaviour
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_due_component_is_activated_and_broadcast(
    storage, registry, scheduler, banner, make_socket
):
    campaign, _ = await _scheduled_link(storage, banner, NOW - timedelta(minutes=5))
    in_room, legacy = make_socket(), make_socket()
    registry.assign(in_room, campaign.id)
    registry.assign(legacy, LEGACY_ROOM)

    summary = await scheduler.tick(now=NOW)

    assert summary["activated"] == [{"campaignId": campaign.id, "componentId": banner.id}]
    link = await storage.get_campaign_component(campaign.id, banner.id)
    assert link.status == "active"
    assert link.activated_at is not None

    [message] = in_room.sent
    assert message["type"] == "component_status_changed"
    assert message["status"] == "active"
    assert message["campaignId"] == campaign.id
    assert message["component"]["config"]["imageUrl"] == f"{BASE}/objects/hero.png"
    assert legacy.sent == []


@pytest.mark.asyncio
async def test_activation_is_idempotent(storage, registry, scheduler, banner, make_socket):
    campaign, _ = await _scheduled_link(storage, banner, NOW - timedelta(minutes=5))
    socket = make_socket()
    registry.assign(socket, campaign.id)

    await scheduler.tick(now=NOW)
    summary = await scheduler.tick(now=NOW + timedelta(minutes=1))

    assert summary["activated"] == []
    assert len(socket.sent) == 1


@pytest.mark.asyncio
async def test_future_component_stays_inactive(storage, scheduler, banner):
    campaign, _ = await _scheduled_link(storage, banner, NOW + timedelta(minutes=5))

    summary = await scheduler.tick(now=NOW)

    assert summary["activated"] == []
    link = await storage.get_campaign_component(campaign.id, banner.id)
    assert link.status == "inactive"


@pytest.mark.asyncio
async def test_component_deactivated_at_end_time(
    storage, registry, scheduler, banner, make_socket
):
    start, end = NOW - timedelta(minutes=30), NOW + timedelta(minutes=30)
    campaign, _ = await _scheduled_link(storage, banner, start, end)
    socket = make_socket()
    registry.assign(socket, campaign.id)

    await scheduler.tick(now=NOW)
    summary = await scheduler.tick(now=end)

    assert summary["deactivated"] == [{"campaignId": campaign.id, "componentId": banner.id}]
    link = await storage.get_campaign_component(campaign.id, banner.id)
    assert link.status == "inactive"
    assert [m["status"] for m in socket.sent] == ["active", "inactive"]


@pytest.mark.asyncio
async def test_missed_window_does_not_flicker(
    storage, registry, scheduler, banner, make_socket
):
    campaign, _ = await _scheduled_link(
        storage, banner, NOW - timedelta(minutes=10), NOW - timedelta(minutes=5)
    )
    socket = make_socket()
    registry.assign(socket, campaign.id)

    summary = await scheduler.tick(now=NOW)

    assert summary["activated"] == [] and summary["deactivated"] == []
    link = await storage.get_campaign_component(campaign.id, banner.id)
    assert link.status == "inactive"
    assert socket.sent == []


@pytest.mark.asyncio
async def test_unscheduled_links_are_left_alone(storage, scheduler, banner):
    campaign = await storage.create_campaign("Manual")
    await storage.link_component(campaign.id, banner.id, status="active")

    summary = await scheduler.tick(now=NOW)

    assert summary["deactivated"] == []
    link = await storage.get_campaign_component(campaign.id, banner.id)
    assert link.status == "active"


@pytest.mark.asyncio
async def test_ended_campaigns_are_skipped(storage, scheduler, banner):
    campaign = await storage.create_campaign("Over", end_date=NOW - timedelta(days=1))
    await _scheduled_link(storage, banner, NOW - timedelta(minutes=5), campaign=campaign)

    summary = await scheduler.tick(now=NOW)

    assert summary["campaigns"] == 0
    link = await storage.get_campaign_component(campaign.id, banner.id)
    assert link.status == "inactive"


@pytest.mark.asyncio
async def test_custom_config_is_broadcast(storage, registry, scheduler, banner, make_socket):
    campaign = await storage.create_campaign("Custom")
    await storage.link_component(
        campaign.id,
        banner.id,
        custom_config={"imageUrl": "/objects/custom.png", "title": "Custom"},
        scheduled_time=NOW - timedelta(minutes=1),
    )
    socket = make_socket()
    registry.assign(socket, campaign.id)

    await scheduler.tick(now=NOW)

    assert socket.sent[0]["component"]["config"] == {
        "imageUrl": f"{BASE}/objects/custom.png",
        "title": "Custom",
    }


# ═══════════════════════════════════════════════════════════
# Conflicts and failures
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_component_held_elsewhere_is_not_activated(storage, scheduler, banner):
    holder = await storage.create_campaign("Holder")
    await storage.link_component(holder.id, banner.id, status="active")
    campaign, _ = await _scheduled_link(storage, banner, NOW - timedelta(minutes=5))

    summary = await scheduler.tick(now=NOW)

    assert summary["conflicts"] == 1
    assert summary["activated"] == []
    link = await storage.get_campaign_component(campaign.id, banner.id)
    assert link.status == "inactive"


class _FlakyStorage(MemoryStorage):
    """Fails to load links for one campaign."""

    def __init__(self, broken_campaign_id: int):
        super().__init__()
        self.broken_campaign_id = broken_campaign_id

    async def list_campaign_components(self, campaign_id):
        if campaign_id == self.broken_campaign_id:
            raise RuntimeError("database hiccup")
        return await super().list_campaign_components(campaign_id)


@pytest.mark.asyncio
async def test_failing_campaign_does_not_stop_the_tick(broadcaster, resolver):
    storage = _FlakyStorage(broken_campaign_id=1)
    component = await storage.create_component("offer_badge", "Badge", {"text": "-10%"})
    broken = await storage.create_campaign("Broken")
    healthy = await storage.create_campaign("Healthy")
    await storage.link_component(
        broken.id, component.id, scheduled_time=NOW - timedelta(minutes=1)
    )
    other = await storage.create_component("offer_badge", "Other", {"text": "-20%"})
    await storage.link_component(
        healthy.id, other.id, scheduled_time=NOW - timedelta(minutes=1)
    )
    scheduler = ComponentScheduler(storage, broadcaster, resolver)

    summary = await scheduler.tick(now=NOW)

    assert summary["errors"] == 1
    assert summary["activated"] == [{"campaignId": healthy.id, "componentId": other.id}]


# ═══════════════════════════════════════════════════════════
# Loop control
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_start_ticks_immediately_and_stop_cancels_wait(scheduler):
    ticked = asyncio.Event()

    async def fake_tick(now=None):
        ticked.set()
        return {}

    scheduler.tick = fake_tick
    scheduler.start()
    task = scheduler._task
    await asyncio.wait_for(ticked.wait(), timeout=1)
    assert scheduler.running

    scheduler.stop()

    assert not scheduler.running
    await asyncio.wait_for(task, timeout=1)
    assert task.done()


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent(scheduler):
    async def fake_tick(now=None):
        return {}

    scheduler.tick = fake_tick
    scheduler.stop()
    assert not scheduler.running

    scheduler.start()
    task = scheduler._task
    scheduler.start()
    assert scheduler._task is task

    scheduler.stop()
    scheduler.stop()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_stop_lets_running_tick_finish(scheduler):
    entered, release = asyncio.Event(), asyncio.Event()
    finished = []

    async def slow_tick(now=None):
        entered.set()
        await release.wait()
        finished.append(True)
        return {}

    scheduler.tick = slow_tick
    scheduler.start()
    task = scheduler._task
    await asyncio.wait_for(entered.wait(), timeout=1)

    scheduler.stop()
    release.set()
    await asyncio.wait_for(task, timeout=1)

    assert finished == [True]


@pytest.mark.asyncio
async def test_restart_during_tick_leaves_one_loop(scheduler):
    release = asyncio.Event()
    entered = []

    async def slow_tick(now=None):
        entered.append(asyncio.current_task())
        await release.wait()
        return {}

    scheduler.tick = slow_tick
    scheduler.start()
    old_task = scheduler._task
    while not entered:
        await asyncio.sleep(0)

    scheduler.stop()
    scheduler.start()
    new_task = scheduler._task
    assert new_task is not old_task

    release.set()
    await asyncio.wait_for(old_task, timeout=1)
    await asyncio.sleep(0.05)

    # The superseded loop retired after its tick; only the new one waits.
    assert old_task.done()
    assert not new_task.done()
    assert scheduler.running

    scheduler.stop()
    await asyncio.wait_for(new_task, timeout=1)


@pytest.mark.asyncio
async def test_failing_tick_keeps_the_loop_alive(storage, broadcaster, resolver):
    scheduler = ComponentScheduler(storage, broadcaster, resolver, interval_seconds=0.01)
    calls = []
    second = asyncio.Event()

    async def broken_tick(now=None):
        calls.append(1)
        if len(calls) >= 2:
            second.set()
        raise RuntimeError("boom")

    scheduler.tick = broken_tick
    scheduler.start()
    task = scheduler._task
    await asyncio.wait_for(second.wait(), timeout=1)
    scheduler.stop()
    await asyncio.wait_for(task, timeout=1)

    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_tick_endpoint(client, storage):
    component = await storage.create_component("offer_badge", "Badge", {"text": "New"})
    campaign = await storage.create_campaign("API")
    await storage.link_component(
        campaign.id,
        component.id,
        scheduled_time=datetime.now(timezone.utc) - timedelta(minutes=1),
    )

    r = await client.post("/api/scheduler/tick")

    assert r.status_code == 200
    assert r.json()["activated"] == [{"campaignId": campaign.id, "componentId": component.id}]
