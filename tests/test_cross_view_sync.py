"""Tests for the broadcast bus, the warm-start mirror and view wiring."""

import json

import pytest

from engagement_client.bus import BroadcastBus, EventDispatcher
from engagement_client.exceptions import TransientNetworkError
from engagement_client.messages import EngagementChanged, EngagementKind
from engagement_client.mirror import LocalMirror
from engagement_client.session import ClientSession
from engagement_client.storage import LocalStorage
from engagement_client.view import EngagementView


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_view(storage: LocalStorage, api, actor_id: int = 1) -> EngagementView:
    session = ClientSession(actor_id=actor_id, token=f"token-{actor_id}")
    return EngagementView(session, storage.area(), api)


def like_message(**overrides) -> EngagementChanged:
    data = {
        "kind": EngagementKind.LIKE,
        "target_id": "post-1",
        "actor_id": 1,
        "engaged": True,
        "count": 6,
    }
    data.update(overrides)
    return EngagementChanged(**data)


@pytest.mark.asyncio
async def test_sibling_view_converges_without_network_read(make_api):
    storage = LocalStorage()
    api_1 = make_api({"post-1": 5})
    api_2 = make_api({"post-1": 5})
    view_1 = make_view(storage, api_1)
    view_2 = make_view(storage, api_2)
    feed_1 = view_1.component("feed")
    feed_2 = view_2.component("feed")
    assert feed_1.likes.source != feed_2.likes.source
    await view_1.load(["post-1"])
    await view_2.load(["post-1"])

    await feed_1.likes.apply_intent("post-1")

    assert (feed_2.likes.is_engaged("post-1"), feed_2.likes.count("post-1")) == (True, 6)
    assert api_2.toggle_calls == 0
    assert api_2.snapshot_calls == 1


@pytest.mark.asyncio
async def test_components_in_same_view_stay_in_lockstep(make_api):
    api = make_api({"post-1": 5})
    view = make_view(LocalStorage(), api)
    feed = view.component("feed")
    detail = view.component("detail")
    await view.load(["post-1"])

    await detail.likes.apply_intent("post-1")

    assert (feed.likes.is_engaged("post-1"), feed.likes.count("post-1")) == (True, 6)
    assert api.snapshot_calls == 1


@pytest.mark.asyncio
async def test_comment_count_reaches_other_views(make_api):
    storage = LocalStorage()
    view_1 = make_view(storage, make_api({"post-1": 5}))
    view_2 = make_view(storage, make_api({"post-1": 5}))
    panel = view_1.component("comments-panel")
    feed = view_2.component("feed")

    await panel.comments.record_count("post-1", 3)

    assert feed.comments.count("post-1") == 3
    assert feed.likes.count("post-1") == 0


@pytest.mark.asyncio
async def test_messages_for_another_actor_are_dropped(make_api):
    storage = LocalStorage()
    view_1 = make_view(storage, make_api({"post-1": 5}), actor_id=1)
    view_2 = make_view(storage, make_api({"post-1": 5}), actor_id=2)
    feed_1 = view_1.component("feed")
    feed_2 = view_2.component("feed")
    feed_2.likes.seed({"post-1": 5}, engaged_ids=[])

    await feed_1.likes.apply_intent("post-1")

    assert feed_2.likes.is_engaged("post-1") is False
    assert feed_2.likes.count("post-1") == 5


@pytest.mark.asyncio
async def test_malformed_sync_payloads_are_rejected(make_api):
    storage = LocalStorage()
    view = make_view(storage, make_api({"post-1": 5}))
    feed = view.component("feed")
    feed.likes.seed({"post-1": 5}, engaged_ids=[])
    other_tab = storage.area()

    await other_tab.set_item("like_sync", "{not json")
    await other_tab.set_item("like_sync", json.dumps({"target_id": "post-1", "count": 9}))
    await other_tab.set_item(
        "like_sync",
        json.dumps({"kind": "like", "target_id": "post-1", "actor_id": 1, "count": -3}),
    )

    assert feed.likes.count("post-1") == 5
    assert feed.likes.is_engaged("post-1") is False


@pytest.mark.asyncio
async def test_sync_key_is_cleared_after_publish():
    storage = LocalStorage()
    session = ClientSession(actor_id=1, token="t")
    area = storage.area()
    observer = storage.area()
    seen = []
    observer.add_listener(lambda event: seen.append(event))
    bus = BroadcastBus(EngagementKind.LIKE, session, EventDispatcher(), area)

    await bus.publish(like_message())

    assert await observer.get_item("like_sync") is None
    assert [event.new_value is not None for event in seen] == [True, False]


@pytest.mark.asyncio
async def test_publisher_does_not_receive_its_own_message():
    session = ClientSession(actor_id=1, token="t")
    bus = BroadcastBus(EngagementKind.LIKE, session, EventDispatcher(), LocalStorage().area())
    own, others = [], []
    bus.subscribe(own.append, source="feed:like")
    bus.subscribe(others.append, source="detail:like")

    await bus.publish(like_message(source="feed:like"))

    assert own == []
    assert len(others) == 1


@pytest.mark.asyncio
async def test_publishing_for_another_actor_is_refused():
    session = ClientSession(actor_id=1, token="t")
    bus = BroadcastBus(EngagementKind.LIKE, session, EventDispatcher(), LocalStorage().area())

    with pytest.raises(ValueError):
        await bus.publish(like_message(actor_id=2))
    with pytest.raises(ValueError):
        await bus.publish(like_message(kind=EngagementKind.COMMENT))


@pytest.mark.asyncio
async def test_replayed_message_causes_no_drift():
    session = ClientSession(actor_id=1, token="t")
    bus = BroadcastBus(EngagementKind.LIKE, session, EventDispatcher(), LocalStorage().area())
    received = []
    bus.subscribe(received.append)

    message = like_message(count=6)
    await bus.publish(message)
    await bus.publish(message)

    assert [m.count for m in received] == [6, 6]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    session = ClientSession(actor_id=1, token="t")
    storage = LocalStorage()
    bus = BroadcastBus(EngagementKind.LIKE, session, EventDispatcher(), storage.area())
    received = []
    unsubscribe = bus.subscribe(received.append)
    unsubscribe()

    await bus.publish(like_message())

    assert received == []


@pytest.mark.asyncio
async def test_view_warm_starts_from_mirror_then_takes_snapshot(make_api):
    storage = LocalStorage()
    writer = make_view(storage, make_api({"post-1": 5}))
    writer.component("feed")
    await writer.load(["post-1"])
    await writer.components[0].likes.apply_intent("post-1")

    api = make_api({"post-1": 8}, liked={"post-1"})
    api.snapshot_error = TransientNetworkError("offline")
    reader = make_view(storage, api)
    feed = reader.component("feed")

    assert await reader.load(["post-1"]) is False
    assert (feed.likes.is_engaged("post-1"), feed.likes.count("post-1")) == (True, 6)

    api.snapshot_error = None
    assert await reader.load(["post-1"]) is True
    assert feed.likes.count("post-1") == 8


@pytest.mark.asyncio
async def test_mirror_entries_expire():
    clock = FakeClock()
    mirror = LocalMirror(LocalStorage().area(), ttl=60, clock=clock)

    await mirror.save("like_state_1", {"engaged": ["post-1"]})
    assert await mirror.load("like_state_1") == {"engaged": ["post-1"]}

    clock.now += 60
    assert await mirror.load("like_state_1") is None


@pytest.mark.asyncio
async def test_unreadable_mirror_entry_is_discarded():
    area = LocalStorage().area()
    mirror = LocalMirror(area)
    await area.set_item("mirror:like_state_1", "garbage")

    assert await mirror.load("like_state_1") is None
    assert await area.get_item("mirror:like_state_1") is None
