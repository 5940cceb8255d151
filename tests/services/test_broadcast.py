import asyncio
import json
from decimal import Decimal

from teasr_stage.services.broadcast import (
    EVENT_VIEW_UPDATE,
    Event,
    InMemoryBroadcaster,
    RedisBroadcaster,
)


def test_event_json_renders_decimals_as_strings():
    event = Event("investorEarningsUpdate", {"totalEarnings": Decimal("1.980000")})

    assert json.loads(event.to_json()) == {
        "type": "investorEarningsUpdate",
        "payload": {"totalEarnings": "1.980000"},
    }


async def test_subscribers_receive_events_published_after_subscribing():
    broadcaster = InMemoryBroadcaster()
    stream = broadcaster.subscribe()
    pending = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)

    broadcaster.publish(Event(EVENT_VIEW_UPDATE, {"postId": "p1", "viewCount": 3}))

    received = await asyncio.wait_for(pending, timeout=1)
    assert received.payload["viewCount"] == 3
    await stream.aclose()


def test_slow_subscriber_drops_oldest_events():
    broadcaster = InMemoryBroadcaster(max_queue_size=2)
    queue: asyncio.Queue = asyncio.Queue(maxsize=2)
    broadcaster._subscribers.add(queue)

    for count in range(3):
        broadcaster.publish(Event(EVENT_VIEW_UPDATE, {"viewCount": count}))

    assert [queue.get_nowait().payload["viewCount"] for _ in range(2)] == [1, 2]
    assert len(broadcaster.published) == 2


async def test_redis_broadcaster_publishes_json(mocker):
    client = mocker.Mock()
    client.publish = mocker.AsyncMock(return_value=1)
    client.aclose = mocker.AsyncMock()
    broadcaster = RedisBroadcaster(client, "teasr:events")

    broadcaster.publish(Event(EVENT_VIEW_UPDATE, {"postId": "p1"}))
    await broadcaster.close()

    channel, message = client.publish.await_args.args
    assert channel == "teasr:events"
    assert json.loads(message)["type"] == EVENT_VIEW_UPDATE
    client.aclose.assert_awaited_once()


async def test_redis_publish_failure_is_logged_not_raised(mocker, caplog):
    client = mocker.Mock()
    client.publish = mocker.AsyncMock(side_effect=ConnectionError("redis down"))
    client.aclose = mocker.AsyncMock()
    broadcaster = RedisBroadcaster(client, "teasr:events")

    broadcaster.publish(Event(EVENT_VIEW_UPDATE, {"postId": "p1"}))
    await asyncio.sleep(0.01)
    await broadcaster.close()

    assert "redis down" in caplog.text
