from __future__ import annotations

import json
import logging

import fakeredis
import pytest
import redis

from blockstage.stage import Stage
from blockstage.streams import STAGE_EVENTS_KEY, RedisStreamSink, publish_event


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


def test_publish_event_flattens_values(r: fakeredis.FakeRedis) -> None:
    publish_event(r=r, stream_key="s", fields={"type": "x", "n": 3, "data": {"a": [1, 2]}})

    [(_, fields)] = r.xrange("s")
    assert fields == {"type": "x", "n": "3", "data": '{"a": [1, 2]}'}


def test_sink_mirrors_store_updates(r: fakeredis.FakeRedis) -> None:
    stage = Stage()
    stage.subscribe(RedisStreamSink(r))

    actor = stage.add_actor(display_name="Cat", x=10, y=10)
    stage.store.update_partial(actor.id, heading=370)

    entries = r.xrange(STAGE_EVENTS_KEY)
    assert len(entries) == 2
    added, turned = (fields for _, fields in entries)
    assert added["type"] == "actor_changed"
    assert json.loads(added["actor_id"]) == actor.id
    assert json.loads(added["changed"])["added"]["display_name"] == "Cat"
    assert json.loads(turned["changed"]) == {"heading": 10.0}


class _BrokenRedis:
    def xadd(self, *args, **kwargs):  # type: ignore[no-untyped-def]
        raise redis.ConnectionError("down")


def test_sink_logs_redis_failures(caplog: pytest.LogCaptureFixture) -> None:
    stage = Stage()
    stage.subscribe(RedisStreamSink(_BrokenRedis()))  # type: ignore[arg-type]

    with caplog.at_level(logging.ERROR, logger="blockstage.streams"):
        actor = stage.add_actor()

    # The store update itself still goes through.
    assert stage.get_actor(actor.id).id == actor.id
    assert "failed to publish actor" in caplog.text
