from __future__ import annotations

import json
import logging
from typing import Any, Mapping, cast

import redis

from blockstage.core.events import ActorChanged


logger = logging.getLogger(__name__)

STAGE_EVENTS_KEY = "blockstage:stage:events"


def _flatten(fields: Mapping[str, Any]) -> dict[str, str]:
    # Stream values are flat strings; structured values travel as JSON.
    out: dict[str, str] = {}
    for k, v in fields.items():
        out[str(k)] = v if isinstance(v, str) else json.dumps(v, ensure_ascii=False)
    return out


def publish_event(*, r: redis.Redis, stream_key: str, fields: Mapping[str, Any], maxlen: int | None = None) -> str:
    """Append one entry to a stage event stream."""

    stream_id = r.xadd(stream_key, _flatten(fields), maxlen=maxlen, approximate=maxlen is not None)
    return cast(str, stream_id)


class RedisStreamSink:
    """Store subscriber that mirrors every actor change into a Redis stream.

    Lets renderers in other processes follow the stage with XREAD instead of
    polling the HTTP API.
    """

    def __init__(self, r: redis.Redis, *, stream_key: str = STAGE_EVENTS_KEY, maxlen: int = 10_000) -> None:
        self.r = r
        self.stream_key = stream_key
        self.maxlen = maxlen

    def __call__(self, event: ActorChanged) -> None:
        try:
            publish_event(r=self.r, stream_key=self.stream_key, fields=event.to_payload(), maxlen=self.maxlen)
        except redis.RedisError:
            logger.exception("failed to publish actor %s change to %s", event.actor_id, self.stream_key)
