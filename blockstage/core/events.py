from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True, slots=True)
class ActorChanged:
    """One `update_partial` call as seen by subscribers.

    `changed` holds the merged fields after normalization, JSON-friendly.
    """

    actor_id: int
    changed: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, actor_id: int, changed: dict[str, Any]) -> "ActorChanged":
        return ActorChanged(actor_id=actor_id, changed=changed, ts=datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "actor_changed",
            "actor_id": self.actor_id,
            "changed": self.changed,
            "ts": self.ts.isoformat(),
        }
