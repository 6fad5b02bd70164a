from __future__ import annotations

import itertools
import logging
import random
from collections.abc import Callable
from typing import Any

from blockstage.api.models import Actor, Point
from blockstage.config import StageSettings
from blockstage.core.events import ActorChanged
from blockstage.errors import ActorBusy, ActorNotFound


logger = logging.getLogger(__name__)

Subscriber = Callable[[ActorChanged], None]

DEFAULT_COLOR = "bg-blue-500"
NEW_ACTOR_COLORS = ("bg-red-500", "bg-green-500", "bg-yellow-500", "bg-purple-500", "bg-pink-500")

_MUTABLE_FIELDS = frozenset(Actor.model_fields) - {"id"}


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


class ActorStore:
    """In-memory actor records for one stage.

    Contract:
      - `update_partial` is the only mutation path for actor state; every call
        replaces the whole record and emits one `ActorChanged` event.
      - reads always return the latest record, never a cached copy.
    """

    def __init__(self, settings: StageSettings | None = None, *, rng: random.Random | None = None) -> None:
        self.settings = settings or StageSettings()
        self._rng = rng or random.Random()
        self._actors: dict[int, Actor] = {}
        self._ids = itertools.count(1)
        self._subscribers: list[Subscriber] = []

    # ---- lifecycle -------------------------------------------------------

    def init(self) -> Actor | None:
        """Seed the default actor if the stage is empty."""

        if self._actors:
            return None
        return self.add_actor(x=100.0, y=100.0, visual_tag=DEFAULT_COLOR)

    def reset(self) -> None:
        self._actors.clear()
        self._ids = itertools.count(1)

    # ---- actors ----------------------------------------------------------

    def add_actor(
        self,
        *,
        display_name: str | None = None,
        x: float | None = None,
        y: float | None = None,
        visual_tag: str | None = None,
        size: float = 50.0,
    ) -> Actor:
        actor_id = next(self._ids)
        if x is None:
            x = self._rng.random() * 300 + 50
        if y is None:
            y = self._rng.random() * 200 + 50
        actor = Actor(
            id=actor_id,
            display_name=display_name or f"Sprite{actor_id}",
            position=self.clamp(Point(x=x, y=y)),
            size=size,
            visual_tag=visual_tag or self._rng.choice(NEW_ACTOR_COLORS),
        )
        self._actors[actor_id] = actor
        logger.info("added actor %s (%s)", actor_id, actor.display_name)
        self._publish(actor_id, {"added": actor.model_dump(mode="json")})
        return actor

    def get(self, actor_id: int) -> Actor:
        actor = self._actors.get(actor_id)
        if actor is None:
            raise ActorNotFound(actor_id)
        return actor

    def actors(self) -> list[Actor]:
        return [self._actors[k] for k in sorted(self._actors)]

    def ids(self) -> list[int]:
        return sorted(self._actors)

    def __contains__(self, actor_id: object) -> bool:
        return actor_id in self._actors

    def delete_actor(self, actor_id: int) -> None:
        actor = self.get(actor_id)
        if actor.is_running:
            raise ActorBusy(actor_id)
        del self._actors[actor_id]
        logger.info("deleted actor %s", actor_id)
        self._publish(actor_id, {"deleted": True})

    @property
    def is_any_running(self) -> bool:
        # Derived from the records so it can never disagree with them.
        return any(a.is_running for a in self._actors.values())

    # ---- mutation --------------------------------------------------------

    def clamp(self, point: Point) -> Point:
        s = self.settings
        return Point(
            x=max(0.0, min(s.stage_width, point.x)),
            y=max(0.0, min(s.stage_height, point.y)),
        )

    def update_partial(self, actor_id: int, **fields: Any) -> Actor:
        """Merge `fields` into the actor record atomically.

        Last write wins per field. Heading is normalized into [0, 360) and
        positions are clamped to the stage.
        """

        return self._merge(actor_id, fields)

    def append_trail(self, actor_id: int, point: Point, **fields: Any) -> Actor:
        """Append to the motion trail, merging `fields` in the same update.

        Subscribers get the appended point as `trail_point` rather than the
        whole trail. The stored trail keeps the newest
        `settings.max_trail_points` points.
        """

        current = self.get(actor_id)
        keep = self.settings.max_trail_points - 1
        history = current.trail[-keep:] if keep > 0 else []
        fields["trail"] = [*history, point]
        return self._merge(actor_id, fields, trail_point=point)

    def _merge(self, actor_id: int, fields: dict[str, Any], *, trail_point: Point | None = None) -> Actor:
        current = self.get(actor_id)
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown actor fields: {', '.join(sorted(unknown))}")

        if "heading" in fields:
            fields["heading"] = float(fields["heading"]) % 360.0
        if "position" in fields:
            pos = fields["position"]
            if not isinstance(pos, Point):
                pos = Point.model_validate(pos)
            fields["position"] = self.clamp(pos)

        updated = current.model_copy(update=fields)
        self._actors[actor_id] = updated

        changed = {k: _dump(v) for k, v in fields.items() if k != "trail" or trail_point is None}
        if trail_point is not None:
            changed["trail_point"] = _dump(trail_point)
        self._publish(actor_id, changed)
        return updated

    # ---- subscriptions ---------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def _publish(self, actor_id: int, changed: dict[str, Any]) -> None:
        if not self._subscribers:
            return
        event = ActorChanged.now(actor_id=actor_id, changed=changed)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("actor change subscriber failed for actor %s", actor_id)
