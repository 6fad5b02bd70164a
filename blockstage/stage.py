from __future__ import annotations

import random
from collections.abc import Callable
from typing import Any, Mapping

from blockstage import program as programs
from blockstage.actor_store import ActorStore, Subscriber
from blockstage.animation import Clock, MonotonicClock
from blockstage.api.models import Actor, BlockInstance
from blockstage.collisions import CollisionResolver
from blockstage.config import StageSettings
from blockstage.coordinator import Coordinator


class Stage:
    """Editor and control boundary over one actor store.

    Wires the store, collision resolver and coordinator together so callers
    (the HTTP layer, tests, an embedding UI) never reach for globals.
    """

    def __init__(
        self,
        settings: StageSettings | None = None,
        *,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or StageSettings()
        self.store = ActorStore(self.settings, rng=rng)
        self.resolver = CollisionResolver(self.store)
        self.coordinator = Coordinator(
            self.store,
            resolver=self.resolver,
            clock=clock or MonotonicClock(),
            settings=self.settings,
        )
        self._selected_actor_id: int | None = None

    # ---- lifecycle -------------------------------------------------------

    def init(self) -> None:
        seeded = self.store.init()
        if seeded is not None:
            self._selected_actor_id = seeded.id

    async def reset(self) -> None:
        await self.coordinator.stop_all()
        self.store.reset()
        self.resolver.reset()
        self._selected_actor_id = None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.store.subscribe(callback)

    # ---- actors ----------------------------------------------------------

    def actors(self) -> list[Actor]:
        return self.store.actors()

    def get_actor(self, actor_id: int) -> Actor:
        return self.store.get(actor_id)

    def add_actor(self, **overrides: Any) -> Actor:
        actor = self.store.add_actor(**overrides)
        if self._selected_actor_id is None:
            self._selected_actor_id = actor.id
        return actor

    def delete_actor(self, actor_id: int) -> None:
        self.store.delete_actor(actor_id)
        if self._selected_actor_id == actor_id:
            remaining = self.store.ids()
            self._selected_actor_id = remaining[0] if remaining else None

    def select_actor(self, actor_id: int) -> Actor:
        actor = self.store.get(actor_id)
        self._selected_actor_id = actor_id
        return actor

    @property
    def selected_actor_id(self) -> int | None:
        return self._selected_actor_id

    # ---- programs --------------------------------------------------------

    def submit_block(
        self,
        actor_id: int,
        type_id: str,
        initial_inputs: Mapping[str, Any] | None = None,
        *,
        parent_id: str | None = None,
    ) -> BlockInstance:
        block = programs.new_block(type_id, initial_inputs)
        return programs.append(self.store, actor_id, block, parent_id=parent_id)

    def edit_input(self, actor_id: int, block_id: str, name: str, raw_value: Any) -> BlockInstance:
        return programs.set_input(self.store, actor_id, block_id, name, raw_value)

    def reorder_blocks(self, actor_id: int, from_index: int, to_index: int) -> None:
        programs.reorder(self.store, actor_id, from_index, to_index)

    def remove_block(self, actor_id: int, block_id: str) -> BlockInstance:
        return programs.remove(self.store, actor_id, block_id)

    def duplicate_block(self, actor_id: int, block_id: str) -> BlockInstance:
        return programs.duplicate(self.store, actor_id, block_id)

    def clear_program(self, actor_id: int) -> None:
        programs.clear(self.store, actor_id)

    # ---- control ---------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self.coordinator.is_playing

    def play_all(self) -> list[int]:
        return self.coordinator.play_all()

    def play_actor(self, actor_id: int) -> bool:
        return self.coordinator.play_actor(actor_id)

    async def stop_all(self) -> None:
        await self.coordinator.stop_all()

    async def stop_actor(self, actor_id: int) -> None:
        await self.coordinator.stop_actor(actor_id)

    async def wait_idle(self) -> None:
        await self.coordinator.wait_idle()
