from __future__ import annotations

import asyncio
import logging
from functools import partial

from blockstage.actor_store import ActorStore
from blockstage.animation import Clock, MonotonicClock
from blockstage.collisions import CollisionResolver
from blockstage.config import StageSettings
from blockstage.engine import ActorEngine
from blockstage.fsm import RunPhase


logger = logging.getLogger(__name__)


class Coordinator:
    """Runs one engine task per actor on the current event loop.

    Contract:
      - at most one engine is active per actor;
      - once `stop_all`/`stop_actor` returns, the stopped actors are idle and
        no timed work of theirs can touch the store again.
    """

    def __init__(
        self,
        store: ActorStore,
        *,
        resolver: CollisionResolver | None = None,
        clock: Clock | None = None,
        settings: StageSettings | None = None,
    ) -> None:
        self.store = store
        self.resolver = resolver or CollisionResolver(store)
        self.clock = clock or MonotonicClock()
        self.settings = settings or store.settings
        self._engines: dict[int, ActorEngine] = {}
        self._tasks: dict[int, asyncio.Task[RunPhase]] = {}

    @property
    def is_playing(self) -> bool:
        return self.store.is_any_running

    def running_actor_ids(self) -> list[int]:
        return [a.id for a in self.store.actors() if a.is_running]

    def play_all(self) -> list[int]:
        """Start every idle actor that has a program. Must run inside the event loop."""

        started = [a.id for a in self.store.actors() if self._start(a.id)]
        if started:
            logger.info("play: started actors %s", started)
        return started

    def play_actor(self, actor_id: int) -> bool:
        return self._start(actor_id)

    async def stop_all(self) -> None:
        await self._stop(list(self._engines))

    async def stop_actor(self, actor_id: int) -> None:
        self.store.get(actor_id)
        await self._stop([actor_id])

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    def _start(self, actor_id: int) -> bool:
        actor = self.store.get(actor_id)
        previous = self._tasks.get(actor_id)
        if previous is not None and previous.done():
            self._on_done(actor_id, previous)
        if not actor.program or actor.is_running or actor_id in self._tasks:
            return False

        engine = ActorEngine(
            store=self.store,
            actor_id=actor_id,
            resolver=self.resolver,
            clock=self.clock,
            settings=self.settings,
        )
        engine.begin()
        task = asyncio.get_running_loop().create_task(engine.run(), name=f"blockstage-actor-{actor_id}")
        self._engines[actor_id] = engine
        self._tasks[actor_id] = task
        task.add_done_callback(partial(self._on_done, actor_id))
        return True

    def _on_done(self, actor_id: int, task: asyncio.Task[RunPhase]) -> None:
        if self._tasks.get(actor_id) is not task:
            return
        del self._tasks[actor_id]
        self._engines.pop(actor_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("actor %s: engine task failed", actor_id, exc_info=task.exception())

    async def _stop(self, actor_ids: list[int]) -> None:
        engines = [(aid, self._engines[aid]) for aid in actor_ids if aid in self._engines]
        if not engines:
            return

        tasks: list[asyncio.Task[RunPhase]] = []
        for aid, engine in engines:
            engine.request_cancel()
            task = self._tasks.get(aid)
            if task is not None:
                task.cancel()
                tasks.append(task)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        for aid, engine in engines:
            # A task cancelled before its first step never ran its own cleanup.
            engine.settle(RunPhase.cancelled)
            if self._engines.get(aid) is engine:
                del self._engines[aid]
                self._tasks.pop(aid, None)

        logger.info("stop: actors %s idle", [aid for aid, _ in engines])
