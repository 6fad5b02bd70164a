from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from blockstage import catalog
from blockstage.actor_store import ActorStore
from blockstage.animation import Clock, animate, ease_out_cubic, lerp, linear
from blockstage.api.models import Actor, BlockInstance, Point
from blockstage.config import StageSettings
from blockstage.fsm import ActorRunFSM, RunPhase
from blockstage.handlers import get_handler

if TYPE_CHECKING:
    from blockstage.collisions import CollisionResolver


logger = logging.getLogger(__name__)


class ExecutionCancelled(Exception):
    """Raised at a checkpoint once a stop was requested for the engine."""


@dataclass(slots=True)
class StepContext:
    """What a block handler sees while it runs.

    Handlers mutate the actor only through the store helpers below. Every
    suspension point ends in a checkpoint, so a stopped engine never writes again.
    """

    engine: "ActorEngine"
    block: BlockInstance

    @property
    def actor(self) -> Actor:
        # Always the latest record, never a copy captured before a suspension.
        return self.engine.store.get(self.engine.actor_id)

    @property
    def settings(self) -> StageSettings:
        return self.engine.settings

    def update(self, **fields: object) -> Actor:
        return self.engine.store.update_partial(self.engine.actor_id, **fields)

    def clamp(self, point: Point) -> Point:
        return self.engine.store.clamp(point)

    async def sleep(self, seconds: float) -> None:
        await self.engine.clock.sleep(seconds)
        self.engine.checkpoint()

    async def tween(
        self,
        duration: float,
        on_frame: Callable[[float], None],
        *,
        easing: Callable[[float], float] = linear,
    ) -> None:
        await animate(
            clock=self.engine.clock,
            duration=duration,
            frame_interval=self.settings.frame_interval,
            on_frame=on_frame,
            easing=easing,
            should_stop=lambda: self.engine.cancel_requested,
        )
        self.engine.checkpoint()

    async def glide_to(self, target: Point, duration: float) -> None:
        """Ease-out positional motion, recording every frame in the trail."""

        store = self.engine.store
        actor_id = self.engine.actor_id
        start = self.actor.position
        target = self.clamp(target)

        def _frame(t: float) -> None:
            p = Point(x=lerp(start.x, target.x, t), y=lerp(start.y, target.y, t))
            store.append_trail(actor_id, p, position=p)

        await self.tween(duration, _frame, easing=ease_out_cubic)

    async def run_children(self, blocks: list[BlockInstance]) -> None:
        await self.engine.run_sequence(blocks)

    async def iteration_settled(self) -> None:
        await self.engine.pass_turn()
        self.engine.resolver.resolve()


class ActorEngine:
    """Interpreter for one actor's program.

    Walks the top-level program by index, re-reading the program before each
    step so a collision swap applies from the next step on. Containers run
    their children through `run_sequence` without touching the step index.
    """

    def __init__(
        self,
        *,
        store: ActorStore,
        actor_id: int,
        resolver: "CollisionResolver",
        clock: Clock,
        settings: StageSettings | None = None,
    ) -> None:
        self.store = store
        self.actor_id = actor_id
        self.resolver = resolver
        self.clock = clock
        self.settings = settings or store.settings
        self.fsm = ActorRunFSM(actor_id)
        self._cancel_requested = False

    @property
    def phase(self) -> RunPhase:
        return self.fsm.phase

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def request_cancel(self) -> None:
        self._cancel_requested = True

    def checkpoint(self) -> None:
        if self._cancel_requested:
            raise ExecutionCancelled()

    async def pass_turn(self) -> None:
        """Let other actors and the stop path run, even after a step that never suspended."""

        await asyncio.sleep(0)
        self.checkpoint()

    def begin(self) -> None:
        self.fsm.begin()
        self._cancel_requested = False
        self.store.update_partial(self.actor_id, is_running=True, current_step_index=0)
        logger.info("actor %s: running", self.actor_id)

    async def run(self) -> RunPhase:
        outcome = RunPhase.cancelled
        try:
            idx = 0
            while True:
                self.checkpoint()
                program = self.store.get(self.actor_id).program
                if idx >= len(program):
                    break
                block = program[idx]
                self.store.update_partial(self.actor_id, current_step_index=idx)
                await self.dispatch(block)
                await self.pass_turn()
                self.resolver.resolve()
                idx += 1
            outcome = RunPhase.completed
        except ExecutionCancelled:
            pass
        except Exception:
            logger.exception("actor %s: program failed, stopping", self.actor_id)
        finally:
            self.settle(outcome)
        return outcome

    async def run_sequence(self, blocks: list[BlockInstance]) -> None:
        # Iterate a snapshot: the step in flight finishes against the sequence it started with.
        for block in list(blocks):
            self.checkpoint()
            await self.dispatch(block)

    async def dispatch(self, block: BlockInstance) -> None:
        handler = get_handler(block.type_id)
        block_type = catalog.find(block.type_id)
        if handler is None or block_type is None:
            logger.warning("actor %s: skipping block %s of unknown type %r", self.actor_id, block.id, block.type_id)
            return
        inputs = catalog.resolve_inputs(block_type, block.inputs)
        await handler(StepContext(engine=self, block=block), inputs)

    def settle(self, outcome: RunPhase) -> None:
        """Leave Running for `outcome` and return to Idle. Safe to call twice."""

        if self.fsm.phase != RunPhase.running:
            return
        if outcome == RunPhase.completed:
            self.fsm.finish()
        else:
            self.fsm.abort()

        fields: dict[str, object] = {"is_running": False, "current_step_index": None}
        if outcome == RunPhase.cancelled:
            fields["message"] = None
        if self.actor_id in self.store:
            self.store.update_partial(self.actor_id, **fields)

        self.fsm.settle()
        logger.info("actor %s: %s", self.actor_id, outcome.value)
