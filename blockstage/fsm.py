from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine


class RunPhase(StrEnum):
    idle = "idle"
    running = "running"
    completed = "completed"
    cancelled = "cancelled"


class ActorRunFSM(StateMachine):
    """Lifecycle of one actor's engine.

    idle -> running -> (completed | cancelled) -> idle

    The engine drives the transitions; the FSM only guards them, so a second
    `begin` while running fails instead of starting a duplicate run.
    """

    idle = State(RunPhase.idle.value, value=RunPhase.idle.value, initial=True)
    running = State(RunPhase.running.value, value=RunPhase.running.value)
    completed = State(RunPhase.completed.value, value=RunPhase.completed.value)
    cancelled = State(RunPhase.cancelled.value, value=RunPhase.cancelled.value)

    begin = idle.to(running)
    finish = running.to(completed)
    abort = running.to(cancelled)
    settle = completed.to(idle) | cancelled.to(idle)

    def __init__(self, actor_id: int):
        self.actor_id = actor_id
        super().__init__()

    @property
    def phase(self) -> RunPhase:
        return RunPhase(str(self.current_state.value))
