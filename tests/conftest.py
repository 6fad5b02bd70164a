from __future__ import annotations

import asyncio
import random
from collections.abc import Generator

import pytest

from blockstage.config import StageSettings
from blockstage.core.events import ActorChanged
from blockstage.stage import Stage


class FakeClock:
    """Virtual time: every sleep advances the clock and yields to the loop once."""

    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += max(0.0, seconds)
        await asyncio.sleep(0)


class EventLog:
    def __init__(self) -> None:
        self.events: list[ActorChanged] = []

    def __call__(self, event: ActorChanged) -> None:
        self.events.append(event)

    def for_actor(self, actor_id: int) -> list[dict]:
        return [e.changed for e in self.events if e.actor_id == actor_id]

    def step_indexes(self, actor_id: int) -> list[int]:
        return [
            c["current_step_index"]
            for c in self.for_actor(actor_id)
            if c.get("current_step_index") is not None
        ]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> StageSettings:
    return StageSettings()


@pytest.fixture()
def stage(clock: FakeClock, settings: StageSettings) -> Stage:
    # Empty stage; tests add the actors they need.
    return Stage(settings, clock=clock, rng=random.Random(7))


@pytest.fixture()
def events(stage: Stage) -> Generator[EventLog, None, None]:
    log = EventLog()
    unsubscribe = stage.subscribe(log)
    yield log
    unsubscribe()


@pytest.fixture()
def client(clock: FakeClock):
    """FastAPI TestClient bound to a fresh process-wide stage on virtual time."""

    from fastapi.testclient import TestClient

    from blockstage.main import app
    from blockstage.singleton import init_stage, reset_stage_for_tests

    reset_stage_for_tests()
    init_stage(settings=StageSettings(), clock=clock, rng=random.Random(7))
    with TestClient(app) as c:
        yield c
    reset_stage_for_tests()
