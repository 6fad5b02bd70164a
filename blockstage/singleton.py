from __future__ import annotations

import random

from blockstage.animation import Clock
from blockstage.config import StageSettings, settings_from_env
from blockstage.stage import Stage


_STAGE: Stage | None = None


def init_stage(
    *,
    settings: StageSettings | None = None,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> Stage:
    """Create the process-wide stage once and seed the default actor.

    Safe to call multiple times; subsequent calls return the existing instance.
    """

    global _STAGE
    if _STAGE is None:
        _STAGE = Stage(settings or settings_from_env(), clock=clock, rng=rng)
        _STAGE.init()
    return _STAGE


def reset_stage_for_tests() -> None:
    """Drop the cached stage so tests can build one with a fake clock."""

    global _STAGE
    _STAGE = None


def get_stage() -> Stage:
    if _STAGE is None:
        raise RuntimeError("Stage not initialized. Call init_stage() at startup.")
    return _STAGE
