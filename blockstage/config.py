from __future__ import annotations

import os
from dataclasses import dataclass


MIN_SPEED = 0.1
MAX_SPEED = 5.0


@dataclass(frozen=True, slots=True)
class StageSettings:
    stage_width: float = 800.0
    stage_height: float = 500.0
    # Seconds between animation frames.
    frame_interval: float = 1 / 60
    # Multiplier applied to every block duration (2.0 = twice as fast).
    speed: float = 1.0
    # Motion history kept per actor; older points are dropped.
    max_trail_points: int = 500
    redis_url: str | None = None
    log_level: str = "INFO"

    def scaled(self, seconds: float) -> float:
        return max(0.0, seconds) / clamp_speed(self.speed)


def clamp_speed(speed: float) -> float:
    return max(MIN_SPEED, min(MAX_SPEED, speed))


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def settings_from_env() -> StageSettings:
    return StageSettings(
        stage_width=_float_env("BLOCKSTAGE_STAGE_WIDTH", 800.0),
        stage_height=_float_env("BLOCKSTAGE_STAGE_HEIGHT", 500.0),
        frame_interval=_float_env("BLOCKSTAGE_FRAME_INTERVAL", 1 / 60),
        speed=clamp_speed(_float_env("BLOCKSTAGE_SPEED", 1.0)),
        max_trail_points=max(1, int(_float_env("BLOCKSTAGE_MAX_TRAIL_POINTS", 500))),
        redis_url=os.environ.get("BLOCKSTAGE_REDIS_URL") or None,
        log_level=os.environ.get("BLOCKSTAGE_LOG_LEVEL", "INFO").upper(),
    )
