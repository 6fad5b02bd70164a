from __future__ import annotations

from blockstage.singleton import get_stage as _get_stage
from blockstage.stage import Stage


def get_stage() -> Stage:
    return _get_stage()
