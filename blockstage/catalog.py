from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal, Mapping

from blockstage.errors import UnknownBlockType

logger = logging.getLogger(__name__)


InputKind = Literal["number", "text"]


class BlockCategory(StrEnum):
    motion = "motion"
    looks = "looks"


@dataclass(frozen=True, slots=True)
class InputSpec:
    name: str
    kind: InputKind
    default: int | float | str
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True, slots=True)
class BlockType:
    id: str
    category: BlockCategory
    label: str
    inputs: tuple[InputSpec, ...] = ()
    is_container: bool = False
    unit: str = ""

    def input_spec(self, name: str) -> InputSpec | None:
        return next((spec for spec in self.inputs if spec.name == name), None)


_CATALOG: dict[str, BlockType] = {}


def register_block_type(block_type: BlockType) -> BlockType:
    """Add a block type to the catalog.

    A new block also needs a handler (see `blockstage.handlers.register_handler`);
    nothing else has to change.
    """

    if block_type.id in _CATALOG:
        raise ValueError(f"Block type already registered: {block_type.id}")
    _CATALOG[block_type.id] = block_type
    return block_type


def lookup(type_id: str) -> BlockType:
    try:
        return _CATALOG[type_id]
    except KeyError:
        raise UnknownBlockType(type_id) from None


def find(type_id: str) -> BlockType | None:
    return _CATALOG.get(type_id)


def all_block_types() -> list[BlockType]:
    return list(_CATALOG.values())


def list_by_category(category: BlockCategory | str) -> list[BlockType]:
    # Registration order; only meaningful for palette display.
    cat = BlockCategory(category)
    return [bt for bt in _CATALOG.values() if bt.category == cat]


def default_inputs(type_id: str) -> dict[str, Any]:
    return {spec.name: spec.default for spec in lookup(type_id).inputs}


def _parse_number(value: Any) -> int | float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        parsed: int | float = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = int(text)
        except ValueError:
            try:
                parsed = float(text)
            except ValueError:
                return None
    else:
        return None

    if isinstance(parsed, float) and not math.isfinite(parsed):
        return None
    return parsed


def coerce_number(spec: InputSpec, value: Any) -> int | float:
    parsed = _parse_number(value)
    if parsed is None:
        logger.debug("input %r: %r is not numeric, using default %r", spec.name, value, spec.default)
        parsed = spec.default  # type: ignore[assignment]
    if spec.min is not None and parsed < spec.min:
        parsed = spec.min
    if spec.max is not None and parsed > spec.max:
        parsed = spec.max
    return parsed  # type: ignore[return-value]


def resolve_inputs(block_type: BlockType, raw: Mapping[str, Any] | None) -> dict[str, Any]:
    """Validate raw editor values against the schema at read time.

    Never raises for bad values: unparsable numbers fall back to the schema default.
    """

    raw = raw or {}
    resolved: dict[str, Any] = {}
    for spec in block_type.inputs:
        value = raw.get(spec.name, spec.default)
        if spec.kind == "number":
            resolved[spec.name] = coerce_number(spec, value)
        else:
            resolved[spec.name] = spec.default if value is None else str(value)
    return resolved


MOVE = register_block_type(
    BlockType("move", BlockCategory.motion, "Move", (InputSpec("steps", "number", 10),), unit="steps")
)
TURN = register_block_type(
    BlockType("turn", BlockCategory.motion, "Turn", (InputSpec("degrees", "number", 15),), unit="degrees")
)
GOTO = register_block_type(
    BlockType(
        "goto",
        BlockCategory.motion,
        "Go to",
        (InputSpec("x", "number", 0), InputSpec("y", "number", 0)),
    )
)
WAIT = register_block_type(
    BlockType("wait", BlockCategory.motion, "Wait", (InputSpec("seconds", "number", 1, min=0),), unit="seconds")
)
REPEAT = register_block_type(
    BlockType(
        "repeat",
        BlockCategory.motion,
        "Repeat",
        (InputSpec("times", "number", 10),),
        is_container=True,
        unit="times",
    )
)
SAY = register_block_type(
    BlockType(
        "say",
        BlockCategory.looks,
        "Say",
        (InputSpec("message", "text", "Hello!"), InputSpec("duration", "number", 2, min=0)),
        unit="sec",
    )
)
THINK = register_block_type(
    BlockType(
        "think",
        BlockCategory.looks,
        "Think",
        (InputSpec("message", "text", "Hmm..."), InputSpec("duration", "number", 2, min=0)),
        unit="sec",
    )
)
CHANGE_SIZE = register_block_type(
    BlockType("change_size", BlockCategory.looks, "Change size by", (InputSpec("change", "number", 10),))
)
SET_COLOR = register_block_type(
    BlockType("set_color", BlockCategory.looks, "Set color", (InputSpec("color", "number", 0, min=0),))
)
