from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Mapping

from blockstage import catalog
from blockstage.actor_store import ActorStore
from blockstage.api.models import Actor, BlockInstance, new_block_id
from blockstage.errors import ActorBusy, BlockNotFound


def new_block(type_id: str, inputs: Mapping[str, Any] | None = None) -> BlockInstance:
    """Create a block from catalog defaults plus any user-provided values."""

    block_type = catalog.lookup(type_id)
    values = catalog.default_inputs(type_id)
    for name, value in (inputs or {}).items():
        if block_type.input_spec(name) is None:
            raise ValueError(f"{type_id} has no input named {name!r}")
        values[name] = value
    return BlockInstance(type_id=type_id, inputs=values)


def copy_program(program: list[BlockInstance]) -> list[BlockInstance]:
    """Structural copy; shares nothing with the source."""

    return [b.model_copy(deep=True) for b in program]


def _fresh_copy(block: BlockInstance) -> BlockInstance:
    return BlockInstance(
        id=new_block_id(),
        type_id=block.type_id,
        inputs=dict(block.inputs),
        children=[_fresh_copy(c) for c in block.children],
    )


def iter_blocks(program: list[BlockInstance]) -> Iterator[tuple[list[BlockInstance], int, BlockInstance]]:
    """Depth-first walk yielding (owning sequence, index, block)."""

    for idx, block in enumerate(program):
        yield program, idx, block
        if block.children:
            yield from iter_blocks(block.children)


def find_block(program: list[BlockInstance], block_id: str) -> BlockInstance | None:
    return next((b for _, _, b in iter_blocks(program) if b.id == block_id), None)


def _locate(program: list[BlockInstance], block_id: str) -> tuple[list[BlockInstance], int, BlockInstance]:
    for seq, idx, block in iter_blocks(program):
        if block.id == block_id:
            return seq, idx, block
    raise BlockNotFound(block_id)


def _editable(store: ActorStore, actor_id: int) -> tuple[Actor, list[BlockInstance]]:
    # Edits never touch the live program list; the engine may be iterating it.
    actor = store.get(actor_id)
    if actor.is_running:
        raise ActorBusy(actor_id)
    return actor, copy_program(actor.program)


def _commit(store: ActorStore, actor_id: int, program: list[BlockInstance]) -> None:
    store.update_partial(actor_id, program=program)


def append(
    store: ActorStore,
    actor_id: int,
    block: BlockInstance,
    *,
    parent_id: str | None = None,
) -> BlockInstance:
    _, program = _editable(store, actor_id)
    if parent_id is None:
        program.append(block)
    else:
        _, _, parent = _locate(program, parent_id)
        if not catalog.lookup(parent.type_id).is_container:
            raise ValueError(f"Block {parent_id} ({parent.type_id}) cannot hold children")
        parent.children.append(block)
    _commit(store, actor_id, program)
    return block


def remove(store: ActorStore, actor_id: int, block_id: str) -> BlockInstance:
    _, program = _editable(store, actor_id)
    seq, idx, block = _locate(program, block_id)
    del seq[idx]
    _commit(store, actor_id, program)
    return block


def reorder(store: ActorStore, actor_id: int, from_index: int, to_index: int) -> None:
    _, program = _editable(store, actor_id)
    n = len(program)
    if not (0 <= from_index < n) or not (0 <= to_index < n):
        raise ValueError(f"reorder indices must be within 0..{n - 1}")
    block = program.pop(from_index)
    program.insert(to_index, block)
    _commit(store, actor_id, program)


def duplicate(store: ActorStore, actor_id: int, block_id: str) -> BlockInstance:
    """Deep-copy a block (children included) with fresh ids, right after the source."""

    _, program = _editable(store, actor_id)
    seq, idx, block = _locate(program, block_id)
    clone = _fresh_copy(block)
    seq.insert(idx + 1, clone)
    _commit(store, actor_id, program)
    return clone


def set_input(store: ActorStore, actor_id: int, block_id: str, name: str, value: Any) -> BlockInstance:
    """Store the raw value. Numeric coercion is deferred until execution."""

    _, program = _editable(store, actor_id)
    _, _, block = _locate(program, block_id)
    if catalog.lookup(block.type_id).input_spec(name) is None:
        raise ValueError(f"{block.type_id} has no input named {name!r}")
    block.inputs[name] = value
    _commit(store, actor_id, program)
    return block


def clear(store: ActorStore, actor_id: int) -> None:
    _editable(store, actor_id)
    _commit(store, actor_id, [])
