from __future__ import annotations

import asyncio

import pytest

from blockstage.errors import ActorBusy
from blockstage.stage import Stage


async def _spin(n: int = 5) -> None:
    for _ in range(n):
        await asyncio.sleep(0)


def _far_apart(stage: Stage, count: int) -> list[int]:
    return [stage.add_actor(x=100 + 150 * i, y=100 + 80 * i).id for i in range(count)]


@pytest.mark.asyncio
async def test_stop_all_converges_to_idle(stage: Stage, events) -> None:  # type: ignore[no-untyped-def]
    ids = _far_apart(stage, 3)
    for actor_id in ids:
        stage.submit_block(actor_id, "move", {"steps": 500})
        stage.submit_block(actor_id, "say", {"message": "never", "duration": 1})

    assert stage.play_all() == ids
    await _spin()
    assert all(stage.get_actor(i).is_running for i in ids)

    await stage.stop_all()

    for actor_id in ids:
        actor = stage.get_actor(actor_id)
        assert actor.is_running is False
        assert actor.current_step_index is None
        assert actor.message is None
    assert stage.is_playing is False

    # Nothing in flight may touch the store once stop_all has returned.
    seen = len(events.events)
    await _spin(20)
    assert len(events.events) == seen


@pytest.mark.asyncio
async def test_stop_right_after_play(stage: Stage) -> None:
    ids = _far_apart(stage, 2)
    for actor_id in ids:
        stage.submit_block(actor_id, "wait", {"seconds": 5})

    stage.play_all()
    # No yield: the engine tasks have not taken a single step yet.
    await stage.stop_all()

    assert [stage.get_actor(i).is_running for i in ids] == [False, False]
    assert [stage.get_actor(i).current_step_index for i in ids] == [None, None]


@pytest.mark.asyncio
async def test_stop_interrupts_say_and_clears_message(stage: Stage) -> None:
    actor = stage.add_actor()
    stage.submit_block(actor.id, "say", {"message": "hello", "duration": 60})

    stage.play_all()
    # One loop turn: the engine shows the message and suspends in its sleep.
    await asyncio.sleep(0)
    assert stage.get_actor(actor.id).message == "hello"

    await stage.stop_all()
    assert stage.get_actor(actor.id).message is None


@pytest.mark.asyncio
async def test_play_all_is_idempotent_while_running(stage: Stage) -> None:
    first, second = _far_apart(stage, 2)
    stage.submit_block(first, "turn", {"degrees": 360})

    assert stage.play_all() == [first]
    await _spin()
    stage.submit_block(second, "turn", {"degrees": 360})

    # Only the idle actor starts; the running one keeps its single engine.
    assert stage.play_all() == [second]
    assert stage.play_all() == []
    assert sorted(stage.coordinator._tasks) == [first, second]

    await stage.stop_all()


@pytest.mark.asyncio
async def test_play_all_restarts_finished_actors_from_step_zero(stage: Stage, events) -> None:  # type: ignore[no-untyped-def]
    actor = stage.add_actor(x=100, y=100)
    stage.submit_block(actor.id, "move", {"steps": 10})
    stage.submit_block(actor.id, "move", {"steps": 10})

    stage.play_all()
    await stage.wait_idle()
    assert stage.get_actor(actor.id).position.x == pytest.approx(120.0)

    assert stage.play_all() == [actor.id]
    await stage.wait_idle()
    assert stage.get_actor(actor.id).position.x == pytest.approx(140.0)
    assert events.step_indexes(actor.id) == [0, 0, 1, 0, 0, 1]


@pytest.mark.asyncio
async def test_empty_programs_are_not_started(stage: Stage) -> None:
    busy, idle = _far_apart(stage, 2)
    stage.submit_block(busy, "set_color", {"color": 2})

    assert stage.play_all() == [busy]
    await stage.wait_idle()
    assert stage.get_actor(idle).is_running is False


@pytest.mark.asyncio
async def test_stop_all_when_stopped_is_noop(stage: Stage, events) -> None:  # type: ignore[no-untyped-def]
    _far_apart(stage, 1)
    seen = len(events.events)
    await stage.stop_all()
    await stage.stop_all()
    assert len(events.events) == seen


@pytest.mark.asyncio
async def test_stop_actor_leaves_others_running(stage: Stage) -> None:
    first, second = _far_apart(stage, 2)
    stage.submit_block(first, "turn", {"degrees": 360})
    stage.submit_block(second, "turn", {"degrees": 360})
    stage.submit_block(second, "set_color", {"color": 3})

    stage.play_all()
    await _spin()
    await stage.stop_actor(first)

    assert stage.get_actor(first).is_running is False
    assert stage.get_actor(second).is_running is True
    assert stage.is_playing is True

    await stage.wait_idle()
    assert stage.get_actor(second).visual_tag == "bg-yellow-500"
    assert stage.is_playing is False


@pytest.mark.asyncio
async def test_play_single_actor(stage: Stage) -> None:
    first, second = _far_apart(stage, 2)
    stage.submit_block(first, "turn", {"degrees": 90})
    stage.submit_block(second, "set_color", {"color": 2})

    assert stage.play_actor(second) is True
    assert stage.play_actor(second) is False
    await stage.wait_idle()

    assert stage.get_actor(second).visual_tag == "bg-green-500"
    assert stage.get_actor(first).heading == 0.0
    assert stage.get_actor(first).is_running is False


@pytest.mark.asyncio
async def test_actors_progress_concurrently(stage: Stage, events) -> None:  # type: ignore[no-untyped-def]
    first, second = _far_apart(stage, 2)
    stage.submit_block(first, "turn", {"degrees": 90})
    stage.submit_block(second, "turn", {"degrees": 90})

    stage.play_all()
    await stage.wait_idle()

    order = [e.actor_id for e in events.events if "heading" in e.changed]
    last_first = max(i for i, aid in enumerate(order) if aid == first)
    first_second = min(i for i, aid in enumerate(order) if aid == second)
    # Frames interleave instead of one actor finishing before the other starts.
    assert first_second < last_first


@pytest.mark.asyncio
async def test_delete_running_actor_is_refused(stage: Stage) -> None:
    actor = stage.add_actor()
    stage.submit_block(actor.id, "wait", {"seconds": 5})

    stage.play_all()
    with pytest.raises(ActorBusy):
        stage.delete_actor(actor.id)
    with pytest.raises(ActorBusy):
        stage.submit_block(actor.id, "move")

    await stage.stop_all()
    stage.delete_actor(actor.id)
    assert stage.actors() == []


@pytest.mark.asyncio
async def test_reset_stops_and_clears(stage: Stage) -> None:
    actor = stage.add_actor()
    stage.submit_block(actor.id, "wait", {"seconds": 5})
    stage.play_all()

    await stage.reset()
    assert stage.actors() == []
    assert stage.selected_actor_id is None

    stage.init()
    assert [a.display_name for a in stage.actors()] == ["Sprite1"]
    assert stage.selected_actor_id == 1


@pytest.mark.asyncio
async def test_instant_loop_cannot_starve_stop(stage: Stage, events) -> None:  # type: ignore[no-untyped-def]
    looper, other = _far_apart(stage, 2)
    loop = stage.submit_block(looper, "repeat", {"times": 20_000})
    stage.submit_block(looper, "set_color", {"color": 1}, parent_id=loop.id)
    stage.submit_block(other, "turn", {"degrees": 90})

    stage.play_all()
    await asyncio.sleep(0)
    await stage.stop_all()

    recolors = [c for c in events.for_actor(looper) if "visual_tag" in c]
    assert 0 < len(recolors) < 10
    assert stage.get_actor(looper).is_running is False
    assert stage.get_actor(other).is_running is False


@pytest.mark.asyncio
async def test_instant_loop_interleaves_with_other_actors(stage: Stage, events) -> None:  # type: ignore[no-untyped-def]
    looper, other = _far_apart(stage, 2)
    loop = stage.submit_block(looper, "repeat", {"times": 200})
    stage.submit_block(looper, "set_color", {"color": 4}, parent_id=loop.id)
    stage.submit_block(other, "turn", {"degrees": 90})

    stage.play_all()
    await stage.wait_idle()

    order = [
        e.actor_id
        for e in events.events
        if "visual_tag" in e.changed or "heading" in e.changed
    ]
    last_recolor = max(i for i, aid in enumerate(order) if aid == looper)
    first_turn_frame = order.index(other)
    assert first_turn_frame < last_recolor
    assert stage.get_actor(other).heading == pytest.approx(90.0)
