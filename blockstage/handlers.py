from __future__ import annotations

import math
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from blockstage.animation import lerp
from blockstage.api.models import Point

if TYPE_CHECKING:
    from blockstage.engine import StepContext


Handler = Callable[["StepContext", dict[str, Any]], Awaitable[None]]

_HANDLERS: dict[str, Handler] = {}

# Base durations before the speed multiplier.
MOVE_SECONDS_PER_STEP = 0.05
TURN_SECONDS_PER_DEGREE = 0.01
GOTO_SECONDS_PER_PIXEL = 0.005
SIZE_SECONDS_PER_UNIT = 0.01

MIN_SIZE = 20.0
MAX_SIZE = 100.0

THINK_PREFIX = "💭 "

COLOR_PALETTE = (
    "bg-red-500",
    "bg-blue-500",
    "bg-green-500",
    "bg-yellow-500",
    "bg-purple-500",
    "bg-pink-500",
)


def register_handler(type_id: str) -> Callable[[Handler], Handler]:
    def _decorator(fn: Handler) -> Handler:
        _HANDLERS[type_id] = fn
        return fn

    return _decorator


def get_handler(type_id: str) -> Handler | None:
    return _HANDLERS.get(type_id)


@register_handler("move")
async def move(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    actor = ctx.actor
    steps = float(inputs["steps"])
    radians = math.radians(actor.heading)
    target = Point(
        x=actor.position.x + math.cos(radians) * steps,
        y=actor.position.y + math.sin(radians) * steps,
    )
    await ctx.glide_to(target, ctx.settings.scaled(abs(steps) * MOVE_SECONDS_PER_STEP))


@register_handler("turn")
async def turn(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    start = ctx.actor.heading
    degrees = float(inputs["degrees"])

    await ctx.tween(
        ctx.settings.scaled(abs(degrees) * TURN_SECONDS_PER_DEGREE),
        lambda t: ctx.update(heading=start + degrees * t),
    )


@register_handler("goto")
async def goto(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    actor = ctx.actor
    target = ctx.clamp(Point(x=float(inputs["x"]), y=float(inputs["y"])))
    distance = math.hypot(target.x - actor.position.x, target.y - actor.position.y)
    await ctx.glide_to(target, ctx.settings.scaled(distance * GOTO_SECONDS_PER_PIXEL))


@register_handler("wait")
async def wait(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    await ctx.sleep(ctx.settings.scaled(float(inputs["seconds"])))


async def _show_message(ctx: "StepContext", message: str, seconds: float) -> None:
    ctx.update(message=message)
    await ctx.sleep(ctx.settings.scaled(seconds))
    ctx.update(message=None)


@register_handler("say")
async def say(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    await _show_message(ctx, inputs["message"], float(inputs["duration"]))


@register_handler("think")
async def think(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    await _show_message(ctx, f"{THINK_PREFIX}{inputs['message']}", float(inputs["duration"]))


@register_handler("change_size")
async def change_size(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    start = ctx.actor.size
    target = max(MIN_SIZE, min(MAX_SIZE, start + float(inputs["change"])))

    await ctx.tween(
        ctx.settings.scaled(abs(target - start) * SIZE_SECONDS_PER_UNIT),
        lambda t: ctx.update(size=lerp(start, target, t)),
    )


@register_handler("set_color")
async def set_color(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    index = int(inputs["color"]) % len(COLOR_PALETTE)
    ctx.update(visual_tag=COLOR_PALETTE[index])


@register_handler("repeat")
async def repeat(ctx: "StepContext", inputs: dict[str, Any]) -> None:
    """Run the loop body `times` times; collisions are resolved after each pass."""

    children = ctx.block.children
    if not children:
        return

    for _ in range(max(0, int(inputs["times"]))):
        await ctx.run_children(children)
        await ctx.iteration_settled()
