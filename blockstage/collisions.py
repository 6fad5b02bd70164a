from __future__ import annotations

import logging
import math

from blockstage.actor_store import ActorStore
from blockstage.api.models import Actor
from blockstage.program import copy_program


logger = logging.getLogger(__name__)

Pair = tuple[int, int]


def collides(a: Actor, b: Actor) -> bool:
    distance = math.hypot(a.position.x - b.position.x, a.position.y - b.position.y)
    return distance < (a.size + b.size) / 2


class CollisionResolver:
    """Swaps programs between actors that start overlapping.

    A pair swaps once when it begins to overlap; it swaps again only after it
    has separated and touched again. Within one pass pairs are handled in
    ascending (low id, high id) order and each actor swaps at most once.
    """

    def __init__(self, store: ActorStore) -> None:
        self.store = store
        self._touching: set[Pair] = set()

    def reset(self) -> None:
        self._touching.clear()

    def overlapping_pairs(self) -> set[Pair]:
        # Fresh read: positions may have moved since any caller last looked.
        actors = self.store.actors()
        pairs: set[Pair] = set()
        for i, a in enumerate(actors):
            for b in actors[i + 1 :]:
                if collides(a, b):
                    pairs.add((a.id, b.id))
        return pairs

    def resolve(self) -> list[Pair]:
        overlapping = self.overlapping_pairs()
        fresh = sorted(overlapping - self._touching)
        self._touching = overlapping

        swapped: list[Pair] = []
        used: set[int] = set()
        for a_id, b_id in fresh:
            if a_id in used or b_id in used:
                continue
            self._swap(a_id, b_id)
            used.update((a_id, b_id))
            swapped.append((a_id, b_id))
        return swapped

    def _swap(self, a_id: int, b_id: int) -> None:
        a_program = self.store.get(a_id).program
        b_program = self.store.get(b_id).program
        self.store.update_partial(a_id, program=copy_program(b_program))
        self.store.update_partial(b_id, program=copy_program(a_program))
        logger.info("collision: actors %s and %s swapped programs", a_id, b_id)
