from __future__ import annotations


class UnknownBlockType(ValueError):
    def __init__(self, type_id: str) -> None:
        super().__init__(f"Unknown block type: {type_id}")
        self.type_id = type_id


class ActorNotFound(ValueError):
    def __init__(self, actor_id: int) -> None:
        super().__init__(f"Actor not found: {actor_id}")
        self.actor_id = actor_id


class BlockNotFound(ValueError):
    def __init__(self, block_id: str) -> None:
        super().__init__(f"Block not found: {block_id}")
        self.block_id = block_id


class ActorBusy(ValueError):
    """Raised when a program or actor mutation hits a running actor.

    Recoverable: stop the actor (or the whole stage) and retry.
    """

    def __init__(self, actor_id: int) -> None:
        super().__init__(f"Actor {actor_id} is running; stop it before editing")
        self.actor_id = actor_id
