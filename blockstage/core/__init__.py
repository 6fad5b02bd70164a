from blockstage.core.events import ActorChanged

__all__ = ["ActorChanged"]
