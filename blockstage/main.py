import logging
from collections.abc import Callable

from fastapi import FastAPI

from blockstage import __version__
from blockstage.api.routes import router
from blockstage.config import settings_from_env
from blockstage.infra.redis_client import create_redis
from blockstage.singleton import get_stage, init_stage
from blockstage.streams import RedisStreamSink
from blockstage.websocket_hub import hub

app = FastAPI(title="blockstage", version=__version__)
app.include_router(router)
# Configure logging
logging.basicConfig(level=settings_from_env().log_level)
logger = logging.getLogger(__name__)

_unsubscribers: list[Callable[[], None]] = []


@app.on_event("startup")
async def _startup() -> None:
    stage = init_stage()
    _unsubscribers.append(stage.subscribe(hub.on_actor_changed))

    redis_url = stage.settings.redis_url
    if redis_url:
        _unsubscribers.append(stage.subscribe(RedisStreamSink(create_redis(redis_url))))
        logger.info("mirroring stage events to redis")


@app.on_event("shutdown")
async def _shutdown() -> None:
    await get_stage().stop_all()
    while _unsubscribers:
        _unsubscribers.pop()()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "blockstage", "version": __version__}
