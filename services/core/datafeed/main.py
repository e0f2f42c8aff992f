from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI

from .api import snapshot as snapshot_api
from .config import get_settings
from .engine.events import EventBus
from .engine.heartbeat import HeartbeatScheduler
from .engine.query import QueryService
from .engine.retry import RetryExecutor
from .engine.store import SnapshotStore
from .providers.selector import build_provider


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

store = SnapshotStore()
bus = EventBus(settings.event_queue_size)
query = QueryService(store)
scheduler: HeartbeatScheduler | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup/shutdown."""
    global scheduler

    snapshot_api.set_query_service(query)
    snapshot_api.set_event_bus(bus)

    provider = build_provider(settings)
    scheduler = HeartbeatScheduler(
        symbol=settings.get_symbol(),
        executor=RetryExecutor(provider, settings.retry_policy()),
        store=store,
        publisher=bus,
        interval_seconds=settings.heartbeat_interval_seconds,
    )
    scheduler.start()

    yield

    # Shutdown: stop heartbeat, then release provider resources
    await scheduler.stop(grace_seconds=settings.shutdown_grace_seconds)
    close = getattr(provider, "close", None)
    if close is not None:
        await close()


app = FastAPI(
    title="Apex Market Heartbeat API",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(snapshot_api.router)


@app.get("/health")
async def health() -> dict[str, Any]:
    return {
        "ok": True,
        "ts": int(time.time()),
        "provider": settings.get_provider(),
        "symbol": settings.get_symbol(),
        "heartbeat": {
            "running": scheduler.running if scheduler else False,
            "state": scheduler.state.value if scheduler else None,
            "ticks": scheduler.ticks if scheduler else 0,
        },
    }


def run() -> None:
    """Serve the API with uvicorn using the configured host/port."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
