"""
Snapshot API endpoints.

Provides the on-demand read of the latest snapshot, fetch health, and a
WebSocket push of every published snapshot.
"""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import BaseModel
from typing import Any, Dict
import asyncio
import logging

from ..engine.events import SNAPSHOT_TOPIC, EventBus
from ..engine.query import QueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/snapshot", tags=["snapshot"])


class SnapshotOut(BaseModel):
    symbol: str
    price: float
    macd: float
    signal: float
    hist: float
    ts: int


class SnapshotResult(BaseModel):
    """Command-style envelope around the latest snapshot."""
    ok: bool
    data: SnapshotOut | None = None
    error: str | None = None


class SnapshotStatus(BaseModel):
    has_snapshot: bool
    symbol: str | None = None
    age_seconds: float | None = None
    last_success_ts: float | None = None
    last_error: str | None = None
    last_error_ts: float | None = None
    consecutive_failures: int = 0

# Instances (set by main.py)
_query: QueryService | None = None
_bus: EventBus | None = None


def set_query_service(query: QueryService):
    """Set the query service instance."""
    global _query
    _query = query


def get_query_service() -> QueryService:
    """Get the query service instance."""
    if _query is None:
        raise RuntimeError("Query service not initialized")
    return _query


def set_event_bus(bus: EventBus):
    """Set the event bus instance."""
    global _bus
    _bus = bus


def get_event_bus() -> EventBus:
    """Get the event bus instance."""
    if _bus is None:
        raise RuntimeError("Event bus not initialized")
    return _bus


@router.get("/latest", response_model=SnapshotResult)
async def get_latest_snapshot(
    query: QueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    """
    Get the most recent snapshot.

    The read itself cannot fail; the ok/data/error envelope is kept so clients
    can treat every command response the same way.

    Example:
        {
            "ok": true,
            "data": {"symbol": "AAPL", "price": 101.2, "macd": 0.4,
                     "signal": -0.1, "hist": 0.3, "ts": 1760000000},
            "error": null
        }
    """
    try:
        snapshot = query.get_latest()
        return {
            "ok": True,
            "data": snapshot.to_dict() if snapshot else None,
            "error": None,
        }
    except Exception as e:
        logger.error(f"Error reading latest snapshot: {e}", exc_info=True)
        return {"ok": False, "data": None, "error": str(e)}


@router.get("/status", response_model=SnapshotStatus)
async def get_snapshot_status(
    query: QueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    """Staleness and last-error information for the held snapshot."""
    return query.get_status()


@router.websocket("/stream")
async def stream_snapshots(websocket: WebSocket):
    """Push `{topic, data}` messages for every snapshot the heartbeat publishes."""
    bus = get_event_bus()
    await websocket.accept()
    queue = bus.subscribe(SNAPSHOT_TOPIC)

    forwarder: asyncio.Task | None = None
    try:
        # Send the current value first so new clients don't wait a full heartbeat
        latest = get_query_service().get_latest()
        if latest is not None:
            await websocket.send_json({"topic": SNAPSHOT_TOPIC, "data": latest.to_dict()})

        forwarder = asyncio.create_task(_forward_snapshots(websocket, queue))

        # Inbound text or binary frames are ignored; this only waits for the disconnect
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
        logger.info("Snapshot stream client disconnected.")
    except WebSocketDisconnect:
        logger.info("Snapshot stream client disconnected.")
    finally:
        if forwarder is not None:
            forwarder.cancel()
            await asyncio.gather(forwarder, return_exceptions=True)
        bus.unsubscribe(SNAPSHOT_TOPIC, queue)


async def _forward_snapshots(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        snapshot = await queue.get()
        await websocket.send_json({"topic": SNAPSHOT_TOPIC, "data": snapshot.to_dict()})
