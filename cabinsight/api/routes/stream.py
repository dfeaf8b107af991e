from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from cabinsight.api.schemas.models import DetectionSchema, TickSchema
from cabinsight.api.services.state import get_engine
from cabinsight.core.types import TickUpdate

router = APIRouter()

logger = logging.getLogger(__name__)

UPDATE_WAIT_S = 0.1


def tick_payload(update: TickUpdate) -> dict[str, Any]:
    """Serialize a tick update into the WebSocket JSON payload."""

    return TickSchema(
        position_ms=update.position_ms,
        position_label=update.position_label,
        detections=[
            DetectionSchema(bbox=d.bbox, confidence=d.confidence, label=d.label)
            for d in update.detections
        ],
        people=len(update.detections),
        snapshot_count=update.snapshot_count,
        source=update.source.value if update.source is not None else None,
        frame_size=update.frame_size,
    ).model_dump()


def _is_closed_send_error(exc: BaseException) -> bool:
    # Uvicorn raises this when an ASGI websocket.send happens after close.
    if not isinstance(exc, RuntimeError):
        return False
    msg = str(exc)
    return "Unexpected ASGI message 'websocket.send'" in msg or "response already completed" in msg


@router.websocket("/stream/detections")
async def stream_detections(ws: WebSocket):
    await ws.accept()

    async def _poll_and_handle_ping() -> None:
        # Avoid concurrent send() calls: this is called from the main loop.
        try:
            msg = await asyncio.wait_for(ws.receive_json(), timeout=0.001)
        except asyncio.TimeoutError:
            return
        except WebSocketDisconnect:
            raise
        except Exception:
            return

        if not isinstance(msg, dict) or msg.get("type") != "ping":
            return
        try:
            await ws.send_json({"type": "pong", "t": msg.get("t"), "server_time": time.time()})
        except Exception as e:
            if _is_closed_send_error(e) or isinstance(e, WebSocketDisconnect):
                raise WebSocketDisconnect() from e

    try:
        while True:
            await _poll_and_handle_ping()
            engine = await asyncio.to_thread(get_engine)
            # The engine keeps only the newest update; a slow client skips stale ticks.
            update = await asyncio.to_thread(engine.next_update, UPDATE_WAIT_S)
            if update is not None:
                try:
                    await ws.send_json(tick_payload(update))
                except Exception as e:
                    if _is_closed_send_error(e) or isinstance(e, WebSocketDisconnect):
                        return
                    # Keep the websocket alive even if one update fails serialization.
                    logger.exception("Failed to send tick update")
    except WebSocketDisconnect:
        return
    except Exception:
        logger.exception("Detections websocket crashed")
        try:
            await ws.close(code=1011)
        except Exception:
            logger.debug("Websocket already closed")
        return
