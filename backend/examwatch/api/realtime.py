from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from typing import Optional
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def exam_channel(
    websocket: WebSocket,
    exam_id: Optional[str] = Query(default=None, alias="examId"),
    student_id: Optional[str] = Query(default=None, alias="studentId"),
):
    """Per-exam monitoring channel shared by student clients and teacher monitors"""
    if not exam_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    registry = websocket.app.state.registry
    event_router = websocket.app.state.event_router

    # registered before the handshake completes; broadcast skips it until accepted
    registry.register(exam_id, websocket, student_id=student_id)
    try:
        await websocket.accept()
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            await event_router.dispatch(exam_id, raw)
    except WebSocketDisconnect as e:
        logger.info(f"Channel closed for exam={exam_id} student={student_id} (code {e.code})")
    except Exception as e:
        logger.error(f"Channel error for exam={exam_id}: {e}", exc_info=True)
    finally:
        registry.unregister(exam_id, websocket)
