import json
import logging
from typing import Any, Dict

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import AsyncSessionLocal
from ..schemas.messages import HeartbeatMessage, ViolationMessage, StudentViolationEvent
from ..services.session_store import SessionStore
from ..utils.timezone import iso_now
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class EventRouter:
    """
    Validates inbound channel frames, persists them through the session store
    and fans derived events out to the exam's connections.

    Every failure is contained to the frame that caused it: nothing raised
    here may end a connection's receive loop.
    """

    def __init__(self, registry: ConnectionRegistry, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.registry = registry
        self.session_factory = session_factory
        self._handlers = {
            "heartbeat": self.handle_heartbeat,
            "violation": self.handle_violation,
        }

    async def dispatch(self, exam_id: str, raw: str) -> None:
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Dropping non-JSON frame on exam={exam_id}: {e}")
            return

        if not isinstance(payload, dict):
            logger.warning(f"Dropping non-object frame on exam={exam_id}")
            return

        message_type = payload.get("type")
        handler = self._handlers.get(message_type) if isinstance(message_type, str) else None
        if handler is None:
            logger.warning(f"Dropping frame with unknown type {message_type!r} on exam={exam_id}")
            return

        try:
            await handler(exam_id, payload)
        except ValidationError as e:
            logger.warning(f"Dropping malformed {message_type} frame on exam={exam_id}: {e.error_count()} error(s)")
        except Exception as e:
            logger.error(f"Failed to process {message_type} frame on exam={exam_id}: {e}", exc_info=True)

    async def handle_heartbeat(self, exam_id: str, payload: Dict[str, Any]) -> None:
        message = HeartbeatMessage.model_validate(payload)

        async with self.session_factory() as db:
            store = SessionStore(db)
            session = await store.get_active_session(exam_id, message.student_id)
            if session is None:
                logger.debug(f"Heartbeat without active session: exam={exam_id} student={message.student_id}")
                return
            await store.update_session_activity(session.id)

    async def handle_violation(self, exam_id: str, payload: Dict[str, Any]) -> None:
        message = ViolationMessage.model_validate(payload)
        received_at = iso_now()

        async with self.session_factory() as db:
            store = SessionStore(db)
            session = await store.get_active_session(exam_id, message.student_id)
            if session is None:
                logger.debug(f"Violation without active session: exam={exam_id} student={message.student_id}")
                return
            await store.add_violation(session.id, f"{message.violation} at {received_at}")

        # committed above; monitors never see a violation the store lacks
        event = StudentViolationEvent(
            student_id=message.student_id,
            violation=message.violation,
            timestamp=received_at
        )
        delivered = await self.registry.broadcast(exam_id, event.model_dump(by_alias=True))
        logger.info(f"Violation '{message.violation}' for student={message.student_id} on exam={exam_id} sent to {delivered} connection(s)")
