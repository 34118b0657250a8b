"""
Process-local registry of live exam-channel connections.

One instance is created at application startup and stored on ``app.state``;
shutdown closes every connection it still holds. Nothing here survives a
restart: clients reconnect and register again.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from ..utils.timezone import utc_now

logger = logging.getLogger(__name__)


@dataclass
class ConnectionRegistration:
    exam_id: str
    connection: WebSocket
    student_id: Optional[str] = None
    connected_at: datetime = field(default_factory=utc_now)


def is_open(connection: WebSocket) -> bool:
    return (
        connection.client_state == WebSocketState.CONNECTED
        and connection.application_state == WebSocketState.CONNECTED
    )


class ConnectionRegistry:
    def __init__(self):
        # exam id -> connection -> registration; the inner dict acts as a set
        self._exams: Dict[str, Dict[WebSocket, ConnectionRegistration]] = {}

    def register(self, exam_id: str, connection: WebSocket, student_id: Optional[str] = None) -> None:
        connections = self._exams.setdefault(exam_id, {})
        if connection in connections:
            return
        connections[connection] = ConnectionRegistration(
            exam_id=exam_id,
            connection=connection,
            student_id=student_id
        )
        logger.info(f"Connection registered for exam={exam_id} student={student_id} ({len(connections)} open)")

    def unregister(self, exam_id: str, connection: WebSocket) -> None:
        connections = self._exams.get(exam_id)
        if not connections or connection not in connections:
            return
        del connections[connection]
        if not connections:
            del self._exams[exam_id]
        logger.info(f"Connection unregistered for exam={exam_id} ({len(connections)} open)")

    def connection_count(self, exam_id: str) -> int:
        return len(self._exams.get(exam_id, {}))

    def total_connections(self) -> int:
        return sum(len(connections) for connections in self._exams.values())

    def exam_ids(self) -> List[str]:
        return list(self._exams.keys())

    def registrations(self, exam_id: str) -> List[ConnectionRegistration]:
        return list(self._exams.get(exam_id, {}).values())

    async def broadcast(self, exam_id: str, message: Dict[str, Any]) -> int:
        """Send ``message`` to every open connection of one exam; returns deliveries"""
        payload = json.dumps(message)
        delivered = 0
        failed = []

        # snapshot: sends yield, and other tasks may unregister meanwhile
        for connection in list(self._exams.get(exam_id, {})):
            if not is_open(connection):
                continue
            try:
                await connection.send_text(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Send to exam={exam_id} connection failed: {e}")
                failed.append(connection)

        for connection in failed:
            self.unregister(exam_id, connection)

        return delivered

    async def close_all(self, code: int = 1001) -> None:
        """Close every registered connection and forget them"""
        exams, self._exams = self._exams, {}
        closed = 0
        for exam_id, connections in exams.items():
            for connection in list(connections):
                if not is_open(connection):
                    continue
                try:
                    await connection.close(code=code)
                    closed += 1
                except Exception as e:
                    logger.debug(f"Closing connection for exam={exam_id} failed: {e}")
        logger.info(f"Connection registry closed {closed} connection(s)")
