import asyncio
import logging
from collections import Counter
from typing import Any, Coroutine, Dict, List, Optional

import aiohttp

from ..core.config import settings
from .channel import ChannelClient

logger = logging.getLogger(__name__)


class ExamMonitor(ChannelClient):
    """
    Teacher-side view of one exam.

    Pushed ``studentViolation`` events arrive on the channel as they happen;
    the session snapshot is polled on a fixed interval because the push stream
    misses anything sent before this monitor connected or during a reconnect.
    """

    def __init__(
        self,
        base_url: str,
        exam_id: str,
        teacher_id: str,
        poll_interval: Optional[float] = None,
        reconnect_delay: Optional[float] = None,
    ):
        super().__init__(base_url, exam_id, reconnect_delay=reconnect_delay)
        self.teacher_id = teacher_id
        self.poll_interval = settings.monitor_poll_interval_seconds if poll_interval is None else poll_interval
        self.events: List[Dict[str, Any]] = []
        self.sessions: List[Dict[str, Any]] = []
        self.poll_count = 0

    @property
    def snapshot_url(self) -> str:
        return f"{self.base_url}/api/v1/exams/{self.exam_id}/sessions"

    @property
    def connection_status(self) -> str:
        return "connected" if self.is_connected else "disconnected"

    def session_headers(self) -> Dict[str, str]:
        return {"X-User-Id": self.teacher_id, "X-User-Role": "teacher"}

    def background_tasks(self, session: aiohttp.ClientSession) -> List[Coroutine[Any, Any, None]]:
        return [self._poll_loop(session)]

    async def on_message(self, message: Dict[str, Any]) -> None:
        if message.get("type") == "studentViolation":
            self.events.append(message)

    async def _poll_loop(self, session: aiohttp.ClientSession) -> None:
        while not self._stopped.is_set():
            await self.poll_once(session)
            await self.sleep_unless_stopped(self.poll_interval)

    async def poll_once(self, session: aiohttp.ClientSession) -> bool:
        try:
            async with session.get(self.snapshot_url) as response:
                if response.status != 200:
                    logger.warning(f"Session snapshot for exam {self.exam_id} failed: HTTP {response.status}")
                    return False
                self.sessions = await response.json()
                self.poll_count += 1
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Session snapshot for exam {self.exam_id} failed: {e}")
            return False

    def active_student_count(self) -> int:
        return len({s["studentId"] for s in self.sessions if s.get("isActive")})

    def violation_counts(self) -> Dict[str, int]:
        """Per-student violation totals from the last snapshot"""
        counts: Counter = Counter()
        for session in self.sessions:
            counts[session["studentId"]] += len(session.get("violations") or [])
        return dict(counts)

    def live_violations(self, student_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if student_id is None:
            return list(self.events)
        return [event for event in self.events if event.get("studentId") == student_id]
