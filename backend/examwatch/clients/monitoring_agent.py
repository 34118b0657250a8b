"""
Student-side monitoring agent.

Reference implementation of the browser contract: a heartbeat every
``heartbeat_interval`` seconds while connected, and one violation frame per
detector firing. Detectors are independent; a single tab switch usually fires
both the visibility and the blur detector and both are reported.
"""
import asyncio
import logging
from contextlib import suppress
from typing import Any, Dict, List, Optional

import aiohttp

from ..core.config import settings
from ..utils.timezone import iso_now
from .channel import ChannelClient

logger = logging.getLogger(__name__)

FULLSCREEN_EXIT = "Exited fullscreen mode"
TAB_HIDDEN = "Tab/window switched away"
WINDOW_BLUR = "Window lost focus"


def heartbeat_message(student_id: str) -> Dict[str, Any]:
    return {"type": "heartbeat", "studentId": student_id, "timestamp": iso_now()}


def violation_message(student_id: str, violation: str) -> Dict[str, Any]:
    return {"type": "violation", "studentId": student_id, "violation": violation, "timestamp": iso_now()}


class MonitoringAgent(ChannelClient):
    def __init__(
        self,
        base_url: str,
        exam_id: str,
        student_id: str,
        require_fullscreen: bool = True,
        heartbeat_interval: Optional[float] = None,
        reconnect_delay: Optional[float] = None,
    ):
        super().__init__(base_url, exam_id, reconnect_delay=reconnect_delay)
        self.student_id = student_id
        self.require_fullscreen = require_fullscreen
        self.heartbeat_interval = settings.heartbeat_interval_seconds if heartbeat_interval is None else heartbeat_interval
        # every detection, including ones that could not be sent
        self.violations: List[str] = []
        self._heartbeat_task: Optional[asyncio.Task] = None

    @property
    def violation_count(self) -> int:
        return len(self.violations)

    def channel_params(self) -> Dict[str, str]:
        return {"examId": self.exam_id, "studentId": self.student_id}

    async def on_open(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def on_close(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None

    async def _heartbeat_loop(self) -> None:
        while self.is_connected:
            await asyncio.sleep(self.heartbeat_interval)
            await self.send(heartbeat_message(self.student_id))

    async def on_fullscreen_change(self, is_fullscreen: bool) -> None:
        if self.require_fullscreen and not is_fullscreen:
            await self.report(FULLSCREEN_EXIT)

    async def on_visibility_change(self, hidden: bool) -> None:
        if hidden:
            await self.report(TAB_HIDDEN)

    async def on_window_blur(self) -> None:
        await self.report(WINDOW_BLUR)

    async def report(self, violation: str) -> bool:
        self.violations.append(violation)
        sent = await self.send(violation_message(self.student_id, violation))
        if not sent:
            logger.info(f"Violation '{violation}' recorded locally but not delivered")
        return sent
