"""
Reconnecting client for the ``/ws`` exam channel.

Mirrors what the browser does: connect with the exam id in the query string,
and on any closure or connect failure wait a fixed delay and try again, for
as long as the client has not been stopped. There is no backoff growth and no
retry cap.
"""
import asyncio
import json
import logging
from typing import Any, Coroutine, Dict, List, Optional

import aiohttp

from ..core.config import settings

logger = logging.getLogger(__name__)


class ChannelClient:
    def __init__(self, base_url: str, exam_id: str, reconnect_delay: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self.exam_id = exam_id
        self.reconnect_delay = settings.reconnect_delay_seconds if reconnect_delay is None else reconnect_delay
        self.connect_count = 0

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._stopped = asyncio.Event()
        self._connected = asyncio.Event()

    @property
    def channel_url(self) -> str:
        return f"{self.base_url}/ws"

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def channel_params(self) -> Dict[str, str]:
        return {"examId": self.exam_id}

    def session_headers(self) -> Dict[str, str]:
        return {}

    def background_tasks(self, session: aiohttp.ClientSession) -> List[Coroutine[Any, Any, None]]:
        return []

    async def on_open(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        pass

    async def on_close(self) -> None:
        pass

    async def on_message(self, message: Dict[str, Any]) -> None:
        pass

    async def wait_connected(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout=timeout)

    async def run(self) -> None:
        async with aiohttp.ClientSession(headers=self.session_headers()) as session:
            background = [asyncio.create_task(coro) for coro in self.background_tasks(session)]
            try:
                while not self._stopped.is_set():
                    try:
                        await self._run_connection(session)
                    except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                        logger.warning(f"Exam channel {self.exam_id} unavailable: {e}")

                    if self._stopped.is_set():
                        break
                    logger.info(f"Reconnecting to exam channel {self.exam_id} in {self.reconnect_delay}s")
                    await self.sleep_unless_stopped(self.reconnect_delay)
            finally:
                for task in background:
                    task.cancel()
                await asyncio.gather(*background, return_exceptions=True)

    async def stop(self) -> None:
        self._stopped.set()
        if self.is_connected:
            await self._ws.close()

    async def sleep_unless_stopped(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def send(self, message: Dict[str, Any]) -> bool:
        """Send one frame if the channel is open; frames sent while closed are lost"""
        if not self.is_connected:
            logger.debug(f"Channel closed, dropping {message.get('type')} frame")
            return False
        try:
            await self._ws.send_str(json.dumps(message))
            return True
        except (ConnectionResetError, aiohttp.ClientError) as e:
            logger.warning(f"Failed to send {message.get('type')} frame: {e}")
            return False

    async def _run_connection(self, session: aiohttp.ClientSession) -> None:
        async with session.ws_connect(self.channel_url, params=self.channel_params()) as ws:
            if self._stopped.is_set():
                # stop() arrived while the handshake was still pending
                await ws.close()
                return
            self._ws = ws
            self.connect_count += 1
            self._connected.set()
            logger.info(f"Connected to exam channel {self.exam_id}")
            try:
                await self.on_open(ws)
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        try:
                            payload = json.loads(msg.data)
                        except json.JSONDecodeError:
                            logger.warning("Ignoring non-JSON frame from server")
                            continue
                        await self.on_message(payload)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        logger.warning(f"Exam channel error: {ws.exception()}")
                        break
            finally:
                self._connected.clear()
                self._ws = None
                await self.on_close()
                logger.info(f"Disconnected from exam channel {self.exam_id}")
