"""
Pytest configuration for ExamWatch tests.

Points the service at a throwaway SQLite database and switches Redis off
before anything from ``examwatch`` is imported.
"""
import asyncio
import contextlib
import json
import os
import tempfile

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState

_DB_DIR = tempfile.mkdtemp(prefix="examwatch-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'examwatch.db')}"
os.environ["CACHE_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"


async def _reset_database():
    from examwatch.core.database import async_engine, Base
    from examwatch import models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


class FakeConnection:
    """Stands in for a WebSocket inside the registry and router"""

    def __init__(self, fail_on_send=False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.fail_on_send = fail_on_send
        self.sent = []
        self.close_code = None

    async def send_text(self, data):
        if self.fail_on_send:
            raise RuntimeError("Cannot call \"send\" once a close message has been sent.")
        self.sent.append(json.loads(data))

    async def close(self, code=1000):
        self.close_code = code
        self.client_state = WebSocketState.DISCONNECTED
        self.application_state = WebSocketState.DISCONNECTED


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture(scope='session')
def app():
    from examwatch.main import app
    return app


@pytest.fixture(scope='function')
def client(app):
    """FastAPI test client on a fresh database, with startup/shutdown hooks run"""
    asyncio.run(_reset_database())
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def db_session():
    from examwatch.core.database import AsyncSessionLocal

    await _reset_database()
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def student_headers():
    def _headers(student_id):
        return {'X-User-Id': student_id, 'X-User-Role': 'student'}
    return _headers


@pytest.fixture
def teacher_headers():
    return {'X-User-Id': 'teacher-1', 'X-User-Role': 'teacher'}


class FakeExamServer:
    """Minimal aiohttp stand-in for the /ws channel and the session snapshot"""

    def __init__(self):
        self.connections = []
        self.frames = []
        self.sockets = []
        self.snapshot = []
        self.snapshot_status = 200
        self.snapshot_requests = []
        self.drop_first_connection = False
        self.handshake_delay = 0
        self.handshakes_started = 0
        self.base_url = None

    def build_app(self):
        from aiohttp import web

        app = web.Application()
        app.router.add_get('/ws', self.handle_channel)
        app.router.add_get('/api/v1/exams/{exam_id}/sessions', self.handle_snapshot)
        return app

    async def handle_channel(self, request):
        from aiohttp import web, WSMsgType

        ws = web.WebSocketResponse()
        self.handshakes_started += 1
        if self.handshake_delay:
            await asyncio.sleep(self.handshake_delay)
        await ws.prepare(request)
        self.connections.append(dict(request.query))
        if self.drop_first_connection and len(self.connections) == 1:
            await ws.close()
            return ws

        self.sockets.append(ws)
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    self.frames.append(json.loads(msg.data))
        finally:
            self.sockets.remove(ws)
        return ws

    async def handle_snapshot(self, request):
        from aiohttp import web

        self.snapshot_requests.append(request.headers.copy())
        if self.snapshot_status != 200:
            return web.json_response({'detail': 'nope'}, status=self.snapshot_status)
        return web.json_response(self.snapshot)

    async def push(self, message):
        for ws in list(self.sockets):
            await ws.send_str(json.dumps(message))

    def frames_of(self, message_type):
        return [frame for frame in self.frames if frame.get('type') == message_type]


@pytest_asyncio.fixture
async def exam_server():
    from aiohttp.test_utils import TestServer

    fake = FakeExamServer()
    server = TestServer(fake.build_app())
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}"
    yield fake
    await server.close()


@pytest.fixture
def running():
    """Run a channel client in the background for the duration of a block"""

    @contextlib.asynccontextmanager
    async def _running(channel_client):
        task = asyncio.create_task(channel_client.run())
        try:
            yield channel_client
        finally:
            await channel_client.stop()
            await asyncio.wait_for(task, timeout=5)

    return _running


@pytest.fixture
def wait_for():
    async def _wait_for(predicate, timeout=3.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(0.01)
        return predicate()

    return _wait_for
