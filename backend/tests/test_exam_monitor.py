"""
Tests for the teacher-side ExamMonitor: pushed events and snapshot polling
"""
import aiohttp
import pytest

from examwatch.clients.exam_monitor import ExamMonitor

SNAPSHOT = [
    {"id": "a", "studentId": "S", "isActive": False, "violations": ["Window lost focus at 2025-03-01T09:00:00.000Z"]},
    {"id": "b", "studentId": "S", "isActive": True, "violations": ["Exited fullscreen mode at 2025-03-01T09:05:00.000Z"]},
    {"id": "c", "studentId": "T", "isActive": True, "violations": []},
    {"id": "d", "studentId": "U", "isActive": False, "violations": None},
]


def make_monitor(server, **kwargs):
    kwargs.setdefault("poll_interval", 30)
    kwargs.setdefault("reconnect_delay", 0.05)
    return ExamMonitor(server.base_url, "E1", "teacher-1", **kwargs)


def student_violation(student_id, violation):
    return {"type": "studentViolation", "studentId": student_id, "violation": violation,
            "timestamp": "2025-03-01T09:00:00.000Z"}


class TestPushedEvents:

    @pytest.mark.asyncio
    async def test_collects_student_violations(self, exam_server, running, wait_for):
        monitor = make_monitor(exam_server)

        async with running(monitor):
            assert await wait_for(lambda: exam_server.sockets)
            await exam_server.push(student_violation("S", "Window lost focus"))
            await exam_server.push({"type": "somethingElse"})
            await exam_server.push(student_violation("T", "Tab/window switched away"))
            assert await wait_for(lambda: len(monitor.events) == 2)

        assert [e["studentId"] for e in monitor.live_violations()] == ["S", "T"]
        assert monitor.live_violations("T") == [student_violation("T", "Tab/window switched away")]

    @pytest.mark.asyncio
    async def test_connects_without_student_id(self, exam_server, running, wait_for):
        monitor = make_monitor(exam_server)

        async with running(monitor):
            assert await wait_for(lambda: exam_server.connections)

        assert exam_server.connections[0] == {"examId": "E1"}

    @pytest.mark.asyncio
    async def test_connection_status(self, exam_server, running):
        monitor = make_monitor(exam_server)
        assert monitor.connection_status == "disconnected"

        async with running(monitor):
            await monitor.wait_connected(timeout=3)
            assert monitor.connection_status == "connected"

        assert monitor.connection_status == "disconnected"


class TestSnapshotPolling:

    @pytest.mark.asyncio
    async def test_polls_with_teacher_identity(self, exam_server, running, wait_for):
        exam_server.snapshot = SNAPSHOT
        monitor = make_monitor(exam_server, poll_interval=0.05)

        async with running(monitor):
            assert await wait_for(lambda: monitor.poll_count >= 2)

        assert monitor.sessions == SNAPSHOT
        headers = exam_server.snapshot_requests[0]
        assert headers["X-User-Id"] == "teacher-1"
        assert headers["X-User-Role"] == "teacher"

    @pytest.mark.asyncio
    async def test_failed_poll_keeps_last_snapshot(self, exam_server):
        monitor = make_monitor(exam_server)
        monitor.sessions = SNAPSHOT
        exam_server.snapshot_status = 403

        async with aiohttp.ClientSession() as session:
            assert await monitor.poll_once(session) is False

        assert monitor.sessions == SNAPSHOT
        assert monitor.poll_count == 0

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        monitor = ExamMonitor("http://127.0.0.1:9", "E1", "teacher-1")

        async with aiohttp.ClientSession() as session:
            assert await monitor.poll_once(session) is False


class TestSummaries:

    def test_violation_counts_sum_all_attempts(self):
        monitor = ExamMonitor("http://localhost", "E1", "teacher-1")
        monitor.sessions = SNAPSHOT

        assert monitor.violation_counts() == {"S": 2, "T": 0, "U": 0}

    def test_active_student_count(self):
        monitor = ExamMonitor("http://localhost", "E1", "teacher-1")
        monitor.sessions = SNAPSHOT

        assert monitor.active_student_count() == 2

    def test_snapshot_url(self):
        monitor = ExamMonitor("http://localhost:8000/", "E1", "teacher-1")

        assert monitor.snapshot_url == "http://localhost:8000/api/v1/exams/E1/sessions"
