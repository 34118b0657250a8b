from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ....core.cache import cache, exam_sessions_key
from ....core.config import settings
from ....core.database import get_async_db
from ....api.deps import CurrentUser, get_current_user, get_current_teacher, get_registry
from ....realtime.registry import ConnectionRegistry
from ....services.session_store import SessionStore
from ....schemas.exam_session import ExamSession, ExamConnections

router = APIRouter()


@router.get("/{exam_id}/sessions")
async def list_exam_sessions(
    exam_id: str,
    current_user: CurrentUser = Depends(get_current_teacher),
    db: AsyncSession = Depends(get_async_db)
) -> List[dict]:
    """Snapshot of every session of an exam, polled by teacher monitors"""
    cache_key = exam_sessions_key(exam_id)
    cached = await cache.aget(cache_key)
    if cached is not None:
        return cached

    store = SessionStore(db)
    sessions = await store.list_exam_sessions(exam_id)
    snapshot = [
        ExamSession.model_validate(session).model_dump(by_alias=True)
        for session in sessions
    ]
    await cache.aset(cache_key, snapshot, ttl=settings.snapshot_cache_ttl)
    return snapshot


@router.post("/{exam_id}/submit-session", response_model=ExamSession)
async def end_session_on_submission(
    exam_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Submission hook: closes the caller's active attempt for this exam"""
    store = SessionStore(db)
    session = await store.get_active_session(exam_id, current_user.id)
    if not session:
        raise HTTPException(status_code=404, detail="No active exam session")

    await store.end_session(session.id, reason="submitted")
    return await store.get_session(session.id)


@router.get("/{exam_id}/connections", response_model=ExamConnections)
async def get_exam_connections(
    exam_id: str,
    current_user: CurrentUser = Depends(get_current_teacher),
    registry: ConnectionRegistry = Depends(get_registry)
):
    return ExamConnections(exam_id=exam_id, connections=registry.connection_count(exam_id))
