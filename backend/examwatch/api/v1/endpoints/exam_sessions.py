from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from collections import Counter
from typing import Optional

from ....core.database import get_async_db
from ....api.deps import CurrentUser, get_current_user
from ....services.session_store import SessionStore
from ....schemas.exam_session import (
    ExamSession,
    ExamSessionCreate,
    ExamSessionEnd,
    ViolationStatistics,
    ViolationTimelineEntry,
)

router = APIRouter()


@router.post("", response_model=ExamSession)
async def start_exam_session(
    session_in: ExamSessionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Start a monitored attempt for the calling student"""
    store = SessionStore(db)
    try:
        return await store.create_session(session_in.exam_id, current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/{session_id}/end", response_model=ExamSession)
async def end_exam_session(
    session_id: str,
    session_end: Optional[ExamSessionEnd] = Body(default=None),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db)
):
    """End a session; the owning student or a teacher may do this"""
    store = SessionStore(db)
    session = await store.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Exam session not found")

    if session.student_id != current_user.id and not current_user.is_teacher:
        raise HTTPException(status_code=403, detail="Access denied")

    reason = "ended_by_teacher" if current_user.is_teacher else "submitted"
    if session_end and session_end.reason:
        if session_end.reason == "ended_by_teacher" and not current_user.is_teacher:
            raise HTTPException(status_code=403, detail="Only a teacher can force-end a session")
        reason = session_end.reason
    await store.end_session(session_id, reason=reason)
    return await store.get_session(session_id)


@router.get("/{session_id}/statistics", response_model=ViolationStatistics)
async def get_violation_statistics(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Violation counts and timeline for one session"""
    store = SessionStore(db)
    session = await store.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Exam session not found")

    if session.student_id != current_user.id and not current_user.is_teacher:
        raise HTTPException(status_code=403, detail="Access denied")

    timeline = []
    for entry in session.violations or []:
        description, _, timestamp = entry.rpartition(" at ")
        if not description:
            description, timestamp = entry, None
        timeline.append(ViolationTimelineEntry(violation=description, timestamp=timestamp))

    return ViolationStatistics(
        session_id=session.id,
        student_id=session.student_id,
        total_violations=len(timeline),
        by_type=dict(Counter(item.violation for item in timeline)),
        timeline=timeline
    )
