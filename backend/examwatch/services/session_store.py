from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from typing import Optional, List
import logging

from ..models.exam_session import ExamSession
from ..core.cache import cache, exam_sessions_key
from ..utils.timezone import utc_now_naive

logger = logging.getLogger(__name__)


class SessionStore:
    """Durable exam-session rows: lifecycle, liveness and the violation log"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_session(self, session_id: str) -> Optional[ExamSession]:
        result = await self.db.execute(
            select(ExamSession).filter(ExamSession.id == session_id)
        )
        return result.scalars().first()

    async def get_active_session(self, exam_id: str, student_id: str) -> Optional[ExamSession]:
        result = await self.db.execute(
            select(ExamSession)
            .filter(
                ExamSession.exam_id == exam_id,
                ExamSession.student_id == student_id,
                ExamSession.is_active.is_(True)
            )
            .order_by(ExamSession.started_at.desc())
        )
        return result.scalars().first()

    async def list_exam_sessions(self, exam_id: str) -> List[ExamSession]:
        result = await self.db.execute(
            select(ExamSession)
            .filter(ExamSession.exam_id == exam_id)
            .order_by(ExamSession.started_at.asc())
        )
        return list(result.scalars().all())

    async def create_session(self, exam_id: str, student_id: str) -> ExamSession:
        """Start an attempt, ending any attempt still active for the same pair"""
        now = utc_now_naive()
        await self.db.execute(
            update(ExamSession)
            .where(
                ExamSession.exam_id == exam_id,
                ExamSession.student_id == student_id,
                ExamSession.is_active.is_(True)
            )
            .values(is_active=False, ended_at=now, end_reason="superseded")
        )

        db_session = ExamSession(
            exam_id=exam_id,
            student_id=student_id,
            started_at=now,
            last_activity=now,
            violations=[],
            is_active=True
        )
        self.db.add(db_session)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValueError("Another session for this student was started concurrently")
        await self.db.refresh(db_session)

        await cache.adelete(exam_sessions_key(exam_id))
        logger.info(f"Exam session {db_session.id} started for exam={exam_id} student={student_id}")
        return db_session

    async def update_session_activity(self, session_id: str) -> None:
        db_session = await self.get_session(session_id)
        if not db_session:
            return

        now = utc_now_naive()
        if db_session.last_activity is None or now > db_session.last_activity:
            db_session.last_activity = now
            await self.db.commit()
            await cache.adelete(exam_sessions_key(db_session.exam_id))

    async def add_violation(self, session_id: str, violation: str) -> None:
        result = await self.db.execute(
            select(ExamSession)
            .filter(ExamSession.id == session_id)
            .with_for_update()
        )
        db_session = result.scalars().first()
        if not db_session:
            return

        # reassign so the JSON column is flagged dirty
        db_session.violations = [*(db_session.violations or []), violation]
        await self.db.commit()
        await cache.adelete(exam_sessions_key(db_session.exam_id))

    async def end_session(self, session_id: str, reason: str = "submitted") -> None:
        db_session = await self.get_session(session_id)
        if not db_session or not db_session.is_active:
            return

        db_session.is_active = False
        db_session.ended_at = utc_now_naive()
        db_session.end_reason = reason
        await self.db.commit()

        await cache.adelete(exam_sessions_key(db_session.exam_id))
        logger.info(f"Exam session {session_id} ended ({reason})")
