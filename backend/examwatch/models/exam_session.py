import uuid
from sqlalchemy import Column, String, DateTime, Boolean, JSON, Index, text
from ..core.database import Base
from ..utils.timezone import utc_now_naive


class ExamSession(Base):
    __tablename__ = "exam_sessions"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    exam_id = Column(String, nullable=False, index=True)
    student_id = Column(String, nullable=False, index=True)
    started_at = Column(DateTime, default=utc_now_naive)
    last_activity = Column(DateTime, default=utc_now_naive)
    violations = Column(JSON, default=list)                     # "<description> at <iso>", append-only
    is_active = Column(Boolean, nullable=False, default=True)
    ended_at = Column(DateTime, nullable=True)
    end_reason = Column(String, nullable=True)                  # submitted | ended_by_teacher | superseded

    __table_args__ = (
        # one active attempt per (exam, student)
        Index(
            "uq_exam_sessions_active_pair",
            "exam_id",
            "student_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    def __repr__(self):
        return f"<ExamSession {self.id} exam={self.exam_id} student={self.student_id} active={self.is_active}>"
