from pydantic import BaseModel, Field, field_serializer
from datetime import datetime
from typing import Optional, List, Dict, Literal
from ..utils.timezone import to_iso


class ExamSessionCreate(BaseModel):
    exam_id: str = Field(alias="examId", min_length=1)

    class Config:
        populate_by_name = True


class ExamSessionEnd(BaseModel):
    reason: Optional[Literal["submitted", "ended_by_teacher"]] = None


class ExamSession(BaseModel):
    id: str
    exam_id: str = Field(serialization_alias="examId")
    student_id: str = Field(serialization_alias="studentId")
    started_at: Optional[datetime] = Field(default=None, serialization_alias="startedAt")
    last_activity: Optional[datetime] = Field(default=None, serialization_alias="lastActivity")
    violations: List[str] = []
    is_active: bool = Field(serialization_alias="isActive")
    ended_at: Optional[datetime] = Field(default=None, serialization_alias="endedAt")
    end_reason: Optional[str] = Field(default=None, serialization_alias="endReason")

    @field_serializer("started_at", "last_activity", "ended_at")
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return to_iso(value)

    class Config:
        from_attributes = True


class ViolationTimelineEntry(BaseModel):
    violation: str
    timestamp: Optional[str] = None


class ViolationStatistics(BaseModel):
    session_id: str = Field(serialization_alias="sessionId")
    student_id: str = Field(serialization_alias="studentId")
    total_violations: int = Field(serialization_alias="totalViolations")
    by_type: Dict[str, int] = Field(serialization_alias="byType")
    timeline: List[ViolationTimelineEntry] = []


class ExamConnections(BaseModel):
    exam_id: str = Field(serialization_alias="examId")
    connections: int
