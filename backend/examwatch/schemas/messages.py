"""
Frames exchanged on the ``/ws`` exam channel.

Inbound frames come from student clients; ``StudentViolationEvent`` is the
only frame the server pushes. There is no acknowledgement frame.
"""
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Literal
from ..core.config import settings


class ChannelMessage(BaseModel):
    student_id: str = Field(alias="studentId", min_length=1)
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, value: str) -> str:
        # numbers are already rejected by the str type
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("timestamp must be an ISO-8601 string")
        return value


class HeartbeatMessage(ChannelMessage):
    type: Literal["heartbeat"]


class ViolationMessage(ChannelMessage):
    type: Literal["violation"]
    violation: str = Field(min_length=1, max_length=settings.max_violation_length)


class StudentViolationEvent(BaseModel):
    type: Literal["studentViolation"] = "studentViolation"
    student_id: str = Field(alias="studentId")
    violation: str
    timestamp: str

    class Config:
        populate_by_name = True
