from .exam_session import ExamSession, ExamSessionCreate, ExamSessionEnd, ViolationStatistics, ViolationTimelineEntry, ExamConnections
from .messages import HeartbeatMessage, ViolationMessage, StudentViolationEvent
__all__ = [
    "ExamSession",
    "ExamSessionCreate",
    "ExamSessionEnd",
    "ViolationStatistics",
    "ViolationTimelineEntry",
    "ExamConnections",
    "HeartbeatMessage",
    "ViolationMessage",
    "StudentViolationEvent",
]
