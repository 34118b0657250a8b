from .exam_session import ExamSession

__all__ = [
    "ExamSession",
]
