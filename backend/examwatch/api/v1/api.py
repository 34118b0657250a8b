from fastapi import APIRouter

from .endpoints import exam_sessions, exams

api_router = APIRouter()

api_router.include_router(exam_sessions.router, prefix="/exam-sessions", tags=["exam-sessions"])
api_router.include_router(exams.router, prefix="/exams", tags=["exams"])


@api_router.get("/health")
async def health_check():
    return {"status": "ok", "message": "API is healthy"}
