"""API v1 router."""

from fastapi import APIRouter

from exam_engine.api.v1.endpoints import exam_sessions, exams, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(exams.router, prefix="/exams", tags=["Exams"])
api_router.include_router(exam_sessions.router, prefix="/exam-sessions", tags=["Exam Sessions"])
