from fastapi import APIRouter

from interview_ai.api.v1.interview import router as interview_router
from interview_ai.api.v1.performance import router as performance_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(performance_router)
api_v1_router.include_router(interview_router)
