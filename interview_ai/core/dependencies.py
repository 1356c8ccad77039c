from fastapi import Depends, Request

from interview_ai.core.exceptions import ServiceBusyError
from interview_ai.gateway.gateway import AIGateway
from interview_ai.services.ai_evaluator import InterviewAIService


def get_gateway(request: Request) -> AIGateway:
    return request.app.state.gateway


def get_ai_service(request: Request) -> InterviewAIService:
    return request.app.state.ai_service


async def require_capacity(gateway: AIGateway = Depends(get_gateway)) -> None:
    """Refuse new AI work while the gateway's throttle signal is raised."""
    if gateway.should_throttle():
        raise ServiceBusyError("System busy, please try again shortly")
