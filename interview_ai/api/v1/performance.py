"""Health and performance introspection. Never exposes raw API keys."""

from fastapi import APIRouter, Depends

from interview_ai.core.dependencies import get_gateway
from interview_ai.gateway.gateway import AIGateway
from interview_ai.services.dashboard_service import get_performance_dashboard

router = APIRouter(tags=["performance"])


@router.get("/health")
async def health(gateway: AIGateway = Depends(get_gateway)):
    keys = gateway.key_rotator.pool_size
    return {
        "status": "ok" if keys else "degraded",
        "api_keys_configured": keys,
        "queue": gateway.queue.get_stats().to_dict(),
    }


@router.get("/performance")
async def performance(gateway: AIGateway = Depends(get_gateway)):
    return get_performance_dashboard(gateway)


@router.get("/performance/status")
async def gateway_status(gateway: AIGateway = Depends(get_gateway)):
    return gateway.get_status()
