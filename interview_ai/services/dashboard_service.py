"""Performance dashboard data for operators."""

import platform
import sys
import time

from interview_ai.core.config import settings
from interview_ai.gateway.gateway import AIGateway

_STARTED_AT = time.monotonic()

# Thresholds below the throttle limits: early warnings, not refusals
_RECOMMEND_RESPONSE_TIME_MS = 5000
_RECOMMEND_ERROR_RATE = 0.05
_RECOMMEND_QUEUE_LENGTH = 20


def generate_recommendations(metrics: dict) -> list[str]:
    recommendations: list[str] = []

    if metrics["average_response_time_ms"] > _RECOMMEND_RESPONSE_TIME_MS:
        recommendations.append("Consider adding more OpenAI API keys for load distribution")

    if metrics["error_rate"] > _RECOMMEND_ERROR_RATE:
        recommendations.append("High error rate detected - check API key validity and rate limits")

    if metrics["queue_stats"]["queue_length"] > _RECOMMEND_QUEUE_LENGTH:
        recommendations.append("Consider scaling out the service to more instances")

    if not recommendations:
        recommendations.append("System performance is optimal")

    return recommendations


def get_performance_dashboard(gateway: AIGateway) -> dict:
    metrics = gateway.metrics.get_metrics()
    return {
        "system": {
            "uptime_seconds": round(time.monotonic() - _STARTED_AT, 1),
            "platform": platform.system().lower(),
            "python_version": sys.version.split()[0],
            "environment": settings.app_env,
        },
        "performance": metrics,
        "cache": gateway.cache.get_stats(),
        "throttling": gateway.should_throttle(),
        "recommendations": generate_recommendations(metrics),
    }
