"""Core types and DTOs for the AI request orchestration layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AIOperation(str, Enum):
    """Remote AI operations routed through the gateway.

    The value doubles as the cache key prefix.
    """

    TRANSCRIPTION = "transcription"
    EVALUATION = "evaluation"
    SPEECH = "tts"
    QUESTIONS = "questions"
    RESUME_ANALYSIS = "resume_analysis"
    FOLLOW_UP = "follow_up"


# ---------------------------------------------------------------------------
# Cache entry
# ---------------------------------------------------------------------------


@dataclass
class CacheEntry:
    """A memoized result and the monotonic time after which it is stale."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


# ---------------------------------------------------------------------------
# Introspection snapshots
# ---------------------------------------------------------------------------


@dataclass
class QueueStats:
    """Back-pressure view of the admission queue."""

    queue_length: int = 0
    active_requests: int = 0
    concurrency_limit: int = 0

    def to_dict(self) -> dict:
        return {
            "queue_length": self.queue_length,
            "active_requests": self.active_requests,
            "concurrency_limit": self.concurrency_limit,
        }


@dataclass
class MetricsSnapshot:
    """Rolling health metrics since the last reset."""

    request_count: int = 0
    average_response_time_ms: float = 0.0
    error_rate: float = 0.0
    concurrent_users: int = 0
    last_reset: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "request_count": self.request_count,
            "average_response_time_ms": round(self.average_response_time_ms, 2),
            "error_rate": round(self.error_rate, 4),
            "concurrent_users": self.concurrent_users,
            "last_reset": self.last_reset.isoformat(),
        }


# ---------------------------------------------------------------------------
# Gateway config
# ---------------------------------------------------------------------------


@dataclass
class GatewayConfig:
    """Tunables for the orchestration layer."""

    concurrency_limit: int = 300
    request_timeout_seconds: float = 30.0
    max_attempts: int = 3
    base_retry_delay_ms: int = 1000
    max_retry_delay_ms: int = 5000
    slow_request_threshold_ms: int = 5000
    metrics_window_size: int = 100
    metrics_reset_interval_seconds: float = 300.0
    cache_cleanup_threshold: int = 1000
    throttle_queue_length: int = 50
    throttle_error_rate: float = 0.1
    throttle_response_time_ms: float = 10000.0

    # Seconds each operation's results stay cached
    ttl_seconds: dict[AIOperation, int] = field(
        default_factory=lambda: {
            AIOperation.TRANSCRIPTION: 1800,
            AIOperation.EVALUATION: 1800,
            AIOperation.SPEECH: 3600,
            AIOperation.QUESTIONS: 3600,
            AIOperation.RESUME_ANALYSIS: 3600,
            AIOperation.FOLLOW_UP: 1800,
        }
    )

    @classmethod
    def from_settings(cls, settings) -> GatewayConfig:
        return cls(
            concurrency_limit=settings.max_concurrent_requests,
            request_timeout_seconds=settings.request_timeout_seconds,
            max_attempts=settings.retry_attempts,
            base_retry_delay_ms=settings.retry_base_delay_ms,
            max_retry_delay_ms=settings.retry_max_delay_ms,
            slow_request_threshold_ms=settings.slow_request_threshold_ms,
            metrics_window_size=settings.metrics_window_size,
            metrics_reset_interval_seconds=settings.metrics_reset_interval_seconds,
            cache_cleanup_threshold=settings.cache_cleanup_threshold,
            throttle_queue_length=settings.throttle_queue_length,
            throttle_error_rate=settings.throttle_error_rate,
            throttle_response_time_ms=settings.throttle_response_time_ms,
            ttl_seconds={
                AIOperation.TRANSCRIPTION: settings.cache_ttl_evaluations,
                AIOperation.EVALUATION: settings.cache_ttl_evaluations,
                AIOperation.SPEECH: settings.cache_ttl_questions,
                AIOperation.QUESTIONS: settings.cache_ttl_questions,
                AIOperation.RESUME_ANALYSIS: settings.cache_ttl_questions,
                AIOperation.FOLLOW_UP: settings.cache_ttl_evaluations,
            },
        )
