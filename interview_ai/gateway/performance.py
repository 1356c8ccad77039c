"""Performance tracking and adaptive throttling for upstream AI calls.

Keeps a rolling window of response times and an error counter since the
last reset, and turns them (plus admission queue depth) into an advisory
throttle decision. Counters are cleared every ``reset_interval_seconds`` so
the figures describe recent behaviour rather than all-time totals.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

from interview_ai.core.metrics import AI_REMOTE_ATTEMPT_DURATION, AI_REMOTE_ATTEMPTS
from interview_ai.gateway.admission_queue import AdmissionQueue
from interview_ai.gateway.key_rotator import KeyRotator
from interview_ai.gateway.types import GatewayConfig, MetricsSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MetricsTracker:
    """Request counts, rolling latency, error rate, and the throttle signal.

    Usage:
        tracker = MetricsTracker(queue, rotator, config)
        result = await tracker.track_request("evaluation-attempt-1", call)
        if tracker.should_throttle():
            ...  # refuse new work upstream
    """

    def __init__(
        self,
        queue: AdmissionQueue,
        key_rotator: KeyRotator | None = None,
        config: GatewayConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.queue = queue
        self.key_rotator = key_rotator
        self.config = config or GatewayConfig()
        self._clock = clock

        self._response_times: deque[float] = deque(maxlen=self.config.metrics_window_size)
        self._request_count = 0
        self._errors = 0
        self._average_ms = 0.0
        self._last_reset = datetime.now(timezone.utc)
        self._last_reset_mono = clock()

    @property
    def request_count(self) -> int:
        return self._request_count

    @property
    def error_count(self) -> int:
        return self._errors

    @property
    def average_response_time_ms(self) -> float:
        return self._average_ms

    @property
    def error_rate(self) -> float:
        if self._request_count == 0:
            return 0.0
        return self._errors / self._request_count

    async def track_request(self, name: str, request: Callable[[], Awaitable[T]], operation: str = "-") -> T:
        """Time ``request`` and record the outcome; failures are re-raised unchanged."""
        start = self._clock()
        self._request_count += 1

        try:
            result = await request()
        except Exception as e:
            self._errors += 1
            AI_REMOTE_ATTEMPTS.labels(outcome="error").inc()
            logger.error("Request failed: %s (%s: %s)", name, type(e).__name__, e, extra={"operation": operation})
            raise

        elapsed_ms = (self._clock() - start) * 1000
        self._record_response_time(elapsed_ms)
        AI_REMOTE_ATTEMPTS.labels(outcome="success").inc()
        AI_REMOTE_ATTEMPT_DURATION.observe(elapsed_ms / 1000)

        if elapsed_ms > self.config.slow_request_threshold_ms:
            logger.warning("Slow request detected: %s took %.0fms", name, elapsed_ms, extra={"operation": operation})

        return result

    def _record_response_time(self, elapsed_ms: float) -> None:
        # deque(maxlen) keeps only the most recent window
        self._response_times.append(elapsed_ms)
        self._average_ms = sum(self._response_times) / len(self._response_times)

    def should_throttle(self) -> bool:
        """Advisory: True when the queue, error rate, or latency is unhealthy."""
        queue_stats = self.queue.get_stats()

        if queue_stats.queue_length > self.config.throttle_queue_length:
            logger.warning("Request queue is full (%d waiting), throttling new requests", queue_stats.queue_length)
            return True

        if self.error_rate > self.config.throttle_error_rate:
            logger.warning("High error rate detected (%.1f%%), throttling requests", self.error_rate * 100)
            return True

        if self._average_ms > self.config.throttle_response_time_ms:
            logger.warning("Slow response times detected (avg %.0fms), throttling requests", self._average_ms)
            return True

        return False

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            request_count=self._request_count,
            average_response_time_ms=self._average_ms,
            error_rate=self.error_rate,
            concurrent_users=self.queue.active_requests,
            last_reset=self._last_reset,
        )

    def get_metrics(self) -> dict:
        """Snapshot plus queue stats and masked key usage, for dashboards."""
        data = self.snapshot().to_dict()
        data["queue_stats"] = self.queue.get_stats().to_dict()
        data["api_key_usage"] = self.key_rotator.get_usage_stats() if self.key_rotator else {}
        return data

    def maybe_reset(self) -> bool:
        """Reset counters if the reset interval has elapsed. Returns True if reset."""
        if self._clock() - self._last_reset_mono > self.config.metrics_reset_interval_seconds:
            self.reset_metrics()
            return True
        return False

    def reset_metrics(self) -> None:
        logger.info(
            "Resetting performance metrics (requests=%d, errors=%d, avg=%.0fms)",
            self._request_count,
            self._errors,
            self._average_ms,
        )
        self._response_times.clear()
        self._request_count = 0
        self._errors = 0
        self._average_ms = 0.0
        self._last_reset = datetime.now(timezone.utc)
        self._last_reset_mono = self._clock()

        if self.key_rotator is not None:
            self.key_rotator.reset_usage()
