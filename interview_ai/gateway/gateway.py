"""AI Gateway: orchestrator wiring the gateway components together.

Main entry point for calling the upstream AI provider:
  1. Looks the request up in the ContentCache (hit → no network at all)
  2. Waits for a slot in the AdmissionQueue
  3. Runs the call through the RetryingInvoker (key rotation + backoff),
     with every attempt timed by the MetricsTracker
  4. Caches successful results with the operation's TTL

Usage:
    gateway = AIGateway.from_settings(settings)

    transcript = await gateway.execute(
        AIOperation.TRANSCRIPTION,
        lambda api_key: whisper_call(api_key, audio),
        cache_key=transcription_cache_key(audio),
    )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from interview_ai.core.metrics import AI_CACHE_LOOKUPS
from interview_ai.gateway.admission_queue import AdmissionQueue
from interview_ai.gateway.cache import ContentCache
from interview_ai.gateway.key_rotator import KeyRotator
from interview_ai.gateway.performance import MetricsTracker
from interview_ai.gateway.retry import RetryingInvoker
from interview_ai.gateway.types import AIOperation, GatewayConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISS = object()


class AIGateway:
    """Owns one instance of each gateway component and wires them together.

    Every component can be passed in; the defaults are built from ``config``.
    """

    def __init__(
        self,
        api_keys: list[str],
        config: GatewayConfig | None = None,
        *,
        key_rotator: KeyRotator | None = None,
        queue: AdmissionQueue | None = None,
        cache: ContentCache | None = None,
        metrics: MetricsTracker | None = None,
        invoker: RetryingInvoker | None = None,
    ):
        self.config = config or GatewayConfig()

        self.key_rotator = key_rotator or KeyRotator(api_keys)
        self.queue = queue or AdmissionQueue(self.config.concurrency_limit)
        self.cache = cache or ContentCache(cleanup_threshold=self.config.cache_cleanup_threshold)
        self.metrics = metrics or MetricsTracker(self.queue, self.key_rotator, self.config)
        self.invoker = invoker or RetryingInvoker(self.key_rotator, self.metrics, self.config)

    @classmethod
    def from_settings(cls, settings) -> AIGateway:
        return cls(api_keys=settings.api_key_pool, config=GatewayConfig.from_settings(settings))

    def ttl_for(self, operation: AIOperation) -> int:
        return self.config.ttl_seconds.get(operation, 1800)

    async def execute(
        self,
        operation: AIOperation,
        request_fn: Callable[[str], Awaitable[T]],
        *,
        cache_key: str | None = None,
        ttl_seconds: float | None = None,
        max_attempts: int | None = None,
    ) -> T:
        """Run ``request_fn(api_key)`` through cache, queue, and retries.

        Only successful results are cached; errors propagate unchanged.
        """
        if cache_key is not None:
            cached = self.cache.get(cache_key, _MISS)
            if cached is not _MISS:
                AI_CACHE_LOOKUPS.labels(operation=operation.value, result="hit").inc()
                logger.debug("Using cached %s result", operation.value, extra={"operation": operation.value})
                return cached
            AI_CACHE_LOOKUPS.labels(operation=operation.value, result="miss").inc()

        result = await self.queue.submit(
            lambda: self.invoker.invoke(request_fn, max_attempts=max_attempts, name=operation.value)
        )

        if cache_key is not None:
            ttl = ttl_seconds if ttl_seconds is not None else self.ttl_for(operation)
            self.cache.set(cache_key, result, ttl)

        return result

    def should_throttle(self) -> bool:
        return self.metrics.should_throttle()

    def optimize_memory_usage(self) -> None:
        """Periodic housekeeping: metrics reset window and expired cache entries."""
        self.metrics.maybe_reset()
        self.cache.cleanup()

    def get_status(self) -> dict:
        """Read-only introspection for health checks and dashboards."""
        return {
            "metrics": self.metrics.get_metrics(),
            "queue": self.queue.get_stats().to_dict(),
            "api_key_usage": self.key_rotator.get_usage_stats(),
            "api_keys_configured": self.key_rotator.pool_size,
            "cache": self.cache.get_stats(),
        }

    async def run_maintenance(self, interval_seconds: float) -> None:
        """Run ``optimize_memory_usage`` every ``interval_seconds`` until cancelled."""
        logger.info("Gateway maintenance loop started (every %.0fs)", interval_seconds)
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.optimize_memory_usage()
            except Exception:
                logger.exception("Gateway maintenance pass failed")

    async def close(self) -> None:
        await self.queue.shutdown()
