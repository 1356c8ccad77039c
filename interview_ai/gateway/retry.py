"""Retrying invoker: bounded retries with exponential backoff.

Each attempt draws the next API key from the rotator, is timed by the
metrics tracker, and is bounded by the request timeout.

Backoff strategy:
  delay before attempt k+1 = min(base * 2^(k-1), max_delay)
  (1s, 2s, 4s, then capped at 5s with the defaults)

Authorization failures and configuration errors are never retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from interview_ai.core.exceptions import (
    ConfigurationError,
    NonRetryableRemoteError,
    RetryableRemoteError,
)
from interview_ai.gateway.key_rotator import KeyRotator
from interview_ai.gateway.performance import MetricsTracker
from interview_ai.gateway.types import GatewayConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upstream statuses that mean the credential itself was rejected
NON_RETRYABLE_STATUS_CODES = frozenset({401})


def is_retryable(error: BaseException) -> bool:
    """Classify a failed attempt."""
    if isinstance(error, (ConfigurationError, NonRetryableRemoteError)):
        return False
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code not in NON_RETRYABLE_STATUS_CODES
    return True


def calculate_backoff(attempt: int, base_delay_ms: int = 1000, max_delay_ms: int = 5000) -> float:
    """Delay in seconds to wait after failed attempt ``attempt`` (1-based)."""
    delay_ms = min(base_delay_ms * (2 ** (attempt - 1)), max_delay_ms)
    return delay_ms / 1000


class RetryingInvoker:
    """Runs a credential-parameterised remote call with retries.

    Usage:
        invoker = RetryingInvoker(rotator, tracker, config)
        text = await invoker.invoke(lambda key: call_whisper(key, audio), name="transcription")
    """

    def __init__(
        self,
        key_rotator: KeyRotator,
        metrics: MetricsTracker,
        config: GatewayConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.key_rotator = key_rotator
        self.metrics = metrics
        self.config = config or GatewayConfig()
        self._sleep = sleep

    async def invoke(
        self,
        request_fn: Callable[[str], Awaitable[T]],
        max_attempts: int | None = None,
        name: str = "openai",
    ) -> T:
        """Call ``request_fn(api_key)`` until it succeeds or attempts run out.

        Raises:
            ConfigurationError: no API keys are configured.
            NonRetryableRemoteError: the provider rejected the credential.
            ValueError: ``max_attempts`` is less than 1.
            Exception: the last attempt's error once all attempts failed.
        """
        attempts = self.config.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            api_key = self.key_rotator.get_next_credential()

            try:
                return await self.metrics.track_request(
                    f"{name}-attempt-{attempt}",
                    lambda: self._call_with_timeout(request_fn, api_key),
                    operation=name,
                )
            except Exception as e:
                if not is_retryable(e):
                    logger.error("Non-retryable failure on %s attempt %d: %s", name, attempt, e, extra={"operation": name})
                    raise
                last_error = e

            if attempt < attempts:
                delay = calculate_backoff(attempt, self.config.base_retry_delay_ms, self.config.max_retry_delay_ms)
                logger.info(
                    "Retrying %s request in %.0fms (attempt %d/%d)",
                    name,
                    delay * 1000,
                    attempt,
                    attempts,
                    extra={"operation": name},
                )
                await self._sleep(delay)

        logger.warning("%s request failed after %d attempts: %s", name, attempts, last_error, extra={"operation": name})
        raise last_error

    async def _call_with_timeout(self, request_fn: Callable[[str], Awaitable[T]], api_key: str) -> T:
        timeout = self.config.request_timeout_seconds
        try:
            return await asyncio.wait_for(request_fn(api_key), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise RetryableRemoteError(f"Request timed out after {timeout}s") from e
