"""Round-robin API key rotation with per-key usage tracking.

Spreads outbound calls evenly over the configured credentials so no single
key hits the provider's per-key rate limits first. The pool is fixed at
construction; keys are never added or revoked at runtime.
"""

from __future__ import annotations

import logging

from interview_ai.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_MASK_PREFIX_LEN = 7


def mask_key(key: str) -> str:
    """Return a log-safe identifier for a credential ("sk-proj..." style)."""
    return f"{key[:_MASK_PREFIX_LEN]}..."


class KeyRotator:
    """Rotating cursor over a fixed credential pool.

    Usage:
        rotator = KeyRotator(["sk-a", "sk-b"])
        key = rotator.get_next_credential()
        rotator.get_usage_stats()  # {"sk-a...": 1, "sk-b...": 0}
    """

    def __init__(self, keys: list[str]):
        self._keys: tuple[str, ...] = tuple(keys)
        self._cursor = 0
        self._usage: dict[str, int] = {k: 0 for k in self._keys}

        if self._keys:
            logger.info("Key rotator initialized with %d API keys", len(self._keys))
        else:
            logger.warning("Key rotator initialized with an empty key pool")

    @property
    def pool_size(self) -> int:
        return len(self._keys)

    def get_next_credential(self) -> str:
        """Return the key under the cursor and advance it.

        Raises:
            ConfigurationError: no keys are configured.
        """
        if not self._keys:
            raise ConfigurationError("No OpenAI API keys configured")

        key = self._keys[self._cursor]
        self._cursor = (self._cursor + 1) % len(self._keys)
        self._usage[key] += 1
        return key

    def get_usage_stats(self) -> dict[str, int]:
        """Usage count per masked key."""
        stats: dict[str, int] = {}
        for key, count in self._usage.items():
            masked = mask_key(key)
            # Keys sharing a prefix collapse into one bucket
            stats[masked] = stats.get(masked, 0) + count
        return stats

    def reset_usage(self) -> None:
        for key in self._usage:
            self._usage[key] = 0
        logger.debug("API key usage counters reset")
