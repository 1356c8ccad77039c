"""Content-addressable TTL cache for AI results.

Keys are derived from a SHA-256 digest of the request's meaningful inputs,
so identical audio, question/answer pairs, or spoken text map to the same
entry regardless of who asked. Expired entries are evicted lazily on read,
and swept in bulk once the store grows past ``cleanup_threshold``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Callable
from typing import Any

from interview_ai.gateway.types import AIOperation, CacheEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


def content_digest(content: bytes | str) -> str:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def _fields_digest(*fields: str | None) -> str:
    # JSON keeps field boundaries unambiguous ("a:b", "c" vs "a", "b:c")
    return content_digest(json.dumps(list(fields), ensure_ascii=False))


def _analysis_field(resume_analysis: dict | None) -> str | None:
    return json.dumps(resume_analysis, sort_keys=True, ensure_ascii=False) if resume_analysis else None


def transcription_cache_key(audio: bytes) -> str:
    return f"{AIOperation.TRANSCRIPTION.value}:{content_digest(audio)}"


def evaluation_cache_key(
    question: str,
    answer: str,
    role: str,
    resume_context: str | None = None,
    job_requirements: str | None = None,
    resume_analysis: dict | None = None,
) -> str:
    digest = _fields_digest(
        question, answer, role, resume_context, job_requirements, _analysis_field(resume_analysis)
    )
    return f"{AIOperation.EVALUATION.value}:{digest}"


def speech_cache_key(text: str) -> str:
    return f"{AIOperation.SPEECH.value}:{content_digest(text)}"


def questions_cache_key(role: str, experience_level: str) -> str:
    return f"{AIOperation.QUESTIONS.value}:{_fields_digest(role, experience_level)}"


def resume_questions_cache_key(resume_analysis: dict, job_requirements: str | None = None) -> str:
    digest = _fields_digest("resume", _analysis_field(resume_analysis), job_requirements)
    return f"{AIOperation.QUESTIONS.value}:{digest}"


def resume_analysis_cache_key(resume_text: str) -> str:
    return f"{AIOperation.RESUME_ANALYSIS.value}:{content_digest(resume_text)}"


def follow_up_cache_key(question: str, answer: str, resume_analysis: dict) -> str:
    digest = _fields_digest(question, answer, _analysis_field(resume_analysis))
    return f"{AIOperation.FOLLOW_UP.value}:{digest}"


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class ContentCache:
    """In-memory key → value store with per-entry TTL.

    Usage:
        cache = ContentCache()
        cache.set(key, transcript, ttl_seconds=1800)
        cache.get(key)  # transcript, or None once expired
    """

    def __init__(
        self,
        cleanup_threshold: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cleanup_threshold = cleanup_threshold
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._live_entry(key)
        if entry is None:
            self._misses += 1
            return default
        self._hits += 1
        return entry.value

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

        if len(self._entries) > self.cleanup_threshold:
            self.cleanup()

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.info("Cache cleanup: removed %d expired entries", len(expired))
        return len(expired)

    def get_stats(self) -> dict:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
        }
