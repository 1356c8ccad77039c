"""Per-client rate limiting for the interview endpoints (slowapi)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from interview_ai.core.config import settings

# Keyed by client IP; candidates behind one NAT share a budget
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
