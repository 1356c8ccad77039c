"""Sentry error tracking for provider failures and unhandled errors.

Enabled only when SENTRY_DSN is set. Events pass through ``scrub_event``
first so exception messages that echo an API key never leave the process.
"""

import logging

from interview_ai.core.config import settings
from interview_ai.core.logging import redact_secrets

logger = logging.getLogger(__name__)


def scrub_event(event: dict, hint: dict) -> dict:
    """Sentry ``before_send`` hook: mask secret keys in messages and exception values."""
    for exc in event.get("exception", {}).get("values", []):
        if isinstance(exc.get("value"), str):
            exc["value"] = redact_secrets(exc["value"])

    logentry = event.get("logentry") or {}
    if isinstance(logentry.get("message"), str):
        logentry["message"] = redact_secrets(logentry["message"])

    return event


def init_sentry() -> None:
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured, skipping")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        before_send=scrub_event,
        integrations=[FastApiIntegration(transaction_style="endpoint")],
    )
    logger.info("Sentry initialized (env=%s)", settings.app_env)
