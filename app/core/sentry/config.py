"""
Sentry configuration and context helpers.

Every Sentry event carries the request_id or sweep_id of the context it was
raised in. All helpers are no-ops when SENTRY_DSN is not set.
"""

import logging

import sentry_sdk

from app.core.config import settings

logger = logging.getLogger(__name__)


def init_sentry() -> None:
    """Initialize Sentry SDK. Called once at app startup (main.py)."""
    if not settings.SENTRY_DSN:
        logger.info("Sentry DSN not configured, skipping initialization")
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=(
            1.0 if settings.is_local else settings.SENTRY_TRACES_SAMPLE_RATE
        ),
        environment=settings.ENVIRONMENT,
        send_default_pii=False,
    )
    logger.info("Sentry initialized (environment=%s)", settings.ENVIRONMENT)


def set_sentry_context(
    *,
    request_id: str | None = None,
    sweep_id: str | None = None,
) -> None:
    """Tag the current Sentry scope (middleware sets request_id, sweeps set sweep_id)."""
    if not settings.SENTRY_DSN:
        return

    if request_id:
        sentry_sdk.set_tag("request_id", request_id)
    if sweep_id:
        sentry_sdk.set_tag("sweep_id", sweep_id)


def clear_sentry_context(*, request_id: bool = True, sweep_id: bool = True) -> None:
    """Reset scope tags. A sweep inside a request clears only sweep_id."""
    if not settings.SENTRY_DSN:
        return

    if request_id:
        sentry_sdk.set_tag("request_id", "")
    if sweep_id:
        sentry_sdk.set_tag("sweep_id", "")
