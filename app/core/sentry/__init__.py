"""Sentry error tracking - initialization and scope tags."""

from app.core.sentry.config import (
    clear_sentry_context,
    init_sentry,
    set_sentry_context,
)

__all__ = [
    "init_sentry",
    "set_sentry_context",
    "clear_sentry_context",
]
