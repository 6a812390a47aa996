"""Sentry error tracking for the enrichment service.

Events are tagged with the Discogs credential mode and rate limit so a burst
of 401s or 429s can be tied to configuration. OAuth callback parameters and
Authorization headers are scrubbed before anything leaves the process.
"""

import logging
from typing import Any
from urllib.parse import parse_qsl, urlencode

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

logger = logging.getLogger(__name__)

FILTERED = "[Filtered]"
SENSITIVE_QUERY_PARAMS = frozenset({"oauth_token", "oauth_verifier", "token"})


def init_sentry(
    dsn: str | None,
    environment: str = "production",
    release: str | None = None,
    rate_limit: int | None = None,
) -> None:
    """Initialize Sentry with the FastAPI integration and credential scrubbing.

    Args:
        dsn: Sentry DSN. If None, Sentry is not initialized.
        environment: Deployment environment (e.g., "production", "development")
        release: Optional release version string
        rate_limit: Configured Discogs requests per minute, recorded as a tag
    """
    if not dsn:
        logger.info("Sentry DSN not configured, skipping initialization")
        return

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        integrations=[FastApiIntegration()],
        traces_sample_rate=1.0,
        send_default_pii=False,
        before_send=scrub_event,
    )
    if rate_limit is not None:
        sentry_sdk.set_tag("discogs.rate_limit", rate_limit)

    logger.info(f"Sentry initialized (environment: {environment})")


def tag_discogs_mode(mode: str) -> None:
    """Record which credential strategy is active ("token", "oauth", "disabled")."""
    sentry_sdk.set_tag("discogs.auth_mode", mode)


def scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    """``before_send`` hook removing Discogs credentials from request data."""
    request = event.get("request")
    if not isinstance(request, dict):
        return event

    query = request.get("query_string")
    if isinstance(query, str) and query:
        request["query_string"] = urlencode(
            [
                (name, FILTERED if name in SENSITIVE_QUERY_PARAMS else value)
                for name, value in parse_qsl(query, keep_blank_values=True)
            ]
        )

    headers = request.get("headers")
    if isinstance(headers, dict):
        for name in headers:
            if name.lower() == "authorization":
                headers[name] = FILTERED

    return event


def add_discogs_breadcrumb(
    operation: str,
    data: dict[str, Any] | None = None,
    level: str = "info",
) -> None:
    """Record a Discogs request attempt or query on the current scope.

    Callers must not put credential material in ``data``.
    """
    sentry_sdk.add_breadcrumb(
        category="discogs",
        message=operation,
        data=data or {},
        level=level,
    )


def capture_exception(error: Exception, context: dict[str, Any] | None = None) -> None:
    """Report an unexpected lookup failure, with the lookup key and kind as context."""
    if context:
        sentry_sdk.set_context("enrichment", context)
    sentry_sdk.capture_exception(error)
