"""Unit test fixtures."""

from contextlib import contextmanager
from unittest.mock import Mock

import httpx
import pytest

from config.settings import Settings
from core.dependencies import build_services
from tests.factories import DiscogsApiStub


@contextmanager
def attach_services(app, services):
    """Attach built services to the app and detach them on exit.

    Args:
        app: The FastAPI application.
        services: EnrichmentServices to expose to request handlers.
    """
    previous = getattr(app.state, "services", None)
    app.state.services = services
    try:
        yield app
    finally:
        app.state.services = previous


@pytest.fixture
def mock_settings(monkeypatch):
    """Settings with safe test defaults (fake token, no jitter, no DSNs)."""
    monkeypatch.setenv("SENTRY_DSN", "")
    monkeypatch.setenv("POSTHOG_API_KEY", "")
    monkeypatch.setenv("ENABLE_TELEMETRY", "false")
    return Settings(
        discogs_token="test-token-123",
        discogs_consumer_key=None,
        discogs_consumer_secret=None,
        discogs_oauth_token=None,
        discogs_oauth_token_secret=None,
        enrichment_jitter_min=0.0,
        enrichment_jitter_max=0.0,
        sentry_dsn=None,
        posthog_api_key=None,
        enable_telemetry=False,
    )


@pytest.fixture
def disabled_settings(mock_settings):
    """Settings with no Discogs credentials at all."""
    return mock_settings.model_copy(update={"discogs_token": None})


@pytest.fixture
def oauth_settings(mock_settings):
    """Settings with OAuth consumer credentials and a stored access pair."""
    return mock_settings.model_copy(
        update={
            "discogs_consumer_key": "ck",
            "discogs_consumer_secret": "cs",
            "discogs_oauth_token": "acc-tok",
            "discogs_oauth_token_secret": "acc-sec",
        }
    )


@pytest.fixture
def discogs_api():
    """Stubbed Discogs API behind an httpx.MockTransport."""
    return DiscogsApiStub()


@pytest.fixture
def services(mock_settings, discogs_api):
    """Services wired against the stubbed Discogs API."""
    return build_services(mock_settings, transport=httpx.MockTransport(discogs_api))


@pytest.fixture
def app_with_services(services):
    from main import app

    with attach_services(app, services):
        yield app


@pytest.fixture
def mock_posthog_client():
    """Mock PostHog client."""
    client = Mock()
    client.capture = Mock()
    client.flush = Mock()
    client.shutdown = Mock()
    return client
