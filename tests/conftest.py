"""Shared test fixtures for pytest."""

from unittest.mock import AsyncMock

import pytest

from discogs.gateway import DiscogsGateway
from discogs.ratelimit import RateGate
from tests.factories import FakeClock


@pytest.fixture
def fake_clock():
    """A clock that only moves when something sleeps on it."""
    return FakeClock()


@pytest.fixture
def rate_gate(fake_clock):
    """Rate gate driven by the fake clock."""
    return RateGate(max_requests_per_minute=60, clock=fake_clock, sleep=fake_clock.sleep)


@pytest.fixture
def mock_gateway():
    """Create a mock Discogs gateway."""
    gateway = AsyncMock(spec=DiscogsGateway)
    gateway.search_by_barcode = AsyncMock()
    gateway.search_by_identifier = AsyncMock()
    gateway.search_by_artist_title = AsyncMock()
    gateway.get_tracklist = AsyncMock()
    return gateway
