"""Integration test fixtures.

Wires the real executor, gateway and coordinator against a stubbed Discogs
API, with the rate gate running on a fake clock.
"""

from dataclasses import dataclass

import httpx
import pytest
import pytest_asyncio

from discogs.auth import DiscogsAuthService, InMemoryCredentialStore
from discogs.executor import RequestExecutor
from discogs.gateway import DiscogsGateway
from discogs.memory_cache import DiscogsCaches
from discogs.ratelimit import RateGate
from enrichment.coordinator import EnrichmentCoordinator
from enrichment.store import ResultStore
from tests.factories import DiscogsApiStub, FakeClock, make_release_payload, make_search_hit

# ---------------------------------------------------------------------------
# Seed data -- representative releases
# ---------------------------------------------------------------------------

SEED_RELEASES = [
    ("0077774600125", 101, "Pink Floyd - The Wall", ["Rock"], 1979),
    ("5099902987613", 102, "Queen - The Game", ["Rock"], 1980),
    ("0602498656404", 103, "Kraftwerk - Computerwelt", ["Electronic"], 1981),
    ("0724384260552", 104, "Radiohead - OK Computer", ["Alternative"], 1997),
]


@dataclass
class Pipeline:
    clock: FakeClock
    api: DiscogsApiStub
    auth: DiscogsAuthService
    gate: RateGate
    executor: RequestExecutor
    gateway: DiscogsGateway
    coordinator: EnrichmentCoordinator
    store: ResultStore


@pytest.fixture
def seeded_api():
    api = DiscogsApiStub()
    for barcode, release_id, title, genres, year in SEED_RELEASES:
        api.search_results[barcode] = [make_search_hit(release_id, title=title, genre=genres)]
        api.releases[release_id] = make_release_payload(release_id, genres=genres, year=year)
    return api


def build_pipeline(api, rate_limit=60, cache=True, consumer=False) -> Pipeline:
    clock = FakeClock()
    gate = RateGate(max_requests_per_minute=rate_limit, clock=clock, sleep=clock.sleep)
    transport = httpx.MockTransport(api)
    auth = DiscogsAuthService(
        InMemoryCredentialStore(),
        static_token="integration-token",
        consumer_key="ck" if consumer else None,
        consumer_secret="cs" if consumer else None,
        rate_gate=gate,
        transport=transport,
    )
    executor = RequestExecutor(
        credentials=auth.active_credentials,
        rate_gate=gate,
        user_agent="IntegrationTest/1.0",
        transport=transport,
    )
    gateway = DiscogsGateway(executor, caches=DiscogsCaches(maxsize=50) if cache else None)
    coordinator = EnrichmentCoordinator(gateway, jitter=(0.0, 0.0))
    return Pipeline(clock, api, auth, gate, executor, gateway, coordinator, ResultStore())


@pytest_asyncio.fixture
async def pipeline(seeded_api):
    p = build_pipeline(seeded_api)
    yield p
    p.coordinator.cancel_all()
    await p.executor.close()
