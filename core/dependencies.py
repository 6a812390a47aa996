"""Service construction and FastAPI dependency providers.

Services are built once per application in the lifespan handler and kept on
``app.state.services``; providers read them from there, so tests can build
isolated instances per case.
"""

import logging
from dataclasses import dataclass

import httpx
from fastapi import Request
from posthog import Posthog

from config.settings import Settings
from core.logging import redact_secret
from core.sentry import tag_discogs_mode
from discogs.auth import SERVICE_NAME, DiscogsAuthService, InMemoryCredentialStore, StoredCredentials
from discogs.executor import RequestExecutor
from discogs.gateway import DiscogsGateway
from discogs.memory_cache import DiscogsCaches
from discogs.ratelimit import RateGate
from enrichment.coordinator import EnrichmentCoordinator
from enrichment.store import ResultStore

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentServices:
    """Everything the HTTP surface needs, constructed together."""

    settings: Settings
    auth: DiscogsAuthService
    store: ResultStore
    rate_gate: RateGate
    executor: RequestExecutor | None = None
    gateway: DiscogsGateway | None = None
    coordinator: EnrichmentCoordinator | None = None
    posthog_client: Posthog | None = None

    @property
    def discogs_enabled(self) -> bool:
        return self.gateway is not None


def build_posthog_client(settings: Settings) -> Posthog | None:
    """Create a PostHog client if configured and enabled."""
    if not settings.enable_telemetry:
        logger.debug("Telemetry disabled")
        return None

    if not settings.posthog_api_key:
        logger.debug("POSTHOG_API_KEY not set - telemetry disabled")
        return None

    client = Posthog(project_api_key=settings.posthog_api_key, host=settings.posthog_host)
    logger.info(f"PostHog client initialized (host: {settings.posthog_host})")
    return client


def build_services(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> EnrichmentServices:
    """Wire rate gate, credentials, executor, gateway and coordinator.

    Discogs is disabled (no gateway or coordinator) when neither a token nor
    OAuth consumer credentials are configured.

    Args:
        settings: Application settings
        transport: Optional httpx transport shared by all Discogs clients
    """
    store = InMemoryCredentialStore()
    if settings.discogs_oauth_token and settings.discogs_oauth_token_secret:
        store.write(
            SERVICE_NAME,
            StoredCredentials(settings.discogs_oauth_token, settings.discogs_oauth_token_secret),
        )

    rate_gate = RateGate(
        max_requests_per_minute=settings.discogs_rate_limit,
        exhausted_cooldown=settings.discogs_exhausted_cooldown,
    )
    auth = DiscogsAuthService(
        store=store,
        static_token=settings.discogs_token,
        consumer_key=settings.discogs_consumer_key,
        consumer_secret=settings.discogs_consumer_secret,
        callback_url=settings.discogs_oauth_callback_url,
        user_agent=settings.discogs_user_agent,
        rate_gate=rate_gate,
        transport=transport,
    )
    services = EnrichmentServices(
        settings=settings,
        auth=auth,
        store=ResultStore(),
        rate_gate=rate_gate,
        posthog_client=build_posthog_client(settings),
    )
    tag_discogs_mode(auth.auth_mode)

    if not settings.discogs_token and not auth.oauth_configured:
        logger.warning("No Discogs token or OAuth consumer configured - Discogs lookups disabled")
        return services

    services.executor = RequestExecutor(
        credentials=auth.active_credentials,
        rate_gate=rate_gate,
        user_agent=settings.discogs_user_agent,
        timeout=settings.discogs_request_timeout,
        max_concurrent=settings.discogs_max_concurrent,
        default_backoff=settings.discogs_default_backoff,
        max_retries=settings.discogs_max_retries,
        transport=transport,
    )
    services.gateway = DiscogsGateway(services.executor, caches=DiscogsCaches.from_settings(settings))
    services.coordinator = EnrichmentCoordinator(
        services.gateway,
        jitter=(settings.enrichment_jitter_min, settings.enrichment_jitter_max),
        posthog_client=services.posthog_client,
    )
    logger.info(
        f"Discogs enabled (mode: {auth.auth_mode}, token: {redact_secret(settings.discogs_token)}, "
        f"{settings.discogs_rate_limit} req/min)"
    )
    return services


def flush_posthog(services: EnrichmentServices | None) -> None:
    """Flush pending PostHog events, if telemetry is on."""
    if services is not None and services.posthog_client is not None:
        services.posthog_client.flush()


async def close_services(services: EnrichmentServices) -> None:
    """Cancel in-flight lookups and release clients."""
    if services.coordinator is not None:
        services.coordinator.cancel_all()
    if services.executor is not None:
        await services.executor.close()
    if services.posthog_client is not None:
        services.posthog_client.shutdown()
        logger.info("PostHog client shutdown")


def get_services(request: Request) -> EnrichmentServices:
    """Services attached to the running application."""
    return request.app.state.services


def get_auth_service(request: Request) -> DiscogsAuthService:
    return get_services(request).auth


def get_result_store(request: Request) -> ResultStore:
    return get_services(request).store


def get_discogs_gateway(request: Request) -> DiscogsGateway | None:
    return get_services(request).gateway


def get_executor(request: Request) -> RequestExecutor | None:
    return get_services(request).executor


def get_coordinator(request: Request) -> EnrichmentCoordinator | None:
    return get_services(request).coordinator
