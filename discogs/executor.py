"""Rate-limited, retrying GET executor for the Discogs API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import httpx

from core.exceptions import (
    DiscogsNetworkError,
    InvalidResponseError,
    RateLimitExceededError,
    UnauthorizedError,
)
from core.sentry import add_discogs_breadcrumb
from discogs.auth import Credentials
from discogs.ratelimit import RateGate

logger = logging.getLogger(__name__)

DISCOGS_API_BASE = "https://api.discogs.com"
RATELIMIT_REMAINING_HEADER = "X-Discogs-Ratelimit-Remaining"
RATELIMIT_HEADERS = ("X-Discogs-Ratelimit", "X-Discogs-Ratelimit-Used", RATELIMIT_REMAINING_HEADER)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF = 60.0
MIN_RETRY_AFTER = 1.0


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds, clamped to at least 1s."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(MIN_RETRY_AFTER, seconds)


def quota_exhausted(response: httpx.Response) -> bool:
    """Whether the response reports zero remaining requests."""
    remaining = response.headers.get(RATELIMIT_REMAINING_HEADER)
    if remaining is None:
        return False
    try:
        return int(remaining.strip()) <= 0
    except ValueError:
        return False


class RequestExecutor:
    """Perform one logical GET against Discogs.

    Every attempt, retries included, first passes the rate gate. 429s are
    retried at most ``max_retries`` times; 401s, other statuses and transport
    failures are raised immediately.
    """

    def __init__(
        self,
        credentials: Callable[[], Credentials | None],
        rate_gate: RateGate,
        user_agent: str = "VinylEnrichmentService/1.0",
        timeout: float = 10.0,
        max_concurrent: int = 5,
        default_backoff: float = DEFAULT_BACKOFF,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the executor.

        Args:
            credentials: Called before each request to pick the credential strategy
            rate_gate: Shared admission gate
            user_agent: User-Agent sent with every request
            timeout: Per-attempt timeout in seconds
            max_concurrent: Max in-flight HTTP calls
            default_backoff: Wait for a 429 with neither Retry-After nor exhausted quota
            max_retries: Default retries after the first attempt on 429
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.credentials = credentials
        self.rate_gate = rate_gate
        self.user_agent = user_agent
        self.timeout = timeout
        self.default_backoff = default_backoff
        self.max_retries = max_retries
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=DISCOGS_API_BASE,
                headers={"User-Agent": self.user_agent},
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def check_api(self) -> bool:
        """Check Discogs API connectivity with the active credentials."""
        try:
            await self.execute("/oauth/identity", max_retries=0)
            return True
        except Exception as e:
            logger.debug(f"Discogs API check failed: {type(e).__name__}: {e}")
            return False

    async def execute(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """GET ``path`` and return the decoded JSON body.

        Args:
            path: API path (e.g., "/database/search") or absolute URL
            params: Optional query parameters
            max_retries: Retries allowed after the first attempt on 429,
                defaulting to ``self.max_retries``

        Returns:
            Decoded JSON body of the 200 response

        Raises:
            UnauthorizedError: no credentials configured, or HTTP 401
            RateLimitExceededError: 429 persisted past max_retries
            InvalidResponseError: any other status, or an undecodable body
            DiscogsNetworkError: transport failure or timeout
        """
        if max_retries is None:
            max_retries = self.max_retries
        client = await self._get_client()
        attempts = 0

        while True:
            credentials = self.credentials()
            if credentials is None:
                raise UnauthorizedError("No Discogs credentials configured")

            await self.rate_gate.admit()

            try:
                async with self._semaphore:
                    response = await client.get(path, params=params, auth=credentials)
            except httpx.TransportError as e:
                logger.error(f"Discogs request to {path} failed: {type(e).__name__}: {e}")
                add_discogs_breadcrumb(
                    "request_failed", {"path": path, "error": type(e).__name__}, level="error"
                )
                raise DiscogsNetworkError(f"Discogs request failed: {e}", cause=e) from e

            self._log_attempt(path, response, credentials, attempts)

            if response.status_code == 200:
                if quota_exhausted(response):
                    self.rate_gate.signal_exhausted()
                try:
                    return response.json()
                except ValueError as e:
                    raise InvalidResponseError(
                        f"Discogs returned an undecodable body for {path}", status_code=200
                    ) from e

            if response.status_code == 401:
                logger.warning(f"Discogs rejected credentials ({credentials.describe()})")
                raise UnauthorizedError(
                    "Discogs rejected the credentials", details={"mode": credentials.mode}
                )

            if response.status_code == 429:
                wait = self._backoff_for(response)
                self.rate_gate.signal_cooldown(wait)
                attempts += 1
                if attempts > max_retries:
                    logger.error(f"Discogs rate limit hit, {max_retries} retries exhausted")
                    raise RateLimitExceededError(
                        "Discogs rate limit exceeded",
                        details={"path": path, "attempts": attempts},
                    )
                logger.warning(
                    f"Discogs rate limit hit, retrying in {wait:.0f}s "
                    f"(attempt {attempts + 1}/{max_retries + 1})"
                )
                await asyncio.sleep(wait)
                continue

            raise InvalidResponseError(
                f"Discogs returned status {response.status_code} for {path}",
                status_code=response.status_code,
            )

    def _backoff_for(self, response: httpx.Response) -> float:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        if retry_after is not None:
            return retry_after
        if quota_exhausted(response):
            return self.rate_gate.exhausted_cooldown
        return self.default_backoff

    def _log_attempt(
        self,
        path: str,
        response: httpx.Response,
        credentials: Credentials,
        retries_so_far: int,
    ) -> None:
        limits = {h: response.headers[h] for h in RATELIMIT_HEADERS if h in response.headers}
        if "Retry-After" in response.headers:
            limits["Retry-After"] = response.headers["Retry-After"]
        logger.debug(
            f"Discogs GET {path} -> {response.status_code} "
            f"[{credentials.describe()}, retry {retries_so_far}] {limits}"
        )
        add_discogs_breadcrumb(
            "request_attempt",
            {
                "path": path,
                "status": response.status_code,
                "mode": credentials.mode,
                "retry": retries_so_far,
                **limits,
            },
        )
