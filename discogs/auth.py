"""Discogs credential strategies and the OAuth1 session.

Two credential strategies exist and exactly one is used per request:

- StaticTokenCredentials: ``Authorization: Discogs token=<token>``
- OAuth1Credentials: OAuth 1.0a HMAC-SHA1 signed request

OAuth1 wins whenever an access token pair is stored (the session is
"connected"); otherwise the static token is used.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import parse_qsl, urlencode

import httpx
from oauthlib import oauth1

from core.exceptions import AuthorizationError, ConfigurationError, DiscogsNetworkError
from core.logging import redact_secret
from discogs.ratelimit import RateGate

logger = logging.getLogger(__name__)

REQUEST_TOKEN_URL = "https://api.discogs.com/oauth/request_token"
AUTHORIZE_URL = "https://www.discogs.com/oauth/authorize"
ACCESS_TOKEN_URL = "https://api.discogs.com/oauth/access_token"

SERVICE_NAME = "discogs"


@dataclass(frozen=True)
class StaticTokenCredentials(httpx.Auth):
    """Personal access token sent in the Authorization header."""

    token: str = field(repr=False)

    mode = "token"

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Discogs token={self.token}"
        yield request

    def describe(self) -> str:
        return f"token {redact_secret(self.token)}"


@dataclass(frozen=True)
class OAuth1Credentials(httpx.Auth):
    """Consumer key/secret plus access token pair used to sign each request."""

    consumer_key: str
    consumer_secret: str = field(repr=False)
    token: str = field(repr=False)
    token_secret: str = field(repr=False)

    mode = "oauth"

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        client = oauth1.Client(
            self.consumer_key,
            client_secret=self.consumer_secret,
            resource_owner_key=self.token,
            resource_owner_secret=self.token_secret,
            signature_method=oauth1.SIGNATURE_HMAC,
        )
        _, headers, _ = client.sign(str(request.url), http_method=request.method)
        request.headers["Authorization"] = headers["Authorization"]
        yield request

    def describe(self) -> str:
        return f"oauth {redact_secret(self.token)}"


Credentials = StaticTokenCredentials | OAuth1Credentials


@dataclass(frozen=True)
class StoredCredentials:
    """What the secure credential store keeps for one service."""

    token: str = field(repr=False)
    token_secret: str = field(repr=False)
    username: str = ""


class CredentialStore(Protocol):
    """Secure storage collaborator (keychain or equivalent)."""

    def read(self, service: str) -> StoredCredentials | None: ...

    def write(self, service: str, credentials: StoredCredentials) -> None: ...

    def delete(self, service: str) -> None: ...


class InMemoryCredentialStore:
    """Process-local credential store."""

    def __init__(self, initial: dict[str, StoredCredentials] | None = None):
        self._items: dict[str, StoredCredentials] = dict(initial or {})

    def read(self, service: str) -> StoredCredentials | None:
        return self._items.get(service)

    def write(self, service: str, credentials: StoredCredentials) -> None:
        self._items[service] = credentials

    def delete(self, service: str) -> None:
        self._items.pop(service, None)


class DiscogsAuthService:
    """Owns credential selection and the OAuth1 connect/disconnect flow.

    The OAuth access token pair lives in the credential store; the static
    token comes from configuration. ``active_credentials()`` is consulted once
    per request so connecting or disconnecting takes effect immediately.
    """

    def __init__(
        self,
        store: CredentialStore,
        static_token: str | None = None,
        consumer_key: str | None = None,
        consumer_secret: str | None = None,
        callback_url: str | None = None,
        user_agent: str = "VinylEnrichmentService/1.0",
        rate_gate: RateGate | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.store = store
        self.static_token = static_token or None
        self.consumer_key = consumer_key or None
        self.consumer_secret = consumer_secret or None
        self.callback_url = callback_url
        self.user_agent = user_agent
        self.rate_gate = rate_gate
        self._transport = transport
        # request token -> request token secret, until the user comes back
        self._pending: dict[str, str] = {}

    @property
    def oauth_configured(self) -> bool:
        return bool(self.consumer_key and self.consumer_secret)

    @property
    def is_connected(self) -> bool:
        """True when an OAuth access token pair is stored and usable."""
        stored = self.store.read(SERVICE_NAME)
        return bool(self.oauth_configured and stored and stored.token and stored.token_secret)

    @property
    def username(self) -> str:
        stored = self.store.read(SERVICE_NAME)
        return stored.username if stored else ""

    @property
    def auth_mode(self) -> str:
        """Which strategy the next request would use: "oauth", "token" or "disabled"."""
        credentials = self.active_credentials()
        return credentials.mode if credentials else "disabled"

    def active_credentials(self) -> Credentials | None:
        """Select the credential strategy for one request."""
        if self.is_connected:
            stored = self.store.read(SERVICE_NAME)
            assert stored is not None and self.consumer_key and self.consumer_secret
            return OAuth1Credentials(
                consumer_key=self.consumer_key,
                consumer_secret=self.consumer_secret,
                token=stored.token,
                token_secret=stored.token_secret,
            )
        if self.static_token:
            return StaticTokenCredentials(self.static_token)
        return None

    async def start_authorization(self) -> str:
        """Fetch a request token and return the URL the user must visit.

        Raises:
            ConfigurationError: consumer key/secret are missing
            AuthorizationError: Discogs refused to issue a request token
        """
        if not self.oauth_configured:
            raise ConfigurationError("Discogs consumer key/secret are not configured")

        client = oauth1.Client(
            self.consumer_key,
            client_secret=self.consumer_secret,
            callback_uri=self.callback_url,
            signature_method=oauth1.SIGNATURE_HMAC,
        )
        values = await self._token_request(client, REQUEST_TOKEN_URL)
        token = values.get("oauth_token")
        secret = values.get("oauth_token_secret")
        if not token or not secret:
            raise AuthorizationError("Discogs request token response was incomplete")

        self._pending[token] = secret
        logger.info(f"Obtained Discogs request token {redact_secret(token)}")
        return f"{AUTHORIZE_URL}?{urlencode({'oauth_token': token})}"

    async def complete_authorization(self, oauth_token: str, oauth_verifier: str) -> None:
        """Exchange an authorized request token for an access token pair and store it.

        Raises:
            AuthorizationError: unknown request token or the exchange failed
        """
        if not self.oauth_configured:
            raise ConfigurationError("Discogs consumer key/secret are not configured")

        request_secret = self._pending.pop(oauth_token, None)
        if request_secret is None:
            raise AuthorizationError(
                "Unknown or expired Discogs request token",
                details={"oauth_token": redact_secret(oauth_token)},
            )

        client = oauth1.Client(
            self.consumer_key,
            client_secret=self.consumer_secret,
            resource_owner_key=oauth_token,
            resource_owner_secret=request_secret,
            verifier=oauth_verifier,
            signature_method=oauth1.SIGNATURE_HMAC,
        )
        values = await self._token_request(client, ACCESS_TOKEN_URL, method="POST")
        token = values.get("oauth_token")
        secret = values.get("oauth_token_secret")
        if not token or not secret:
            raise AuthorizationError("Discogs access token response was incomplete")

        self.store.write(SERVICE_NAME, StoredCredentials(token=token, token_secret=secret))
        logger.info(f"Discogs OAuth connected ({redact_secret(token)})")

    def set_username(self, username: str) -> None:
        """Remember the identity of the connected account."""
        stored = self.store.read(SERVICE_NAME)
        if stored is None:
            return
        self.store.write(
            SERVICE_NAME,
            StoredCredentials(stored.token, stored.token_secret, username=username),
        )

    def disconnect(self) -> None:
        """Forget the stored OAuth session; requests fall back to the static token."""
        self.store.delete(SERVICE_NAME)
        self._pending.clear()
        logger.info("Discogs OAuth disconnected")

    async def _token_request(
        self, client: oauth1.Client, url: str, method: str = "GET"
    ) -> dict[str, str]:
        if self.rate_gate is not None:
            await self.rate_gate.admit()

        _, headers, _ = client.sign(url, http_method=method)
        headers["User-Agent"] = self.user_agent
        headers["Content-Type"] = "application/x-www-form-urlencoded"

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as http:
                response = await http.request(method, url, headers=headers)
        except httpx.TransportError as e:
            raise DiscogsNetworkError(f"Discogs OAuth request failed: {e}", cause=e) from e

        if response.status_code != 200:
            logger.warning(f"Discogs OAuth {url} returned {response.status_code}")
            raise AuthorizationError(
                f"Discogs OAuth request failed with status {response.status_code}",
                details={"status_code": response.status_code},
            )
        return dict(parse_qsl(response.text))
