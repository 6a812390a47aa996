"""FastAPI router for direct Discogs queries and the OAuth connect flow."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from core.dependencies import get_auth_service, get_discogs_gateway, get_executor
from core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    DiscogsError,
    NoResultsError,
    RateLimitExceededError,
    UnauthorizedError,
)
from core.sentry import tag_discogs_mode
from discogs.auth import DiscogsAuthService
from discogs.executor import RequestExecutor
from discogs.gateway import DiscogsGateway
from discogs.models import ArtworkMatch, ReleaseDetails, ReleaseSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discogs", tags=["discogs"])


def _require_gateway(gateway: DiscogsGateway | None) -> DiscogsGateway:
    """Raise 503 if Discogs is disabled."""
    if gateway is None:
        raise HTTPException(
            status_code=503,
            detail="Discogs is not configured. Set DISCOGS_TOKEN or OAuth consumer credentials.",
        )
    return gateway


def to_http_error(error: DiscogsError) -> HTTPException:
    """Map a Discogs failure onto the status code returned to our caller."""
    if isinstance(error, NoResultsError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, UnauthorizedError):
        return HTTPException(status_code=401, detail=error.message)
    if isinstance(error, RateLimitExceededError):
        return HTTPException(status_code=429, detail=error.message)
    return HTTPException(status_code=502, detail=error.message)


@router.get(
    "/search",
    response_model=ArtworkMatch,
    summary="Find cover art for an artist and title",
    responses={
        200: {"description": "Best artwork match (fields empty if none)"},
        503: {"description": "Discogs not configured"},
    },
)
async def search_artist_title(
    artist: str = Query(..., description="Artist name"),
    title: str = Query(..., description="Album title"),
    gateway: DiscogsGateway | None = Depends(get_discogs_gateway),
) -> ArtworkMatch:
    gw = _require_gateway(gateway)
    try:
        return await gw.search_by_artist_title(artist, title)
    except DiscogsError as e:
        raise to_http_error(e) from e


@router.get("/barcode/{code}", response_model=ReleaseSummary, summary="Look up a barcode")
async def search_barcode(
    code: str,
    gateway: DiscogsGateway | None = Depends(get_discogs_gateway),
) -> ReleaseSummary:
    gw = _require_gateway(gateway)
    try:
        return await gw.search_by_barcode(code)
    except DiscogsError as e:
        raise to_http_error(e) from e


@router.get(
    "/identifier/{catalog_number}",
    response_model=ReleaseSummary,
    summary="Look up a catalog number",
)
async def search_identifier(
    catalog_number: str,
    gateway: DiscogsGateway | None = Depends(get_discogs_gateway),
) -> ReleaseSummary:
    gw = _require_gateway(gateway)
    try:
        return await gw.search_by_identifier(catalog_number)
    except DiscogsError as e:
        raise to_http_error(e) from e


@router.get(
    "/releases/{release_id}/tracklist",
    response_model=ReleaseDetails,
    summary="Get a release tracklist",
)
async def get_tracklist(
    release_id: int,
    gateway: DiscogsGateway | None = Depends(get_discogs_gateway),
) -> ReleaseDetails:
    gw = _require_gateway(gateway)
    try:
        return await gw.get_tracklist(release_id)
    except DiscogsError as e:
        raise to_http_error(e) from e


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.get("/oauth/status", summary="Current Discogs credential mode")
async def oauth_status(auth: DiscogsAuthService = Depends(get_auth_service)) -> dict:
    return {
        "mode": auth.auth_mode,
        "connected": auth.is_connected,
        "username": auth.username,
    }


@router.get("/oauth/connect", summary="Start the Discogs OAuth flow")
async def oauth_connect(auth: DiscogsAuthService = Depends(get_auth_service)) -> dict:
    try:
        url = await auth.start_authorization()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    except (AuthorizationError, DiscogsError) as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    return {"authorize_url": url}


@router.get("/oauth/callback", summary="Finish the Discogs OAuth flow")
async def oauth_callback(
    oauth_token: str = Query(...),
    oauth_verifier: str = Query(...),
    auth: DiscogsAuthService = Depends(get_auth_service),
    executor: RequestExecutor | None = Depends(get_executor),
) -> dict:
    try:
        await auth.complete_authorization(oauth_token, oauth_verifier)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    except AuthorizationError as e:
        raise HTTPException(status_code=400, detail=e.message) from e
    except DiscogsError as e:
        raise HTTPException(status_code=502, detail=e.message) from e

    if executor is not None:
        try:
            identity = await executor.execute("/oauth/identity", max_retries=0)
            auth.set_username(identity.get("username", ""))
        except DiscogsError as e:
            logger.warning(f"Failed to fetch Discogs identity: {type(e).__name__}")

    tag_discogs_mode(auth.auth_mode)
    return {"connected": auth.is_connected, "username": auth.username}


@router.delete("/oauth", summary="Disconnect the Discogs OAuth session")
async def oauth_disconnect(auth: DiscogsAuthService = Depends(get_auth_service)) -> dict:
    auth.disconnect()
    tag_discogs_mode(auth.auth_mode)
    return {"connected": False, "mode": auth.auth_mode}
