"""Discogs gateway: domain queries on top of the request executor."""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import ValidationError

from core.exceptions import InvalidResponseError, NoResultsError
from core.sentry import add_discogs_breadcrumb
from discogs.executor import RequestExecutor
from discogs.memory_cache import DiscogsCaches, async_cached
from discogs.models import (
    ArtworkMatch,
    Release,
    ReleaseDetails,
    ReleaseSummary,
    SearchHit,
    SearchResponse,
)

logger = logging.getLogger(__name__)

SEARCH_PATH = "/database/search"
ARTWORK_SCAN_LIMIT = 5
PLACEHOLDER_IMAGES = ("spacer.gif", "spacer.png")
PLACEHOLDER_HOST = "https://st.discogs.com/"

_AMPERSAND_PLUS = re.compile(r"[&+]")
_COMMA_SUFFIX = re.compile(r",.*$", re.DOTALL)


def _collapse(value: str) -> str:
    return " ".join(value.split())


def clean_artist(artist: str) -> str:
    """Drop '&' and '+' from an artist name and normalize whitespace."""
    return _collapse(_AMPERSAND_PLUS.sub("", artist))


def clean_title(title: str) -> str:
    """Drop everything from the first comma, then '&' and '+', and normalize whitespace."""
    return _collapse(_AMPERSAND_PLUS.sub("", _COMMA_SUFFIX.sub("", title)))


def is_placeholder_image(url: str | None) -> bool:
    """Whether a cover URL is one of Discogs' stand-in images."""
    if not url:
        return True
    if any(marker in url for marker in PLACEHOLDER_IMAGES):
        return True
    return url == PLACEHOLDER_HOST


def split_title(title: str) -> tuple[str, str]:
    """Parse Discogs title format 'Artist - Album' into components."""
    if " - " in title:
        artist, album = title.split(" - ", 1)
        return artist.strip(), album.strip()
    return "", title.strip()


class DiscogsGateway:
    """Translate enrichment intents into Discogs API calls.

    All operations go through ``RequestExecutor.execute`` and inherit its
    admission, retry and error behavior.
    """

    def __init__(self, executor: RequestExecutor, caches: DiscogsCaches | None = None):
        self.executor = executor
        self.caches = caches

    async def search_by_artist_title(self, artist: str, title: str) -> ArtworkMatch:
        """Find the first of the top results that has real cover art.

        Returns:
            ArtworkMatch with cover, thumbnail and release id, all None if no
            result in the first five has usable artwork
        """
        params = {
            "type": "release",
            "artist": clean_artist(artist),
            "release_title": clean_title(title),
        }
        logger.info(f"Searching Discogs for '{params['artist']} - {params['release_title']}'")
        add_discogs_breadcrumb("search_by_artist_title", {"artist": params["artist"]})

        search = self._parse(SearchResponse, await self.executor.execute(SEARCH_PATH, params))

        for hit in search.results[:ARTWORK_SCAN_LIMIT]:
            if not is_placeholder_image(hit.cover_image):
                logger.debug(f"Using artwork from release {hit.id}")
                return ArtworkMatch(cover_url=hit.cover_image, thumb_url=hit.thumb, release_id=hit.id)

        logger.info(f"No artwork found among {len(search.results)} results")
        return ArtworkMatch()

    @async_cached("search")
    async def search_by_barcode(self, code: str) -> ReleaseSummary:
        """Look up a release by barcode.

        Raises:
            NoResultsError: the search returned no releases
        """
        return await self._search_summary("barcode", code)

    @async_cached("search")
    async def search_by_identifier(self, catalog_number: str) -> ReleaseSummary:
        """Look up a release by catalog number.

        Raises:
            NoResultsError: the search returned no releases
        """
        return await self._search_summary("catno", catalog_number)

    @async_cached("release")
    async def get_tracklist(self, release_id: int) -> ReleaseDetails:
        """Fetch the tracklist, notes, first genre and year of a release."""
        add_discogs_breadcrumb("get_tracklist", {"release_id": release_id})
        release = self._parse(Release, await self.executor.execute(f"/releases/{release_id}"))
        logger.debug(f"Release {release_id} has {len(release.tracklist)} tracks")
        return ReleaseDetails(
            tracklist=release.tracklist,
            notes=release.notes,
            genre=release.genres[0] if release.genres else None,
            year=str(release.year) if release.year else None,
        )

    async def _search_summary(self, field: str, value: str) -> ReleaseSummary:
        logger.info(f"Searching Discogs by {field}: {value}")
        add_discogs_breadcrumb(f"search_by_{field}", {field: value})

        params = {"type": "release", field: value}
        search = self._parse(SearchResponse, await self.executor.execute(SEARCH_PATH, params))
        if not search.results:
            raise NoResultsError(f"No Discogs results for {field} {value}", details={field: value})

        return self._summarize(search.results[0])

    def _summarize(self, hit: SearchHit) -> ReleaseSummary:
        split_artist, split_album = split_title(hit.title)
        return ReleaseSummary(
            artist=hit.artist or split_artist or None,
            title=split_album or None,
            genre=hit.genre[0] if hit.genre else None,
            year=hit.year,
            cover_url=None if is_placeholder_image(hit.cover_image) else hit.cover_image,
            release_id=hit.id,
        )

    @staticmethod
    def _parse(model: type[Any], payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise InvalidResponseError(
                f"Unexpected Discogs payload for {model.__name__}",
                details={"errors": e.error_count()},
            ) from e
