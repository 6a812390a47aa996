"""Pydantic models for Discogs API payloads and gateway results."""

from pydantic import BaseModel, ConfigDict, field_validator


class Track(BaseModel):
    """A single track on a release, as Discogs provides it."""

    model_config = ConfigDict(frozen=True)

    position: str = ""
    title: str = ""
    duration: str = ""

    @field_validator("position", "title", "duration", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class SearchHit(BaseModel):
    """One entry of a /database/search response."""

    id: int
    title: str = ""
    cover_image: str | None = None
    thumb: str | None = None
    artist: str | None = None
    genre: list[str] = []
    year: str | None = None

    @field_validator("year", mode="before")
    @classmethod
    def _stringify_year(cls, value):
        return str(value) if value not in (None, "") else None


class SearchResponse(BaseModel):
    """A /database/search response."""

    results: list[SearchHit] = []


class Release(BaseModel):
    """A /releases/{id} response, reduced to the fields enrichment uses."""

    id: int | None = None
    tracklist: list[Track] = []
    notes: str | None = None
    genres: list[str] = []
    year: int | None = None

    @field_validator("genres", mode="before")
    @classmethod
    def _null_genres(cls, value):
        return [] if value is None else value


class ArtworkMatch(BaseModel):
    """Result of an artist/title search: first hit with real cover art."""

    model_config = ConfigDict(frozen=True)

    cover_url: str | None = None
    thumb_url: str | None = None
    release_id: int | None = None


class ReleaseSummary(BaseModel):
    """Result of a barcode or catalog-number search."""

    model_config = ConfigDict(frozen=True)

    artist: str | None = None
    title: str | None = None
    genre: str | None = None
    year: str | None = None
    cover_url: str | None = None
    release_id: int | None = None


class ReleaseDetails(BaseModel):
    """Tracklist and descriptive fields of one release."""

    model_config = ConfigDict(frozen=True)

    tracklist: list[Track] = []
    notes: str | None = None
    genre: str | None = None
    year: str | None = None
