"""Models for background enrichment lookups."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, TypeAdapter, computed_field, model_validator

from discogs.models import Track

TRACKLIST_ADAPTER = TypeAdapter(list[Track])


class LookupKind(StrEnum):
    """What the lookup key identifies."""

    BARCODE = "barcode"
    IDENTIFIER = "identifier"
    ARTIST_TITLE = "artist_title"


class LookupState(StrEnum):
    """Lifecycle of one keyed lookup."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class LookupRequest(BaseModel):
    """One enrichment unit: a key plus what to search for."""

    key: str
    kind: LookupKind = LookupKind.BARCODE
    artist: str | None = None
    title: str | None = None

    @model_validator(mode="after")
    def _artist_title_present(self):
        if self.kind == LookupKind.ARTIST_TITLE and not (self.artist or self.title):
            raise ValueError("artist_title lookups need an artist or a title")
        return self


class LookupResult(BaseModel):
    """Merged metadata for one lookup, delivered once to the result sink."""

    model_config = ConfigDict(frozen=True)

    key: str
    artwork_url: str | None = None
    thumb_url: str | None = None
    artist: str | None = None
    title: str | None = None
    tracklist: list[Track] = []
    genre: str | None = None
    year: str | None = None
    notes: str | None = None
    release_id: int | None = None

    @classmethod
    def empty(cls, key: str) -> "LookupResult":
        """The all-absent result used for no-match and failed lookups."""
        return cls(key=key)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def matched(self) -> bool:
        """True if a Discogs release was resolved."""
        return self.release_id is not None

    def encoded_tracklist(self) -> str | None:
        """Tracklist as a JSON array, the form the record store persists."""
        if not self.tracklist:
            return None
        return TRACKLIST_ADAPTER.dump_json(self.tracklist).decode()


class BatchRequest(BaseModel):
    """A group of lookups tracked for aggregate progress."""

    items: list[LookupRequest]
