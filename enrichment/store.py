"""In-memory record store that receives lookup results."""

import logging

from enrichment.models import LookupResult

logger = logging.getLogger(__name__)


class ResultStore:
    """Keeps the latest enrichment data per key.

    Stands in for the app's persistence layer: ``merge`` is a fire-and-forget
    sink, and absent fields never overwrite data already stored for the key.
    Tracklists are persisted as JSON text alongside the record.
    """

    def __init__(self):
        self._records: dict[str, LookupResult] = {}
        self._tracklists: dict[str, str] = {}

    def merge(self, result: LookupResult) -> None:
        existing = self._records.get(result.key)
        if existing is None:
            self._records[result.key] = result
        else:
            updates = {
                name: value
                for name, value in result.model_dump(exclude={"key", "matched", "tracklist"}).items()
                if value is not None
            }
            if result.tracklist:
                updates["tracklist"] = result.tracklist
            self._records[result.key] = existing.model_copy(update=updates)

        encoded = result.encoded_tracklist()
        if encoded is not None:
            self._tracklists[result.key] = encoded
        logger.debug(f"Stored enrichment for {result.key} (matched={result.matched})")

    def get(self, key: str) -> LookupResult | None:
        return self._records.get(key)

    def encoded_tracklist(self, key: str) -> str | None:
        """The stored tracklist JSON for ``key``, None if none was ever delivered."""
        return self._tracklists.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
        self._tracklists.clear()
