"""Coarse-grained progress for a batch of lookups (e.g. one CSV import)."""

import logging
from collections.abc import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ProgressSnapshot(BaseModel):
    """Read-only view of batch progress."""

    completed: int
    total: int
    fraction: float
    is_importing: bool


ProgressListener = Callable[[ProgressSnapshot], None]


class BatchProgress:
    """Completed/total counter for the progress UI.

    ``increment()`` is called once per finished item regardless of outcome;
    ``finish_batch()`` forces completion (e.g. when some items were cancelled).
    """

    def __init__(self):
        self._completed = 0
        self._total = 0
        self._is_importing = False
        self._listeners: list[ProgressListener] = []

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def total(self) -> int:
        return self._total

    @property
    def is_importing(self) -> bool:
        return self._is_importing

    @property
    def fraction(self) -> float:
        if self._total <= 0:
            return 0.0
        return self._completed / self._total

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            completed=self._completed,
            total=self._total,
            fraction=self.fraction,
            is_importing=self._is_importing,
        )

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener called on every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start_batch(self, total: int) -> None:
        self._total = max(0, total)
        self._completed = 0
        self._is_importing = self._total > 0
        logger.info(f"Batch started with {self._total} items")
        self._notify()

    def increment(self) -> None:
        if self._total <= 0:
            return
        if self._completed < self._total:
            self._completed += 1
        if self._completed >= self._total:
            self._is_importing = False
        self._notify()

    def finish_batch(self) -> None:
        if self._total > 0:
            self._completed = self._total
        self._is_importing = False
        logger.info(f"Batch finished ({self._completed}/{self._total})")
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
