"""Background enrichment: many keyed, cancellable Discogs lookups at once.

Each lookup runs as its own asyncio task:

    pending -> running -> completed | failed
          \\-> cancelled (from pending or running, via cancel())

Completed and failed lookups call their result sink exactly once; cancelled
lookups never do. Failures are turned into an all-absent LookupResult so one
bad record never stops its siblings. The shared rate budget is enforced by the
gateway's RateGate, not here.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from posthog import Posthog

from core.exceptions import DiscogsError, NoResultsError, UnauthorizedError
from core.sentry import capture_exception
from core.telemetry import LookupTelemetry
from discogs.gateway import DiscogsGateway
from enrichment.models import LookupKind, LookupRequest, LookupResult, LookupState
from enrichment.progress import BatchProgress

logger = logging.getLogger(__name__)

ResultSink = Callable[[LookupResult], Awaitable[None] | None]
UnauthorizedCallback = Callable[[UnauthorizedError], None]

DEFAULT_JITTER = (0.5, 2.0)


@dataclass
class _LookupEntry:
    request: LookupRequest
    sink: ResultSink
    state: LookupState = LookupState.PENDING
    task: asyncio.Task | None = None
    cancelled: bool = False


async def _call_sink(sink: ResultSink, result: LookupResult) -> None:
    outcome = sink(result)
    if inspect.isawaitable(outcome):
        await outcome


class EnrichmentCoordinator:
    """Run keyed lookups concurrently and report batch progress."""

    def __init__(
        self,
        gateway: DiscogsGateway,
        jitter: tuple[float, float] = DEFAULT_JITTER,
        on_unauthorized: UnauthorizedCallback | None = None,
        posthog_client: Posthog | None = None,
        progress: BatchProgress | None = None,
    ):
        """Initialize the coordinator.

        Args:
            gateway: Discogs gateway shared by all lookups
            jitter: (min, max) seconds of random delay before a lookup runs; (0, 0) disables
            on_unauthorized: Called once when Discogs rejects the credentials
            posthog_client: Optional PostHog client for per-lookup telemetry
            progress: Batch progress tracker (a fresh one by default)
        """
        self.gateway = gateway
        self.jitter = jitter
        self.on_unauthorized = on_unauthorized
        self.posthog_client = posthog_client
        self.progress = progress or BatchProgress()
        self._entries: dict[str, _LookupEntry] = {}
        self._unauthorized: UnauthorizedError | None = None

    # ------------------------------------------------------------------
    # Per-key lookups
    # ------------------------------------------------------------------

    def start(
        self,
        key: str,
        on_result: ResultSink,
        kind: LookupKind = LookupKind.BARCODE,
        artist: str | None = None,
        title: str | None = None,
    ) -> asyncio.Task:
        """Start a background lookup for ``key``, replacing any running one."""
        request = LookupRequest(key=key, kind=kind, artist=artist, title=title)
        return self.submit(request, on_result)

    def submit(self, request: LookupRequest, on_result: ResultSink) -> asyncio.Task:
        """Start a background lookup for a prepared request. Last start wins."""
        if self.cancel(request.key):
            logger.debug(f"Replaced running lookup for {request.key}")

        entry = _LookupEntry(request=request, sink=on_result)
        entry.task = asyncio.create_task(self._run(entry), name=f"enrich:{request.key}")
        self._entries[request.key] = entry
        return entry.task

    def cancel(self, key: str) -> bool:
        """Cancel the lookup for ``key``; its sink will not be called.

        Returns:
            True if a pending or running lookup was cancelled
        """
        entry = self._entries.pop(key, None)
        if entry is None:
            return False

        entry.cancelled = True
        entry.state = LookupState.CANCELLED
        if entry.task is not None and not entry.task.done():
            entry.task.cancel()
        logger.debug(f"Cancelled lookup for {key}")
        return True

    def cancel_all(self) -> None:
        for key in list(self._entries):
            self.cancel(key)

    def state(self, key: str) -> LookupState | None:
        """State of the live lookup for ``key``, None once it has finished."""
        entry = self._entries.get(key)
        return entry.state if entry else None

    def is_active(self, key: str) -> bool:
        return key in self._entries

    def active_keys(self) -> list[str]:
        return list(self._entries)

    async def join(self) -> None:
        """Wait for every lookup in flight right now to finish."""
        tasks = [e.task for e in self._entries.values() if e.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Unauthorized reporting
    # ------------------------------------------------------------------

    @property
    def unauthorized(self) -> UnauthorizedError | None:
        """The credential rejection seen since the last reset, if any."""
        return self._unauthorized

    def reset_unauthorized(self) -> None:
        """Re-arm reporting, e.g. after the user reconnects."""
        self._unauthorized = None

    def _report_unauthorized(self, error: UnauthorizedError) -> None:
        if self._unauthorized is not None:
            return
        self._unauthorized = error
        logger.error(f"Discogs credentials rejected: {error.message}")
        if self.on_unauthorized is not None:
            self.on_unauthorized(error)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def start_batch(self, total: int) -> None:
        self.progress.start_batch(total)

    def increment(self) -> None:
        self.progress.increment()

    def finish_batch(self) -> None:
        self.progress.finish_batch()

    async def run_batch(self, requests: Iterable[LookupRequest], on_result: ResultSink) -> None:
        """Look up every request concurrently, counting each delivery toward progress."""
        requests = list(requests)
        self.start_batch(len(requests))

        async def deliver(result: LookupResult) -> None:
            try:
                await _call_sink(on_result, result)
            finally:
                self.increment()

        try:
            tasks = [self.submit(request, deliver) for request in requests]
            await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self.finish_batch()

    # ------------------------------------------------------------------
    # Lookup task
    # ------------------------------------------------------------------

    def _jitter_delay(self) -> float:
        low, high = self.jitter
        if high <= 0:
            return 0.0
        return random.uniform(max(0.0, low), high)

    async def _run(self, entry: _LookupEntry) -> None:
        request = entry.request
        telemetry = LookupTelemetry(key=request.key, kind=request.kind.value)

        try:
            delay = self._jitter_delay()
            if delay > 0:
                await asyncio.sleep(delay)

            entry.state = LookupState.RUNNING
            outcome = LookupState.COMPLETED
            rejected: UnauthorizedError | None = None
            try:
                result = await self._lookup(request, telemetry)
            except NoResultsError:
                logger.info(f"No Discogs match for {request.kind.value} {request.key}")
                result = LookupResult.empty(request.key)
            except UnauthorizedError as e:
                outcome = LookupState.FAILED
                rejected = e
                result = LookupResult.empty(request.key)
            except DiscogsError as e:
                outcome = LookupState.FAILED
                logger.warning(f"Lookup for {request.key} failed: {type(e).__name__}: {e}")
                result = LookupResult.empty(request.key)
            except Exception as e:
                outcome = LookupState.FAILED
                logger.exception(f"Unexpected error looking up {request.key}")
                capture_exception(e, {"key": request.key, "kind": request.kind.value})
                result = LookupResult.empty(request.key)

            if entry.cancelled:
                return
            if rejected is not None:
                self._report_unauthorized(rejected)
            entry.state = outcome

            try:
                await _call_sink(entry.sink, result)
            except Exception:
                logger.exception(f"Result sink failed for {request.key}")

            self._send_telemetry(telemetry, outcome, result)
        except asyncio.CancelledError:
            entry.state = LookupState.CANCELLED
            raise
        finally:
            if self._entries.get(request.key) is entry:
                del self._entries[request.key]

    async def _lookup(self, request: LookupRequest, telemetry: LookupTelemetry) -> LookupResult:
        if request.kind == LookupKind.ARTIST_TITLE:
            with telemetry.track_step("search"):
                match = await self.gateway.search_by_artist_title(
                    request.artist or "", request.title or ""
                )
            found = LookupResult(
                key=request.key,
                artwork_url=match.cover_url,
                thumb_url=match.thumb_url,
                release_id=match.release_id,
            )
        else:
            search = (
                self.gateway.search_by_barcode
                if request.kind == LookupKind.BARCODE
                else self.gateway.search_by_identifier
            )
            with telemetry.track_step("search"):
                summary = await search(request.key)
            found = LookupResult(
                key=request.key,
                artwork_url=summary.cover_url,
                artist=summary.artist,
                title=summary.title,
                genre=summary.genre,
                year=summary.year,
                release_id=summary.release_id,
            )

        if found.release_id is None:
            return found

        try:
            with telemetry.track_step("tracklist"):
                details = await self.gateway.get_tracklist(found.release_id)
        except UnauthorizedError:
            raise
        except DiscogsError as e:
            logger.warning(
                f"Tracklist for release {found.release_id} unavailable, "
                f"keeping search data: {type(e).__name__}"
            )
            return found

        return found.model_copy(
            update={
                "tracklist": details.tracklist,
                "genre": details.genre or found.genre,
                "year": details.year or found.year,
                "notes": details.notes,
            }
        )

    def _send_telemetry(
        self, telemetry: LookupTelemetry, outcome: LookupState, result: LookupResult
    ) -> None:
        if self.posthog_client is None:
            return
        try:
            telemetry.send_to_posthog(
                self.posthog_client, outcome.value, {"matched": result.matched}
            )
        except Exception as e:
            logger.warning(f"Failed to send lookup telemetry: {e}")
