"""FastAPI router for background lookups and batch progress."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from core.dependencies import get_coordinator, get_result_store
from enrichment.coordinator import EnrichmentCoordinator
from enrichment.models import BatchRequest, LookupRequest, LookupResult, LookupState
from enrichment.progress import ProgressSnapshot
from enrichment.store import ResultStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/enrichment", tags=["enrichment"])

# Strong references to running batch drivers so they aren't garbage collected
_batch_tasks: set[asyncio.Task] = set()


def _require_coordinator(coordinator: EnrichmentCoordinator | None) -> EnrichmentCoordinator:
    """Raise 503 if Discogs is disabled."""
    if coordinator is None:
        raise HTTPException(
            status_code=503,
            detail="Discogs is not configured. Set DISCOGS_TOKEN or OAuth consumer credentials.",
        )
    return coordinator


@router.post("/lookups", status_code=202, summary="Start a background lookup")
async def start_lookup(
    request: LookupRequest,
    coordinator: EnrichmentCoordinator | None = Depends(get_coordinator),
    store: ResultStore = Depends(get_result_store),
) -> dict:
    coord = _require_coordinator(coordinator)
    coord.submit(request, store.merge)
    return {"key": request.key, "state": LookupState.PENDING}


@router.get("/lookups/{key}", summary="State and stored result of a lookup")
async def get_lookup(
    key: str,
    coordinator: EnrichmentCoordinator | None = Depends(get_coordinator),
    store: ResultStore = Depends(get_result_store),
) -> dict:
    state = coordinator.state(key) if coordinator is not None else None
    result: LookupResult | None = store.get(key)
    if state is None and result is None:
        raise HTTPException(status_code=404, detail=f"No lookup for {key}")
    return {
        "key": key,
        "state": state,
        "result": result.model_dump() if result else None,
        "encoded_tracklist": store.encoded_tracklist(key),
    }


@router.delete("/lookups/{key}", summary="Cancel a lookup")
async def cancel_lookup(
    key: str,
    coordinator: EnrichmentCoordinator | None = Depends(get_coordinator),
) -> dict:
    coord = _require_coordinator(coordinator)
    return {"key": key, "cancelled": coord.cancel(key)}


@router.post("/batches", status_code=202, summary="Start a batch of lookups")
async def start_batch(
    batch: BatchRequest,
    coordinator: EnrichmentCoordinator | None = Depends(get_coordinator),
    store: ResultStore = Depends(get_result_store),
) -> ProgressSnapshot:
    coord = _require_coordinator(coordinator)
    if coord.progress.is_importing:
        raise HTTPException(status_code=409, detail="A batch is already running")

    coord.start_batch(len(batch.items))
    task = asyncio.create_task(coord.run_batch(batch.items, store.merge))
    _batch_tasks.add(task)
    task.add_done_callback(_batch_tasks.discard)
    logger.info(f"Started batch of {len(batch.items)} lookups")
    return coord.progress.snapshot()


@router.get("/progress", response_model=ProgressSnapshot, summary="Batch progress")
async def get_progress(
    coordinator: EnrichmentCoordinator | None = Depends(get_coordinator),
) -> ProgressSnapshot:
    coord = _require_coordinator(coordinator)
    return coord.progress.snapshot()
