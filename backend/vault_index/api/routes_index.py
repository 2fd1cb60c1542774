"""Indexing API routes."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends

from vault_index.api.dependencies import IndexRuntime, get_runtime, get_scheduler
from vault_index.ingest.scheduler import IndexScheduler
from vault_index.models.dto import (
    AcceptedResponse,
    DeletePathRequest,
    EnqueueRequest,
    RenameRequest,
    StatusResponse,
)

router = APIRouter()


@router.post("/sync", response_model=AcceptedResponse, status_code=202, summary="Re-index the whole vault")
async def full_sync(
    background: BackgroundTasks,
    runtime: IndexRuntime = Depends(get_runtime),
) -> AcceptedResponse:
    documents = await runtime.corpus.list_documents()
    background.add_task(runtime.scheduler.full_sync)
    return AcceptedResponse(queued=len(documents))


@router.post("/enqueue", response_model=AcceptedResponse, status_code=202, summary="Queue documents for indexing")
async def enqueue(
    request: EnqueueRequest,
    scheduler: IndexScheduler = Depends(get_scheduler),
) -> AcceptedResponse:
    for path in request.paths:
        scheduler.enqueue(path)
    return AcceptedResponse(queued=scheduler.queue_length)


@router.post("/delete", response_model=AcceptedResponse, summary="Remove a document from the index")
async def delete(
    request: DeletePathRequest,
    scheduler: IndexScheduler = Depends(get_scheduler),
) -> AcceptedResponse:
    await scheduler.notify_deleted(request.path)
    return AcceptedResponse(status="ok", queued=scheduler.queue_length)


@router.post("/rename", response_model=AcceptedResponse, summary="Move a document's index entries")
async def rename(
    request: RenameRequest,
    scheduler: IndexScheduler = Depends(get_scheduler),
) -> AcceptedResponse:
    await scheduler.notify_renamed(request.old_path, request.new_path)
    return AcceptedResponse(queued=scheduler.queue_length)


@router.get("/status", response_model=StatusResponse, summary="Scheduler state")
async def status(scheduler: IndexScheduler = Depends(get_scheduler)) -> StatusResponse:
    return StatusResponse.from_status(scheduler.status())
