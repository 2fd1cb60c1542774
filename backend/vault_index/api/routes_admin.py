"""Administrative routes for Vault Index."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from vault_index.api.dependencies import IndexRuntime, get_runtime
from vault_index.core.metrics import INDEX_SIZE, metrics_response
from vault_index.models.dto import StatsResponse

router = APIRouter()


@router.get("/stats", response_model=StatsResponse, summary="Vector store statistics")
async def stats(runtime: IndexRuntime = Depends(get_runtime)) -> StatsResponse:
    current = await runtime.store.stats()
    INDEX_SIZE.set(current.total_records)
    return StatsResponse.from_stats(runtime.store.name, current)


@router.get("/model", summary="Embedding model load status")
async def model_status(runtime: IndexRuntime = Depends(get_runtime)) -> dict[str, object]:
    status = runtime.model_manager.get_status(runtime.settings.embedding_model)
    if status is None:
        return {"model_id": runtime.settings.embedding_model, "status": "pending", "progress": 0.0, "error": None}
    return status.to_dict()


@router.get("/metrics", summary="Prometheus metrics")
async def metrics() -> Response:
    return metrics_response()
