"""Query API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vault_index.api.dependencies import get_search_service
from vault_index.models.dto import QueryRequest, QueryResponse, SearchResultOut
from vault_index.retrieval.search import SearchService

router = APIRouter()


@router.post("/query", response_model=QueryResponse, summary="Semantic search over indexed passages")
async def run_query(
    request: QueryRequest,
    service: SearchService = Depends(get_search_service),
) -> QueryResponse:
    hits = await service.search(
        request.query,
        top_k=request.top_k,
        min_score=request.min_score,
        include_highlights=request.include_highlights,
    )
    return QueryResponse(query=request.query, results=[SearchResultOut.from_hit(hit) for hit in hits])
