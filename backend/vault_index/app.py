"""FastAPI application setup for Vault Index."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vault_index.api.dependencies import get_app_settings, start_runtime, stop_runtime
from vault_index.api.routes_admin import router as admin_router
from vault_index.api.routes_index import router as index_router
from vault_index.api.routes_query import router as query_router
from vault_index.core.errors import EmbeddingComputeError, EmbeddingLoadError, StoreUnavailable, VaultIndexError
from vault_index.core.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Vault Index",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5174",
        "http://localhost:5174",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(index_router, prefix="/index", tags=["index"])
app.include_router(query_router, prefix="", tags=["query"])
app.include_router(admin_router, prefix="", tags=["admin"])

_UNAVAILABLE = (StoreUnavailable, EmbeddingLoadError, EmbeddingComputeError)


@app.exception_handler(VaultIndexError)
async def handle_index_error(request: Request, exc: VaultIndexError) -> JSONResponse:
    status_code = 503 if isinstance(exc, _UNAVAILABLE) else 500
    logger.error("Request %s failed: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"code": exc.code, "detail": exc.message})


@app.on_event("startup")
async def startup() -> None:
    """Open the store, start the worker pool and begin loading the model."""
    settings = get_app_settings()
    configure_logging(settings.log_level)
    await start_runtime()


@app.on_event("shutdown")
async def shutdown() -> None:
    await stop_runtime()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
