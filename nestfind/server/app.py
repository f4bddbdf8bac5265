from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from nestfind import __version__
from nestfind.errors import SessionConflictError
from nestfind.logging import configure_logging
from nestfind.mapview import format_for_map
from nestfind.orchestrator import CatalogRequest, SearchRequest as SearchMessage
from nestfind.server.runtime import get_runtime, get_runtime_async, reset_runtime
from nestfind.server.schemas import MapResponse, SearchRequest, SearchResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    runtime = await get_runtime_async()
    configure_logging(runtime.config.log_level)
    yield
    await reset_runtime()


app = FastAPI(
    title="nestfind",
    description="Hybrid semantic and structured housing search - API server",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    runtime = get_runtime()
    return {
        "status": "ok",
        "listings": len(runtime.catalog),
        "language_service": runtime.interpreter.configured,
        "semantic_retrieval": runtime.retriever is not None,
    }


@app.get("/index/status")
async def get_index_status():
    runtime = get_runtime()
    return await runtime.get_index_status()


@app.post("/index/start")
async def start_indexing():
    runtime = get_runtime()
    if runtime.indexer is None:
        raise HTTPException(status_code=503, detail="Vector store unavailable")
    runtime.start_indexing()
    return {"status": "started"}


@app.get("/stats")
async def get_stats():
    runtime = get_runtime()
    return runtime.search_logger.snapshot()


@app.post("/api/search", response_model=SearchResponse)
async def search(request: SearchRequest) -> SearchResponse:
    runtime = get_runtime()
    try:
        result = await runtime.orchestrator.handle(
            SearchMessage(query=request.query, session_id=request.session_id)
        )
    except SessionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return SearchResponse.from_result(result)


@app.get("/api/apartments", response_model=SearchResponse)
async def list_apartments() -> SearchResponse:
    runtime = get_runtime()
    result = await runtime.orchestrator.handle(CatalogRequest())
    return SearchResponse.from_result(result)


@app.post("/api/map", response_model=MapResponse)
async def search_map(request: SearchRequest) -> MapResponse:
    runtime = get_runtime()
    try:
        result = await runtime.orchestrator.handle(
            SearchMessage(query=request.query, session_id=request.session_id)
        )
    except SessionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return MapResponse.from_map(result.session_id, format_for_map(result.listings))
