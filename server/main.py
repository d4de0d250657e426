"""
FastAPI backend for transcript search

Exposes search, reindex and status over HTTP, and keeps the index fresh with
a file watcher while the server runs.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Dict, Optional

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from transcript_indexer import (
    ConversationIndexer,
    ConversationWatcher,
    IndexerConfig,
    StoreNotInitializedError,
    configure_logging,
)

logger = logging.getLogger(__name__)

# Global state
indexer_instance: Optional[ConversationIndexer] = None


# Pydantic models for API
class SearchResultModel(BaseModel):
    content: str
    project: str
    session_id: str
    timestamp: str
    score: float


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResultModel]
    total_found: int


class IndexingRequest(BaseModel):
    force: bool = False


class IndexingResponse(BaseModel):
    processed: int
    added: int
    errors: List[str] = []


class IndexStatusModel(BaseModel):
    total_records: int
    distinct_projects: int
    last_updated: Optional[str] = None


def create_indexer(config: Optional[IndexerConfig] = None) -> ConversationIndexer:
    """Build and initialize the process-wide indexer"""
    global indexer_instance

    if indexer_instance is None:
        indexer = ConversationIndexer(config or IndexerConfig.from_env())
        indexer.initialize()
        indexer_instance = indexer
        logger.info("Indexer instance initialized")

    return indexer_instance


# Dependency to get indexer instance
async def get_indexer() -> ConversationIndexer:
    """Get or create indexer instance"""
    try:
        return create_indexer()
    except Exception as e:
        logger.error(f"Failed to initialize indexer: {e}")
        raise HTTPException(status_code=503, detail=f"Indexer unavailable: {e}")


async def run_initial_index(indexer: ConversationIndexer) -> None:
    """Catch up on logs written while the server was down"""
    logger.info("Starting initial index...")
    try:
        stats = await indexer.index_all(force=False)
        logger.info(f"Indexed {stats.added} chunks from {stats.processed} conversations")
    except Exception as e:
        logger.error(f"Initial indexing failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = IndexerConfig.from_env()
    configure_logging(config)

    indexer = create_indexer(config)
    watcher = ConversationWatcher(
        [config.claude_projects_dir, config.codex_sessions_dir],
        on_change=indexer.index_file,
        debounce_delay=config.debounce_delay
    )
    watcher.start()
    initial_index = asyncio.create_task(run_initial_index(indexer))

    try:
        yield
    finally:
        initial_index.cancel()
        await asyncio.gather(initial_index, return_exceptions=True)
        await watcher.stop()


# Initialize FastAPI app
app = FastAPI(
    title="transcript-search API",
    description="Semantic search over your coding assistant conversations",
    version="0.1.0",
    lifespan=lifespan
)


# API Endpoints

@app.get("/", response_model=Dict[str, str])
async def root():
    """Root endpoint"""
    return {
        "message": "transcript-search API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/search", response_model=SearchResponse)
async def search_conversations(
    query: str,
    limit: int = 5,
    project: Optional[str] = None,
    date_range: Optional[str] = None,
    sort_by: str = "relevance",
    indexer: ConversationIndexer = Depends(get_indexer)
):
    """Search past conversations by meaning"""
    if not query.strip():
        raise HTTPException(status_code=400, detail="query is required")

    try:
        results = await indexer.search(
            query,
            limit=limit,
            project=project or None,
            date_range=date_range or None,
            sort_by=sort_by
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SearchResponse(
        query=query,
        results=[
            SearchResultModel(
                content=r.content,
                project=r.project,
                session_id=r.session_id,
                timestamp=r.timestamp,
                score=r.score
            )
            for r in results
        ],
        total_found=len(results)
    )


@app.post("/index", response_model=IndexingResponse)
async def start_indexing(
    request: IndexingRequest,
    indexer: ConversationIndexer = Depends(get_indexer)
):
    """Index new and changed conversations (all of them with force=true)"""
    logger.info(f"Starting indexing (force={request.force})")
    stats = await indexer.index_all(force=request.force)

    return IndexingResponse(
        processed=stats.processed,
        added=stats.added,
        errors=stats.errors
    )


@app.get("/index/status", response_model=IndexStatusModel)
async def get_indexing_status(indexer: ConversationIndexer = Depends(get_indexer)):
    """Get current indexing status"""
    status = indexer.status()

    return IndexStatusModel(
        total_records=status.total_records,
        distinct_projects=status.distinct_projects,
        last_updated=status.last_updated
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Simple health check"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


# Error handlers
@app.exception_handler(StoreNotInitializedError)
async def store_not_initialized_handler(request: Request, exc: StoreNotInitializedError):
    logger.error(f"Store not initialized: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Index not initialized", "error": str(exc)}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn

    # Development server
    uvicorn.run(
        "server.main:app",
        host="127.0.0.1",
        port=8765,
        log_level="info"
    )
