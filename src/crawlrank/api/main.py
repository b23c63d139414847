from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from crawlrank.api.metrics import MetricsMiddleware
from crawlrank.api.metrics import router as metrics_router
from crawlrank.api.middleware.request_logging import RequestLoggingMiddleware
from crawlrank.api.routers import search, search_api, system
from crawlrank.core.config import settings
from crawlrank.db.search import ensure_db
from crawlrank.search.searcher import SearchEngine


def create_app(db_path: str | None = None, results_limit: int | None = None) -> FastAPI:
    """Build the search server for the index at `db_path`."""
    db_path = db_path or settings.DB_PATH

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ensure_db(db_path)
        yield

    app = FastAPI(
        lifespan=lifespan,
        title="crawlrank",
        version=settings.APP_VERSION,
        description="Search over a crawled index ranked by BM25 and PageRank.",
    )
    app.state.search_engine = SearchEngine(db_path)
    app.state.results_limit = results_limit or settings.RESULTS_LIMIT

    # Last added = first executed
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.include_router(search.router, tags=["ui"])
    app.include_router(search_api.router, tags=["search"])
    app.include_router(system.router, tags=["system"])
    app.include_router(metrics_router, tags=["metrics"])
    return app


def run(
    db_path: str | None = None,
    host: str | None = None,
    port: int | None = None,
    results_limit: int | None = None,
) -> None:
    uvicorn.run(
        create_app(db_path, results_limit),
        host=host or settings.HOST,
        port=port or settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
