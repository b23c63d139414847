"""Search API Router - JSON search endpoint."""

import asyncio
import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel

from crawlrank.api.metrics import record_search
from crawlrank.core.config import settings
from crawlrank.search.searcher import SearchEngine

logger = logging.getLogger(__name__)

router = APIRouter()


class SearchHitOut(BaseModel):
    url: str
    title: str
    score: float


class SearchResponse(BaseModel):
    query: str
    total: int
    spent: float
    result: list[SearchHitOut]


def _parse_int(value: str | None, default: int, *, min_v: int) -> int:
    try:
        x = int(value) if value is not None else default
    except ValueError:
        x = default
    return max(x, min_v)


@router.get("/search", response_model=SearchResponse)
async def api_search(
    request: Request,
    q: str | None = None,
    o: str | None = None,
    limit: str | None = None,
):
    """Ranked search; `o` is the offset into the ranked result list."""
    engine: SearchEngine = request.app.state.search_engine
    query = (q or "").strip()[: settings.MAX_QUERY_LEN]
    offset = _parse_int(o, 0, min_v=0)
    per_page = min(
        _parse_int(limit, request.app.state.results_limit, min_v=1),
        settings.MAX_PER_PAGE,
    )

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, engine.search, query, per_page, offset)
    record_search(result.total, result.elapsed)

    return SearchResponse(
        query=result.query,
        total=result.total,
        spent=round(result.elapsed, 4),
        result=[
            SearchHitOut(url=hit.url, title=hit.title, score=round(hit.score, 4))
            for hit in result.hits
        ],
    )
