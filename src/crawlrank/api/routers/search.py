"""Search UI Router - HTML search page."""

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from crawlrank.api.metrics import record_search
from crawlrank.api.routers.search_api import _parse_int
from crawlrank.api.templates import templates
from crawlrank.core.config import settings

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def search_page(request: Request, q: str | None = None, o: str | None = None):
    """Search Page"""
    query = (q or "").strip()[: settings.MAX_QUERY_LEN] or None
    offset = _parse_int(o, 0, min_v=0)
    per_page = min(request.app.state.results_limit, settings.MAX_PER_PAGE)

    result = None
    prev_offset = next_offset = None
    if query:
        engine = request.app.state.search_engine
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, engine.search, query, per_page, offset)
        record_search(result.total, result.elapsed)
        if offset > 0:
            prev_offset = max(offset - per_page, 0)
        if offset + per_page < result.total:
            next_offset = offset + per_page

    return templates.TemplateResponse(
        request,
        "search.html",
        {
            "q": query,
            "result": result,
            "prev_offset": prev_offset,
            "next_offset": next_offset,
        },
    )
