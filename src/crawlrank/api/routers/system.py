"""
System Router

- /health: simple health check for load balancers
- /stats: index aggregates
"""

import sqlite3

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from crawlrank.db.search import get_connection, read_info

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/stats")
async def stats(request: Request):
    """Info aggregate of the served index."""
    try:
        con = get_connection(request.app.state.search_engine.db_path)
        try:
            info = read_info(con)
        finally:
            con.close()
    except sqlite3.Error:
        return JSONResponse({"status": "unavailable"}, status_code=503)
    return info._asdict()
