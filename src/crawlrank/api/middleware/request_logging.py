# Request Logging Middleware with Correlation IDs

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("crawlrank.api")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    1. Assigns a request ID to each request (or keeps X-Request-ID)
    2. Logs method, path, status and duration
    3. Echoes the request ID in the response headers
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = request_id

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.time() - start_time) * 1000
            logger.exception(
                f"{request.method} {request.url.path} failed "
                f"[{request_id}] {duration_ms:.1f}ms"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"[{request_id}] {duration_ms:.1f}ms"
        )
        response.headers["X-Request-ID"] = request_id
        return response
