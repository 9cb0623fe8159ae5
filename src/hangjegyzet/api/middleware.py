"""Middleware for HTTP error logging."""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class HTTPErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to ensure all HTTP errors are logged.

    - 4xx responses: logged at WARN level
    - 5xx responses: logged at ERROR level
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        upload_id = None

        # JSON bodies only; multipart chunk bodies are left to the route
        if (
            request.method in ["POST", "PUT", "PATCH"]
            and request.headers.get("content-type", "").startswith("application/json")
        ):
            try:
                body = await request.json()
                if isinstance(body, dict):
                    upload_id = body.get("uploadId")
            except Exception:
                # Body may be malformed; validation reports that
                pass

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        details = {
            "http_status": response.status_code,
            "method": request.method,
            "path": request.url.path,
            "upload_id": upload_id,
            "duration_ms": duration_ms,
        }

        if 400 <= response.status_code < 500:
            logger.warning("Client error response", extra=details)
        elif response.status_code >= 500:
            logger.error("Server error response", extra=details)

        return response
