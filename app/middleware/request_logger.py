"""
Request Logger Middleware

Binds a request id for the duration of each request, logs timings and echoes
the id back in the X-Request-ID response header
"""

import time
import uuid
import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from app.services.logger import logger

REQUEST_ID_HEADER = 'X-Request-ID'


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Reuse an upstream id when the proxy supplies one
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(requestId=request_id)

        started = time.perf_counter()
        logger.info(
            f"→ {request.method} {request.url.path}",
            clientIp=request.client.host if request.client else None
        )

        try:
            response = await call_next(request)
        except Exception as error:
            logger.error(
                f"✗ {request.method} {request.url.path}",
                error=str(error),
                durationMs=round((time.perf_counter() - started) * 1000, 1)
            )
            raise

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.info(
            f"← {request.method} {request.url.path} {response.status_code}",
            statusCode=response.status_code,
            durationMs=elapsed_ms
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        structlog.contextvars.clear_contextvars()
        return response
