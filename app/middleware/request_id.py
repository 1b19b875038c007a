"""
Request ID middleware for FastAPI.

Every request gets a request_id that is stored on request.state, returned in
the X-Request-ID response header and set in the logging context, so every log
line written while serving the request (including a triggered sweep) carries it.
"""

import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging_config import clear_request_id, set_request_id
from app.core.sentry import clear_sentry_context, set_sentry_context

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Reuse an upstream id (load balancer, admin console) when present
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_id(request_id)
        set_sentry_context(request_id=request_id)

        try:
            logger.info(f"{request.method} {request.url.path} - Request started")

            response: Response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            logger.info(
                f"{request.method} {request.url.path} - Request completed with status {response.status_code}"
            )
            return response

        except Exception as e:
            logger.error(f"{request.method} {request.url.path} - Request failed: {e}")
            raise
        finally:
            clear_request_id()
            clear_sentry_context()
