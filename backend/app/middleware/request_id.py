"""Request ID middleware — tags every request and log line with an id."""
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core.logging import reset_request_id, set_request_id


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Use the caller's X-Request-Id if present, otherwise generate one."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-Id"] = request_id
            return response
        finally:
            reset_request_id(token)
