"""Per-request logging context: X-Request-Id and the caller's user id."""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind request_id (and user_id when present) to structlog for the request's lifetime."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-Id", "")
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH:
            request_id = str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        context = {"request_id": request_id}
        user_id = request.headers.get("X-User-Id")
        if user_id:
            context["user_id"] = user_id
        structlog.contextvars.bind_contextvars(**context)

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars(*context)
        response.headers["X-Request-Id"] = request_id
        return response
