"""Request id propagation for log correlation."""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

HEADER = "X-Request-ID"
# Client supplied ids end up in log lines; keep them short and printable.
_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def incoming_request_id(request: Request) -> str:
    """Return the caller's request id if usable, else a fresh one."""
    supplied = request.headers.get(HEADER, "")
    if _VALID_ID.match(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the context for the duration of a request."""

    async def dispatch(self, request: Request, call_next):
        req_id = getattr(request.state, "request_id", None) or incoming_request_id(request)
        request.state.request_id = req_id
        token = request_id_ctx.set(req_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[HEADER] = req_id
        return response
