import json
import logging
import os
import random
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..utils.responses import err
from .request_id import HEADER, incoming_request_id, request_id_ctx

# Guest contact fields masked in logged bodies and query strings
PII_KEYS = {"phone", "email", "name", "customer_name"}
LOG_SAMPLE_2XX = float(os.getenv("LOG_SAMPLE_2XX", "0.1"))
READ_METHODS = {"GET", "HEAD", "OPTIONS"}
ADMIN_PATH = re.compile(r"^/api/admin/(?P<collection>[a-z_]+)")

logger = logging.getLogger("api")


def _mask(obj):
    if isinstance(obj, dict):
        return {k: "***" if k.lower() in PII_KEYS else _mask(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_mask(v) for v in obj]
    return obj


def _should_log(method: str, status: int) -> bool:
    if status >= 300 or method not in READ_METHODS:
        return True
    return random.random() < LOG_SAMPLE_2XX


class LoggingMiddleware(BaseHTTPMiddleware):
    """Write one access line per request.

    Writes and non-2xx responses are always logged; successful reads are
    sampled at ``LOG_SAMPLE_2XX``. Unhandled exceptions become a 500 envelope
    carrying an ``error_id`` that also appears in the log.
    """

    async def dispatch(self, request: Request, call_next):
        req_id = getattr(request.state, "request_id", None)
        token = None
        if not req_id:
            req_id = incoming_request_id(request)
            request.state.request_id = req_id
            token = request_id_ctx.set(req_id)

        method = request.method
        body = b"" if method in READ_METHODS else await request.body()
        if body:

            async def replay() -> dict:
                return {"type": "http.request", "body": body, "more_body": False}

            request._receive = replay

        started = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception:
            error_id = uuid.uuid4().hex
            logger.exception("unhandled error %s", error_id)
            payload = err(500, "Internal Server Error")
            payload["error_id"] = error_id
            response = JSONResponse(payload, status_code=500)

        status = response.status_code
        if _should_log(method, status):
            line = {
                "req_id": req_id,
                "method": method,
                "path": request.url.path,
                "status": status,
                "latency_ms": int((time.perf_counter() - started) * 1000),
            }
            if request.query_params:
                line["query"] = _mask(dict(request.query_params))
            if body:
                try:
                    line["body"] = _mask(json.loads(body))
                except ValueError:
                    line["body"] = "<non-json>"
            if error_id:
                line["error_id"] = error_id
            match = ADMIN_PATH.match(request.url.path)
            level = logging.ERROR if status >= 500 else logging.INFO
            logger.log(
                level,
                json.dumps(line),
                extra={"collection": match["collection"] if match else None},
            )

        response.headers[HEADER] = req_id
        if token is not None:
            request_id_ctx.reset(token)
        return response
