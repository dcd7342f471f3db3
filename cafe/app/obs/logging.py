import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from ..middlewares.request_id import request_id_ctx

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+", re.I)
PHONE_RE = re.compile(r"\+?\b\d{10,13}\b")

# ``extra=`` keys copied into the JSON line when a record carries them
CONTEXT_FIELDS = ("collection", "entity", "store", "elapsed_ms", "status", "code", "route")


def _scrub(text: str) -> str:
    return PHONE_RE.sub("***", EMAIL_RE.sub("***", text))


class RequestIdFilter(logging.Filter):
    """Stamp each record with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "req_id", None) is None:
            record.req_id = request_id_ctx.get(None)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, guest contact details masked in ``msg``."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "req_id": getattr(record, "req_id", None),
            "msg": _scrub(record.getMessage()),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                data[field] = value
        if record.exc_info:
            data["exc"] = _scrub(self.formatException(record.exc_info))
        return json.dumps(data, default=str)


def configure_logging(level: int | str = logging.INFO, json_output: bool = True) -> None:
    """Replace root handlers with a single stderr handler."""

    handler = logging.StreamHandler()
    handler.setFormatter(
        JsonFormatter()
        if json_output
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(req_id)s] %(message)s")
    )
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
