from typing import Any, Dict, Iterable, Optional


def ok(data: Any) -> Dict[str, Any]:
    """Return a success envelope."""
    return {"ok": True, "data": data}


def ok_page(items: Iterable[Any], cursor: Optional[str]) -> Dict[str, Any]:
    """Return a success envelope for one page of a listing.

    ``cursor`` is the token for the next page, or ``None`` once the listing
    is exhausted.
    """
    return ok({"items": list(items), "cursor": cursor, "exhausted": cursor is None})


def err(
    code: int | str,
    message: str,
    details: Dict[str, Any] | None = None,
    hint: str | None = None,
) -> Dict[str, Any]:
    """Return an error envelope tagged with the current request id."""
    from ..middlewares.request_id import request_id_ctx

    error: Dict[str, Any] = {"code": code, "message": message}
    if hint:
        error["hint"] = hint
    if details:
        error["details"] = details
    return {"ok": False, "request_id": request_id_ctx.get(None), "error": error}
