"""Error taxonomy shared by the store adapters, the sync core and the API.

Every error is per-operation and recoverable by retrying the user action.
The HTTP layer maps each class to a status code through :attr:`status` and
:attr:`code`.
"""

from __future__ import annotations

from typing import Any


class ConsoleError(Exception):
    """Base class for all console errors."""

    status = 400
    code = "CONSOLE_ERROR"

    def details(self) -> dict[str, Any]:
        return {}


class StoreError(ConsoleError):
    """The remote document store could not serve a request."""

    status = 502
    code = "STORE_ERROR"

    def __init__(self, collection: str, message: str) -> None:
        super().__init__(f"{collection}: {message}")
        self.collection = collection


class ReadFailed(StoreError):
    code = "READ_FAILED"


class WriteRejected(StoreError):
    """A create, update or delete failed at the store."""

    code = "WRITE_REJECTED"


class NotFound(StoreError):
    status = 404
    code = "NOT_FOUND"

    def __init__(self, collection: str, entity_id: str) -> None:
        super().__init__(collection, f"no document {entity_id!r}")
        self.entity_id = entity_id

    def details(self) -> dict[str, Any]:
        return {"collection": self.collection, "id": self.entity_id}


class MalformedRecord(ConsoleError):
    """A stored document does not match its collection schema."""

    status = 502
    code = "MALFORMED_RECORD"

    def __init__(self, collection: str, entity_id: str | None, reason: str) -> None:
        super().__init__(f"{collection}/{entity_id}: {reason}")
        self.collection = collection
        self.entity_id = entity_id
        self.reason = reason

    def details(self) -> dict[str, Any]:
        return {"collection": self.collection, "id": self.entity_id}


class ExhaustedCursor(ConsoleError):
    """``load_next_page`` was called after the last page."""

    status = 409
    code = "CURSOR_EXHAUSTED"


class FeaturedLimitExceeded(ConsoleError):
    status = 409
    code = "FEATURED_LIMIT"

    def __init__(self, collection: str, limit: int, current: int) -> None:
        super().__init__(
            f"{collection}: cannot feature more than {limit} items ({current} featured)"
        )
        self.collection = collection
        self.limit = limit
        self.current = current

    def details(self) -> dict[str, Any]:
        return {"collection": self.collection, "limit": self.limit, "current": self.current}


class UpdateRejected(ConsoleError):
    """A mutation failed remotely and its local effect was rolled back.

    ``rolled_back`` is always ``True`` by the time this error is raised; it is
    carried so callers can tell the visible state is the pre-mutation one.
    """

    status = 502
    code = "UPDATE_REJECTED"

    def __init__(
        self,
        collection: str,
        entity_id: str,
        kind: str,
        reason: str,
        rolled_back: bool = True,
    ) -> None:
        super().__init__(f"{kind} {collection}/{entity_id} rejected: {reason}")
        self.collection = collection
        self.entity_id = entity_id
        self.kind = kind
        self.reason = reason
        self.rolled_back = rolled_back

    def details(self) -> dict[str, Any]:
        return {
            "collection": self.collection,
            "id": self.entity_id,
            "kind": self.kind,
            "rolled_back": self.rolled_back,
        }


class SlotConflict(ConsoleError):
    """Another reservation already holds the requested slot."""

    status = 409
    code = "SLOT_TAKEN"

    def __init__(self, date: Any, time: Any) -> None:
        super().__init__(f"slot {date} {time} is already booked")
        self.date = date
        self.time = time

    def details(self) -> dict[str, Any]:
        return {"date": str(self.date), "time": str(self.time)}


class SlotUnknown(ConsoleError):
    """Availability could not be determined; booking must not proceed."""

    status = 503
    code = "SLOT_UNKNOWN"

    def __init__(self, date: Any, time: Any) -> None:
        super().__init__(f"could not verify slot {date} {time}")
        self.date = date
        self.time = time

    def details(self) -> dict[str, Any]:
        return {"date": str(self.date), "time": str(self.time)}


class InvalidTransition(ConsoleError):
    status = 409
    code = "INVALID_TRANSITION"

    def __init__(self, src: Any, dst: Any) -> None:
        super().__init__(f"cannot move from {getattr(src, 'value', src)} to {getattr(dst, 'value', dst)}")
        self.src = src
        self.dst = dst


class UnknownCollection(ConsoleError):
    status = 404
    code = "UNKNOWN_COLLECTION"

    def __init__(self, collection: str, reason: str = "unknown collection") -> None:
        super().__init__(f"{collection}: {reason}")
        self.collection = collection

    def details(self) -> dict[str, Any]:
        return {"collection": self.collection}


class InvalidChange(ConsoleError, ValueError):
    """An edit touches fields that cannot be changed this way."""

    status = 400
    code = "INVALID_CHANGE"

    def __init__(self, collection: str, fields: Any, reason: str) -> None:
        self.fields = sorted(fields)
        super().__init__(f"{collection}: {', '.join(self.fields)} {reason}")
        self.collection = collection
        self.reason = reason

    def details(self) -> dict[str, Any]:
        return {"collection": self.collection, "fields": self.fields}
