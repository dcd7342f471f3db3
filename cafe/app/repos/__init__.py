from .remote_store import EXHAUSTED, Document, PageCursor, RemoteStore

__all__ = ["EXHAUSTED", "Document", "PageCursor", "RemoteStore"]
