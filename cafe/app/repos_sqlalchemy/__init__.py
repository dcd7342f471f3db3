from .remote_store_sql import SQLRemoteStore

__all__ = ["SQLRemoteStore"]
