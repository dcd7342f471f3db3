from .remote_store_redis import RedisRemoteStore

__all__ = ["RedisRemoteStore"]
