"""Redis implementation of the remote document store.

Each document is a JSON string under ``doc:{collection}:{id}``; the
collection order lives in the sorted set ``idx:{collection}`` scored by
``created_at`` in integer microseconds. Equal scores are re-sorted by id on
the client so pages follow ``created_at`` desc, ``id`` asc.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..domain.records import from_micros, to_document_value, to_micros, utcnow
from ..errors import NotFound, ReadFailed, WriteRejected
from ..repos.remote_store import EXHAUSTED, Document, PageCursor, RemoteStore, is_after, matches

logger = logging.getLogger("cafe.store")

SCAN_CHUNK = 200


def _s(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else value


def _micros_of(fields: Document) -> int:
    raw = fields.get("created_at")
    if raw is None:
        return to_micros(utcnow())
    if isinstance(raw, str):
        return to_micros(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    return to_micros(raw)


class RedisRemoteStore(RemoteStore):
    """Concrete RemoteStore backed by a ``redis.asyncio`` client."""

    def __init__(self, redis: Redis, namespace: str = "cafe") -> None:
        self.redis = redis
        self.namespace = namespace

    def _doc_key(self, collection: str, entity_id: str) -> str:
        return f"{self.namespace}:doc:{collection}:{entity_id}"

    def _idx_key(self, collection: str) -> str:
        return f"{self.namespace}:idx:{collection}"

    async def get(self, collection: str, entity_id: str) -> Document:
        try:
            raw = await self.redis.get(self._doc_key(collection, entity_id))
        except RedisError as exc:
            raise ReadFailed(collection, str(exc)) from exc
        if raw is None:
            raise NotFound(collection, entity_id)
        return json.loads(raw)

    async def query_page(
        self, collection: str, page_size: int, after: PageCursor | None = None
    ) -> tuple[list[Document], PageCursor]:
        idx = self._idx_key(collection)
        try:
            candidates: dict[str, int] = {}
            if after is not None and after.positioned:
                ties = await self.redis.zrangebyscore(
                    idx, after.created_at_us, after.created_at_us, withscores=True
                )
                candidates.update((_s(m), int(s)) for m, s in ties)
                upper: Any = f"({after.created_at_us}"
            else:
                upper = "+inf"
            head = await self.redis.zrevrangebyscore(
                idx, upper, "-inf", start=0, num=page_size, withscores=True
            )
            candidates.update((_s(m), int(s)) for m, s in head)
            if head:
                boundary = int(head[-1][1])
                tail = await self.redis.zrangebyscore(idx, boundary, boundary, withscores=True)
                candidates.update((_s(m), int(s)) for m, s in tail)

            ordered = sorted(
                (
                    (score, member)
                    for member, score in candidates.items()
                    if is_after(after, score, member)
                ),
                key=lambda pair: (-pair[0], pair[1]),
            )[:page_size]
            raws = (
                await self.redis.mget([self._doc_key(collection, m) for _, m in ordered])
                if ordered
                else []
            )
        except RedisError as exc:
            raise ReadFailed(collection, str(exc)) from exc

        docs = [json.loads(raw) for raw in raws if raw is not None]
        if len(ordered) < page_size:
            cursor = EXHAUSTED
        else:
            cursor = PageCursor.after(*ordered[-1])
        logger.debug(
            "page %s size=%d returned=%d exhausted=%s",
            collection,
            page_size,
            len(docs),
            cursor.exhausted,
        )
        return docs, cursor

    async def query_exact(self, collection: str, **fields: Any) -> list[Document]:
        wanted = {key: to_document_value(value) for key, value in fields.items()}
        idx = self._idx_key(collection)
        found: list[Document] = []
        try:
            members = [_s(m) for m in await self.redis.zrevrange(idx, 0, -1)]
            for start in range(0, len(members), SCAN_CHUNK):
                chunk = members[start : start + SCAN_CHUNK]
                raws = await self.redis.mget([self._doc_key(collection, m) for m in chunk])
                for raw in raws:
                    if raw is None:
                        continue
                    doc = json.loads(raw)
                    if matches(doc, wanted):
                        found.append(doc)
        except RedisError as exc:
            raise ReadFailed(collection, str(exc)) from exc
        return found

    async def create(self, collection: str, fields: Document) -> str:
        entity_id = uuid.uuid4().hex
        created_at_us = _micros_of(fields)
        doc = {
            **fields,
            "id": entity_id,
            "created_at": from_micros(created_at_us).isoformat(),
        }
        pipe = self.redis.pipeline(transaction=True)
        pipe.set(self._doc_key(collection, entity_id), json.dumps(doc), nx=True)
        pipe.zadd(self._idx_key(collection), {entity_id: created_at_us})
        try:
            await pipe.execute()
        except RedisError as exc:
            raise WriteRejected(collection, str(exc)) from exc
        logger.info("created %s/%s", collection, entity_id)
        return entity_id

    async def update(self, collection: str, entity_id: str, fields: Document) -> None:
        key = self._doc_key(collection, entity_id)
        body = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
        try:
            raw = await self.redis.get(key)
            if raw is None:
                raise NotFound(collection, entity_id)
            doc = {**json.loads(raw), **body}
            # XX keeps a concurrent delete from being resurrected.
            stored = await self.redis.set(key, json.dumps(doc), xx=True)
        except RedisError as exc:
            raise WriteRejected(collection, str(exc)) from exc
        if not stored:
            raise NotFound(collection, entity_id)
        logger.info("updated %s/%s fields=%s", collection, entity_id, sorted(body))

    async def delete(self, collection: str, entity_id: str) -> None:
        pipe = self.redis.pipeline(transaction=True)
        pipe.delete(self._doc_key(collection, entity_id))
        pipe.zrem(self._idx_key(collection), entity_id)
        try:
            removed, _ = await pipe.execute()
        except RedisError as exc:
            raise WriteRejected(collection, str(exc)) from exc
        if not removed:
            raise NotFound(collection, entity_id)
        logger.info("deleted %s/%s", collection, entity_id)

    async def close(self) -> None:
        await self.redis.aclose()
