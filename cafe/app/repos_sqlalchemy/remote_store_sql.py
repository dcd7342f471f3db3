"""SQLAlchemy implementation of the remote document store.

Each call runs in its own short session, so the adapter offers exactly the
single-document guarantees of :class:`RemoteStore` and nothing more.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..domain.records import from_micros, to_document_value, to_micros, utcnow
from ..errors import NotFound, ReadFailed, WriteRejected
from ..models_store import Base, StoredDocument
from ..obs.queries import add_query_logger
from ..repos.remote_store import Document, PageCursor, RemoteStore, matches, next_cursor

logger = logging.getLogger("cafe.store")


def _created_at_us(fields: Document) -> int:
    raw = fields.get("created_at")
    if raw is None:
        return to_micros(utcnow())
    if isinstance(raw, str):
        return to_micros(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    return to_micros(raw)


def _to_document(row: StoredDocument) -> Document:
    return {
        **row.data,
        "id": row.id,
        "created_at": from_micros(row.created_at_us).isoformat(),
    }


class SQLRemoteStore(RemoteStore):
    """Concrete RemoteStore using SQLAlchemy with an AsyncEngine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.sessionmaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    @classmethod
    def from_url(cls, url: str, slow_query_ms: int | None = None) -> "SQLRemoteStore":
        engine = create_async_engine(url)
        add_query_logger(engine, "sql", slow_ms=slow_query_ms)
        return cls(engine)

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get(self, collection: str, entity_id: str) -> Document:
        try:
            async with self.sessionmaker() as session:
                row = await session.get(StoredDocument, (collection, entity_id))
        except SQLAlchemyError as exc:
            raise ReadFailed(collection, str(exc)) from exc
        if row is None:
            raise NotFound(collection, entity_id)
        return _to_document(row)

    async def query_page(
        self, collection: str, page_size: int, after: PageCursor | None = None
    ) -> tuple[list[Document], PageCursor]:
        stmt = select(StoredDocument).where(StoredDocument.collection == collection)
        if after is not None and after.positioned:
            stmt = stmt.where(
                or_(
                    StoredDocument.created_at_us < after.created_at_us,
                    and_(
                        StoredDocument.created_at_us == after.created_at_us,
                        StoredDocument.id > after.last_id,
                    ),
                )
            )
        stmt = stmt.order_by(
            StoredDocument.created_at_us.desc(), StoredDocument.id.asc()
        ).limit(page_size)
        try:
            async with self.sessionmaker() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise ReadFailed(collection, str(exc)) from exc
        page = [(row.created_at_us, _to_document(row)) for row in rows]
        return [doc for _, doc in page], next_cursor(page, page_size)

    async def query_exact(self, collection: str, **fields: Any) -> list[Document]:
        wanted = {key: to_document_value(value) for key, value in fields.items()}
        stmt = (
            select(StoredDocument)
            .where(StoredDocument.collection == collection)
            .order_by(StoredDocument.created_at_us.desc(), StoredDocument.id.asc())
        )
        try:
            async with self.sessionmaker() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise ReadFailed(collection, str(exc)) from exc
        # JSON path comparison differs between backends, so filter here.
        return [doc for doc in map(_to_document, rows) if matches(doc, wanted)]

    async def create(self, collection: str, fields: Document) -> str:
        entity_id = uuid.uuid4().hex
        body = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
        row = StoredDocument(
            collection=collection,
            id=entity_id,
            created_at_us=_created_at_us(fields),
            data=body,
        )
        try:
            async with self.sessionmaker() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            raise WriteRejected(collection, str(exc)) from exc
        logger.info("created %s/%s", collection, entity_id)
        return entity_id

    async def update(self, collection: str, entity_id: str, fields: Document) -> None:
        body = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
        try:
            async with self.sessionmaker() as session:
                row = await session.get(StoredDocument, (collection, entity_id))
                if row is None:
                    raise NotFound(collection, entity_id)
                row.data = {**row.data, **body}
                await session.commit()
        except SQLAlchemyError as exc:
            raise WriteRejected(collection, str(exc)) from exc
        logger.info("updated %s/%s fields=%s", collection, entity_id, sorted(body))

    async def delete(self, collection: str, entity_id: str) -> None:
        stmt = delete(StoredDocument).where(
            StoredDocument.collection == collection, StoredDocument.id == entity_id
        )
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise WriteRejected(collection, str(exc)) from exc
        if result.rowcount == 0:
            raise NotFound(collection, entity_id)
        logger.info("deleted %s/%s", collection, entity_id)

    async def close(self) -> None:
        await self.engine.dispose()
