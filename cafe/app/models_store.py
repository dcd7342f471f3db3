"""Database model for the SQL-backed document store.

Documents are kept schemaless in a JSON column; the store only knows the
collection, the id and the insertion order key. Kept apart from any wiring so
tests can create the table independently."""

from __future__ import annotations

from sqlalchemy import JSON, BigInteger, Column, Index, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StoredDocument(Base):
    """One document of one collection."""

    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    created_at_us = Column(BigInteger, nullable=False)
    data = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_documents_order", "collection", "created_at_us", "id"),
    )
