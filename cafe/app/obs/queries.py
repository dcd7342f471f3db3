from __future__ import annotations

import logging
import os
import time

from sqlalchemy import event
from sqlalchemy.engine import Engine

SLOW_QUERY_MS = int(os.getenv("STORE_SLOW_QUERY_MS", "200"))

logger = logging.getLogger("cafe.store")


def _summary(statement: str, limit: int = 120) -> str:
    sql = " ".join(statement.split())
    return sql if len(sql) <= limit else sql[: limit - 3] + "..."


def add_query_logger(engine: Engine, label: str, slow_ms: int | None = None) -> None:
    """Warn about statements on ``engine`` slower than ``slow_ms``.

    Only slow statements are logged. Bound parameters hold guest data and are
    never written, only their count.
    """
    threshold = SLOW_QUERY_MS if slow_ms is None else slow_ms
    target = engine.sync_engine if hasattr(engine, "sync_engine") else engine

    @event.listens_for(target, "before_cursor_execute")
    def _started(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        conn.info.setdefault("cafe_query_started", []).append(time.perf_counter())

    @event.listens_for(target, "after_cursor_execute")
    def _finished(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        elapsed_ms = (time.perf_counter() - conn.info["cafe_query_started"].pop()) * 1000
        if elapsed_ms < threshold:
            return
        batch = len(parameters) if executemany else 1
        logger.warning(
            "slow store statement %dms store=%s batch=%d sql=%s",
            int(elapsed_ms),
            label,
            batch,
            _summary(statement),
            extra={"store": label, "elapsed_ms": round(elapsed_ms, 1)},
        )
