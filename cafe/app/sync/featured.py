"""Client-side cap on the number of featured records in a collection.

The store cannot count across documents atomically, so the cap is checked
against what this client can see. The check runs inside the coordinator's
transform, i.e. against the visible list at the moment the change is
applied. Records whose un-feature or delete is still waiting on the store
count as featured until it is confirmed, because a failed commit puts them
back. So this client alone never shows more than ``limit`` featured
records. Two clients toggling at the same time can still overshoot; nothing
short of a server-side check closes that window.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from ..domain.records import Record, evolve, normalize
from ..errors import FeaturedLimitExceeded, MalformedRecord, StoreError
from .coordinator import OptimisticMutationCoordinator

logger = logging.getLogger("cafe.sync")


class BoundedFeaturedSet:
    """At most ``limit`` records of a collection may carry ``field``."""

    def __init__(
        self,
        coordinator: OptimisticMutationCoordinator,
        limit: int,
        field: str = "featured",
        remote_check: bool = False,
    ) -> None:
        if limit < 0:
            raise ValueError("limit must not be negative")
        self.coordinator = coordinator
        self.collection = coordinator.collection
        self.limit = limit
        self.field = field
        self.remote_check = remote_check

    def featured(self, snapshot: Iterable[Record]) -> list[Record]:
        return [record for record in snapshot if getattr(record, self.field, False)]

    def check(
        self,
        entity_id: Optional[str],
        new_value: bool,
        snapshot: Iterable[Record],
        extra_featured_ids: Iterable[str] = (),
    ) -> None:
        """Raise :class:`FeaturedLimitExceeded` if featuring ``entity_id`` breaks the cap.

        Clearing the flag is always allowed. ``extra_featured_ids`` names
        records reported featured by the store that are not in ``snapshot``.
        ``entity_id`` is ``None`` for a record being created.
        """
        if not new_value:
            return
        snapshot = list(snapshot)
        visible = {record.id for record in snapshot}
        others = {record.id for record in self.featured(snapshot)}
        others.update(
            record.id for record in self.featured(self.coordinator.pending_snapshots())
        )
        others.update(fid for fid in extra_featured_ids if fid not in visible)
        others.discard(entity_id)
        if len(others) >= self.limit:
            raise FeaturedLimitExceeded(self.collection, self.limit, len(others))

    async def remote_featured_ids(self) -> set[str]:
        """Ids the store currently reports as featured.

        A failed read degrades to the local view rather than blocking the
        toggle; the local check still runs.
        """
        try:
            docs = await self.coordinator.store.query_exact(self.collection, **{self.field: True})
        except StoreError as exc:
            logger.warning("featured lookup failed for %s: %s", self.collection, exc)
            return set()
        ids = set()
        for doc in docs:
            try:
                ids.add(normalize(self.collection, doc).id)
            except MalformedRecord as exc:
                logger.warning("skipping malformed featured record: %s", exc)
        return ids

    async def _extra(self, featuring: bool) -> set[str]:
        if featuring and self.remote_check:
            return await self.remote_featured_ids()
        return set()

    def _rejected(self, entity_id: Optional[str]) -> None:
        logger.info(
            "featured limit %d reached for %s, %s left unchanged",
            self.limit,
            self.collection,
            entity_id or "new record",
        )

    async def try_update(self, entity_id: str, **changes: Any) -> Record:
        """Apply ``changes`` through the coordinator, checking the cap if they feature."""
        featuring = bool(changes.get(self.field, False))
        extra = await self._extra(featuring)

        def transform(current: Optional[Record]) -> Record:
            if featuring and not getattr(current, self.field, False):
                self.check(current.id, True, self.coordinator.view.items, extra)
            return evolve(current, **changes)

        try:
            return await self.coordinator.mutate(
                entity_id, transform, self.coordinator.commit_update
            )
        except FeaturedLimitExceeded:
            self._rejected(entity_id)
            raise

    async def try_set_featured(self, entity_id: str, new_value: bool) -> Record:
        """Set the flag on ``entity_id`` through the coordinator, within the cap."""
        return await self.try_update(entity_id, **{self.field: new_value})

    async def try_create(self, record: Record) -> Record:
        """Create ``record``; one that starts out featured must fit the cap."""
        featuring = bool(getattr(record, self.field, False))
        extra = await self._extra(featuring)

        def transform(_: Optional[Record]) -> Record:
            if featuring:
                self.check(None, True, self.coordinator.view.items, extra)
            return record

        try:
            return await self.coordinator.create(record, transform=transform)
        except FeaturedLimitExceeded:
            self._rejected(None)
            raise
