"""Wiring of the sync core per collection.

One :class:`CollectionConsole` per collection bundles the paginator that owns
the visible list, the coordinator that mutates it, and the featured cap where
the collection has one. :class:`AdminConsole` holds them all plus the slot
guard for reservations.
"""

from __future__ import annotations

import logging
from typing import Optional

from config import Settings

from ..domain.records import SCHEMAS, Record, Reservation, normalize, schema_for, supports_featured
from ..errors import InvalidChange, UnknownCollection
from ..repos.remote_store import RemoteStore
from ..sync import (
    BoundedFeaturedSet,
    CursorPaginator,
    OptimisticMutationCoordinator,
    SlotAvailabilityGuard,
)

logger = logging.getLogger("cafe.sync")

# Moving or re-opening a reservation must pass the slot and status rules.
GUARDED_RESERVATION_FIELDS = frozenset({"date", "time", "status"})


class CollectionConsole:
    """Paginator, coordinator and optional featured cap for one collection."""

    def __init__(
        self,
        store: RemoteStore,
        collection: str,
        page_size: int = 5,
        commit_timeout: float = 10.0,
        featured_limit: Optional[int] = None,
        featured_remote_check: bool = False,
    ) -> None:
        self.store = store
        self.collection = collection
        self.paginator = CursorPaginator(store, collection, page_size)
        self.coordinator = OptimisticMutationCoordinator(store, self.paginator, commit_timeout)
        self.featured: Optional[BoundedFeaturedSet] = None
        if featured_limit is not None and supports_featured(collection):
            self.featured = BoundedFeaturedSet(
                self.coordinator, featured_limit, remote_check=featured_remote_check
            )

    async def ensure_loaded(self, entity_id: str) -> Record:
        """Return the visible record for ``entity_id``, fetching it if needed.

        Records outside the loaded pages are placed at their ``created_at``
        position so a mutation always has a snapshot to roll back to.
        """
        entity_id = self.coordinator.resolve_id(entity_id)
        record = self.paginator.get(entity_id)
        if record is not None:
            return record
        record = normalize(self.collection, await self.store.get(self.collection, entity_id))
        # The store may have been slower than a concurrent load.
        current = self.paginator.get(entity_id)
        if current is not None:
            return current
        self.paginator.insert_ordered(record)
        logger.debug("adopted %s/%s into the visible list", self.collection, entity_id)
        return record

    async def set_featured(self, entity_id: str, value: bool) -> Record:
        if self.featured is None:
            raise UnknownCollection(self.collection, "no featured flag")
        await self.ensure_loaded(entity_id)
        return await self.featured.try_set_featured(entity_id, value)

    async def create(self, record: Record) -> Record:
        if self.featured is None:
            return await self.coordinator.create(record)
        return await self.featured.try_create(record)

    async def update(self, entity_id: str, **changes) -> Record:
        """Edit a record; a change that features it is held to the cap."""
        await self.ensure_loaded(entity_id)
        if self.featured is not None and self.featured.field in changes:
            return await self.featured.try_update(entity_id, **changes)
        return await self.coordinator.update(entity_id, **changes)


class AdminConsole:
    """Every collection of the cafe plus the reservation slot guard."""

    def __init__(self, store: RemoteStore, collections: dict[str, CollectionConsole]) -> None:
        self.store = store
        self.collections = collections
        self.slots = SlotAvailabilityGuard(collections["reservations"].coordinator)

    @classmethod
    def build(cls, store: RemoteStore, settings: Settings) -> "AdminConsole":
        collections = {
            name: CollectionConsole(
                store,
                name,
                page_size=settings.page_size,
                commit_timeout=settings.commit_timeout_secs,
                featured_limit=settings.featured_limits.get(name),
                featured_remote_check=settings.featured_remote_check,
            )
            for name in SCHEMAS
        }
        return cls(store, collections)

    @property
    def featured_limits(self) -> dict[str, int]:
        return {
            name: target.featured.limit
            for name, target in self.collections.items()
            if target.featured is not None
        }

    def __getitem__(self, collection: str) -> CollectionConsole:
        try:
            return self.collections[collection]
        except KeyError:
            raise UnknownCollection(collection) from None

    async def create(self, collection: str, fields: dict) -> Record:
        """Validate ``fields`` and create the record.

        Reservations go through the slot guard, so an admin cannot book a
        taken slot either.
        """
        target = self[collection]
        record = schema_for(collection).model_validate(fields)
        if isinstance(record, Reservation):
            return await self.slots.book(record)
        return await target.create(record)

    async def update(self, collection: str, entity_id: str, changes: dict) -> Record:
        target = self[collection]
        if collection == Reservation.collection:
            guarded = GUARDED_RESERVATION_FIELDS & set(changes)
            if guarded:
                raise InvalidChange(
                    collection, guarded, "change only through the booking and status actions"
                )
        return await target.update(entity_id, **changes)
