"""Optimistic mutations against the remote store.

Every create, update and delete is applied to the paginator's list before the
remote write is awaited, so the console reflects it at once. The write then
either confirms the change or the pre-mutation snapshot is put back and
:class:`~cafe.app.errors.UpdateRejected` is raised. Mutations on the same id
run one after another in the order they were issued; different ids do not
wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ..domain.records import Record, evolve
from ..errors import InvalidChange, NotFound, UpdateRejected, WriteRejected
from ..repos.remote_store import RemoteStore
from .paginator import CursorPaginator

logger = logging.getLogger("cafe.sync")

TEMP_PREFIX = "local-"
IDENTITY_FIELDS = ("id", "created_at")


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class PendingMutation:
    """An in-flight local change not yet confirmed by the store."""

    entity_id: str
    kind: MutationKind
    delta: dict[str, Any]
    snapshot: Optional[Record]
    status: MutationStatus = MutationStatus.PENDING


Transform = Callable[[Optional[Record]], Optional[Record]]
Commit = Callable[[PendingMutation, Optional[Record]], Awaitable[Optional[str]]]


def field_delta(before: Optional[Record], after: Optional[Record]) -> dict[str, Any]:
    """Return the JSON-ready fields that differ between two records."""
    if after is None:
        return {}
    new = after.fields()
    if before is None:
        return new
    old = before.fields()
    return {key: value for key, value in new.items() if old.get(key) != value}


class OptimisticMutationCoordinator:
    """Applies mutations locally, commits them remotely, and reconciles."""

    def __init__(
        self,
        store: RemoteStore,
        view: CursorPaginator,
        commit_timeout: float = 10.0,
    ) -> None:
        if commit_timeout <= 0:
            raise ValueError("commit_timeout must be positive")
        self.store = store
        self.view = view
        self.collection = view.collection
        self.commit_timeout = commit_timeout
        self._pending: dict[str, PendingMutation] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._queued: dict[str, int] = {}
        self._aliases: dict[str, str] = {}

    def pending(self, entity_id: str) -> Optional[PendingMutation]:
        return self._pending.get(self.resolve_id(entity_id))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_snapshots(self) -> list[Record]:
        """Pre-mutation records of updates and deletes still awaiting the store."""
        return [m.snapshot for m in self._pending.values() if m.snapshot is not None]

    def resolve_id(self, entity_id: str) -> str:
        """Follow a temporary id to the id the store assigned, if any."""
        while entity_id in self._aliases:
            entity_id = self._aliases[entity_id]
        return entity_id

    async def mutate(
        self,
        entity_id: Optional[str],
        transform: Transform,
        commit: Commit,
    ) -> Optional[Record]:
        """Apply ``transform`` locally, then await ``commit`` remotely.

        ``entity_id`` is ``None`` for a create; ``transform`` then receives
        ``None`` and returns the new record. Returning ``None`` from
        ``transform`` deletes the record. Exceptions raised by ``transform``
        propagate unchanged and leave local state untouched.
        """
        key = entity_id if entity_id is not None else f"{TEMP_PREFIX}{uuid.uuid4().hex}"
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._queued[key] = self._queued.get(key, 0) + 1
        try:
            async with lock:
                if entity_id is not None:
                    target = self.resolve_id(entity_id)
                    if target != entity_id:
                        # Created meanwhile: queue behind mutations on the real id.
                        return await self.mutate(target, transform, commit)
                return await self._run(key, entity_id is None, transform, commit)
        finally:
            self._queued[key] -= 1
            if not self._queued[key]:
                del self._queued[key]
                self._locks.pop(key, None)
                # Nothing queued on the temporary id can still need its alias.
                self._aliases.pop(key, None)

    async def _run(
        self, key: str, creating: bool, transform: Transform, commit: Commit
    ) -> Optional[Record]:
        before = None if creating else self.view.get(key)
        if not creating and before is None:
            raise NotFound(self.collection, key)

        after = transform(before)
        if creating:
            if after is None:
                raise ValueError("create transform must return a record")
            kind = MutationKind.CREATE
            after = after.model_copy(update={"id": key})
        elif after is None:
            kind = MutationKind.DELETE
        else:
            kind = MutationKind.UPDATE
            if after.id != before.id or after.created_at != before.created_at:
                raise InvalidChange(self.collection, IDENTITY_FIELDS, "cannot change after creation")

        delta = field_delta(before, after)
        if kind is MutationKind.UPDATE and not delta:
            return before

        mutation = PendingMutation(entity_id=key, kind=kind, delta=delta, snapshot=before)
        self._pending[key] = mutation
        self._apply(mutation, after)
        logger.info(
            "applied %s %s/%s fields=%s",
            kind.value,
            self.collection,
            key,
            sorted(delta),
            extra={"collection": self.collection, "entity": key},
        )

        try:
            try:
                assigned = await asyncio.wait_for(commit(mutation, after), self.commit_timeout)
                if kind is MutationKind.CREATE and not assigned:
                    raise WriteRejected(self.collection, "store returned no id")
            except asyncio.CancelledError:
                mutation.status = MutationStatus.FAILED
                self._rollback(mutation)
                raise
            except Exception as exc:
                mutation.status = MutationStatus.FAILED
                self._rollback(mutation)
                reason = "timed out" if isinstance(exc, asyncio.TimeoutError) else str(exc) or type(exc).__name__
                logger.warning(
                    "rolled back %s %s/%s: %s",
                    kind.value,
                    self.collection,
                    key,
                    reason,
                    extra={"collection": self.collection, "entity": key},
                )
                raise UpdateRejected(self.collection, key, kind.value, reason) from exc
        finally:
            self._pending.pop(key, None)

        mutation.status = MutationStatus.CONFIRMED
        if kind is MutationKind.CREATE:
            self._aliases[key] = assigned
            after = self.view.replace_id(key, assigned) or after.model_copy(update={"id": assigned})
            logger.info(
                "confirmed create %s/%s as %s",
                self.collection,
                key,
                assigned,
                extra={"collection": self.collection, "entity": assigned},
            )
        else:
            logger.info(
                "confirmed %s %s/%s",
                kind.value,
                self.collection,
                key,
                extra={"collection": self.collection, "entity": key},
            )
        return after

    def _apply(self, mutation: PendingMutation, after: Optional[Record]) -> None:
        if mutation.kind is MutationKind.CREATE:
            self.view.prepend_local(after)
        elif mutation.kind is MutationKind.UPDATE:
            self.view.replace(mutation.entity_id, after)
        else:
            self.view.remove(mutation.entity_id)

    def _rollback(self, mutation: PendingMutation) -> None:
        if mutation.kind is MutationKind.CREATE:
            self.view.remove(mutation.entity_id)
        elif mutation.kind is MutationKind.UPDATE:
            self.view.replace(mutation.entity_id, mutation.snapshot)
        else:
            self.view.insert_ordered(mutation.snapshot)

    # Commit helpers bound to the store.

    async def commit_create(self, mutation: PendingMutation, after: Optional[Record]) -> str:
        return await self.store.create(self.collection, after.fields())

    async def commit_update(self, mutation: PendingMutation, after: Optional[Record]) -> None:
        await self.store.update(self.collection, mutation.entity_id, mutation.delta)

    async def commit_delete(self, mutation: PendingMutation, after: Optional[Record]) -> None:
        await self.store.delete(self.collection, mutation.entity_id)

    async def create(self, record: Record, transform: Optional[Transform] = None) -> Record:
        if record.collection != self.collection:
            raise ValueError(f"{type(record).__name__} does not belong to {self.collection}")
        return await self.mutate(None, transform or (lambda _: record), self.commit_create)

    async def update(self, entity_id: str, **changes: Any) -> Record:
        touched = set(IDENTITY_FIELDS) & set(changes)
        if touched:
            raise InvalidChange(self.collection, touched, "cannot change after creation")
        return await self.mutate(
            entity_id, lambda current: evolve(current, **changes), self.commit_update
        )

    async def delete(self, entity_id: str) -> None:
        await self.mutate(entity_id, lambda _: None, self.commit_delete)

    async def toggle(self, entity_id: str, field_name: str) -> Record:
        return await self.mutate(
            entity_id,
            lambda current: evolve(current, **{field_name: not getattr(current, field_name)}),
            self.commit_update,
        )
