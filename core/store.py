"""
Store Adapter contract and the in-memory reference implementation.

Handlers depend on this narrow contract, never on a storage engine:

    insert(record)        -> committed record (server fields assigned)
    get(id)               -> record | None
    query(filter)         -> records matching every filter key, insertion order
    update(id, patch)     -> updated record | None
    delete(id)            -> True if a record was removed

Concurrency: writes on one store instance are serialized by an asyncio.Lock,
so two concurrent inserts never receive the same id and an insert that has
returned is visible to every later query. Reads do not take the lock.

Ids are never reused: a deleted id is retired and a later insert with that id
is rejected.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Mapping
from typing import Any, ClassVar, Generic, Protocol, Self, TypeVar

from core.errors import RecordConflictError, UnknownFieldError
from core.records import utc_now_iso


class Record(Protocol):
    """Structural type shared by every persisted record."""

    id: str
    FIELDS: ClassVar[Mapping[str, Callable[[Any], Any]]]
    MUTABLE_FIELDS: ClassVar[frozenset[str]]

    def with_server_fields(self, record_id: str, now: str) -> Self: ...

    def with_patch(self, patch: Mapping[str, Any], now: str) -> Self: ...

    def to_dict(self) -> dict[str, Any]: ...


R = TypeVar("R", bound=Record)


class Store(Protocol[R]):
    """Store Adapter contract consumed by domain handlers."""

    async def insert(self, record: R) -> R: ...

    async def get(self, record_id: str) -> R | None: ...

    async def query(self, criteria: Mapping[str, Any] | None = None) -> list[R]: ...

    async def update(self, record_id: str, patch: Mapping[str, Any]) -> R | None: ...

    async def delete(self, record_id: str) -> bool: ...


class RecordFilter(Generic[R]):
    """
    Equality predicate built from a field -> expected value mapping.

    A record matches iff every pair equals the corresponding field read through
    the record type's accessor table. An empty mapping matches everything.

    Raises:
        UnknownFieldError: If a key is not a field of the record type
    """

    def __init__(
        self,
        criteria: Mapping[str, Any] | None,
        fields: Mapping[str, Callable[[R], Any]],
    ) -> None:
        criteria = dict(criteria or {})
        unknown = sorted(set(criteria) - set(fields))
        if unknown:
            raise UnknownFieldError(
                f"Unknown filter field(s) {unknown}; known fields: {sorted(fields)}",
                details=tuple(f"filter.{name}" for name in unknown),
            )
        self.criteria = criteria
        self._checks = [(fields[name], expected) for name, expected in criteria.items()]

    def matches(self, record: R) -> bool:
        return all(getter(record) == expected for getter, expected in self._checks)

    def __bool__(self) -> bool:
        return bool(self._checks)


def new_record_id() -> str:
    return str(uuid.uuid4())


class InMemoryStore(Generic[R]):
    """
    Ordered in-memory Store Adapter.

    Sufficient for the log-ingestion domain, and the reference the SQL
    adapter is tested against.

    Args:
        record_type: Record class (provides FIELDS / MUTABLE_FIELDS)
        id_factory: Generates ids for records inserted without one
        clock: Returns the ISO timestamp used for server-assigned times
    """

    def __init__(
        self,
        record_type: type[R],
        *,
        id_factory: Callable[[], str] = new_record_id,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.record_type = record_type
        self._id_factory = id_factory
        self._clock = clock
        self._records: dict[str, R] = {}
        self._retired: set[str] = set()
        self._write_lock = asyncio.Lock()

    def _claim_id(self, requested: str) -> str:
        record_id = requested or self._id_factory()
        if record_id in self._records:
            raise RecordConflictError(f"{self.record_type.__name__} id {record_id!r} already exists")
        if record_id in self._retired:
            raise RecordConflictError(
                f"{self.record_type.__name__} id {record_id!r} was deleted and cannot be reused"
            )
        return record_id

    async def insert(self, record: R) -> R:
        async with self._write_lock:
            record_id = self._claim_id(record.id)
            committed = record.with_server_fields(record_id, self._clock())
            self._records[record_id] = committed
            return committed

    async def get(self, record_id: str) -> R | None:
        return self._records.get(record_id)

    async def query(self, criteria: Mapping[str, Any] | None = None) -> list[R]:
        predicate = RecordFilter(criteria, self.record_type.FIELDS)
        snapshot = list(self._records.values())
        return [record for record in snapshot if predicate.matches(record)]

    async def update(self, record_id: str, patch: Mapping[str, Any]) -> R | None:
        async with self._write_lock:
            existing = self._records.get(record_id)
            if existing is None:
                return None
            updated = existing.with_patch(patch, self._clock())
            self._records[record_id] = updated
            return updated

    async def delete(self, record_id: str) -> bool:
        async with self._write_lock:
            removed = self._records.pop(record_id, None)
            if removed is None:
                return False
            self._retired.add(record_id)
            return True

    def __len__(self) -> int:
        return len(self._records)
