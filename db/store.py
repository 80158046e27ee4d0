"""
SQLAlchemy-backed Store Adapter.

Same contract as ``core.store.InMemoryStore``: insertion-ordered queries,
equality filters over the record type's FIELDS, ids never reused. Blocking
ORM calls run in a worker thread via ``asyncio.to_thread``; writes on one
store instance are serialized by an ``asyncio.Lock``.

Filter evaluation:
    string / null criteria on a mapped scalar column become WHERE clauses,
    everything else (JSON fields, non-string values) is matched in Python
    against the converted records, so both paths agree with the in-memory
    store.

Engine failures (``OperationalError``) surface as StorageUnavailableError.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from core.errors import RecordConflictError, StorageUnavailableError
from core.records import LogEntry, MoodEntry, Project, Task, utc_now_iso
from core.store import Record, RecordFilter, new_record_id
from db.models import Base, LogRow, MoodRow, ProjectRow, RetiredId, TaskRow

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)
T = TypeVar("T")


@dataclass(frozen=True)
class RowMapping(Generic[R]):
    """
    Conversion between one record type and its ORM row.

    Attributes:
        row_type: ORM class holding the records
        to_values: record -> {row attribute: value}
        from_row: row -> record
        columns: wire field name -> row attribute, for scalar columns that
            may be filtered in SQL
    """

    row_type: type[Base]
    to_values: Callable[[R], dict[str, Any]]
    from_row: Callable[[Any], R]
    columns: Mapping[str, str] = field(default_factory=dict)

    @property
    def table_name(self) -> str:
        return self.row_type.__tablename__


LOG_MAPPING: RowMapping[LogEntry] = RowMapping(
    row_type=LogRow,
    to_values=lambda r: {
        "id": r.id,
        "timestamp": r.timestamp,
        "type": r.type,
        "data": dict(r.data),
        "metadata_": dict(r.metadata) if r.metadata is not None else None,
    },
    from_row=lambda row: LogEntry(
        id=row.id,
        timestamp=row.timestamp,
        type=row.type,
        data=row.data or {},
        metadata=row.metadata_,
    ),
    columns={"id": "id", "timestamp": "timestamp", "type": "type"},
)

MOOD_MAPPING: RowMapping[MoodEntry] = RowMapping(
    row_type=MoodRow,
    to_values=lambda r: {
        "id": r.id,
        "mood": r.mood,
        "timestamp": r.timestamp,
        "metadata_": r.metadata,
    },
    from_row=lambda row: MoodEntry(
        id=row.id, mood=row.mood, timestamp=row.timestamp, metadata=row.metadata_
    ),
    columns={"id": "id", "mood": "mood", "timestamp": "timestamp", "metadata": "metadata_"},
)

PROJECT_MAPPING: RowMapping[Project] = RowMapping(
    row_type=ProjectRow,
    to_values=lambda r: {
        "id": r.id,
        "name": r.name,
        "description": r.description,
        "status": r.status,
        "created_at": r.created_at,
        "updated_at": r.updated_at,
    },
    from_row=lambda row: Project(
        id=row.id,
        name=row.name,
        description=row.description,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    ),
    columns={
        "id": "id",
        "name": "name",
        "description": "description",
        "status": "status",
        "createdAt": "created_at",
        "updatedAt": "updated_at",
    },
)

TASK_MAPPING: RowMapping[Task] = RowMapping(
    row_type=TaskRow,
    to_values=lambda r: {
        "id": r.id,
        "project_id": r.project_id,
        "title": r.title,
        "description": r.description,
        "status": r.status,
        "due_date": r.due_date,
        "created_at": r.created_at,
        "updated_at": r.updated_at,
    },
    from_row=lambda row: Task(
        id=row.id,
        project_id=row.project_id,
        title=row.title,
        description=row.description,
        status=row.status,
        due_date=row.due_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
    ),
    columns={
        "id": "id",
        "projectId": "project_id",
        "title": "title",
        "description": "description",
        "status": "status",
        "dueDate": "due_date",
        "createdAt": "created_at",
        "updatedAt": "updated_at",
    },
)


class SqlStore(Generic[R]):
    """
    Store Adapter over one ORM table.

    Args:
        record_type: Record class (provides FIELDS / MUTABLE_FIELDS)
        mapping: Row conversion for ``record_type``
        session_factory: sessionmaker bound to an engine whose tables exist
        id_factory: Generates ids for records inserted without one
        clock: Returns the ISO timestamp used for server-assigned times

    Usage:
        engine = create_engine_for("sqlite:///life.db")
        init_db(engine)
        projects = SqlStore(Project, PROJECT_MAPPING, make_session_factory(engine))
    """

    def __init__(
        self,
        record_type: type[R],
        mapping: RowMapping[R],
        session_factory: sessionmaker[Session],
        *,
        id_factory: Callable[[], str] = new_record_id,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.record_type = record_type
        self._mapping = mapping
        self._session_factory = session_factory
        self._id_factory = id_factory
        self._clock = clock
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    async def insert(self, record: R) -> R:
        async with self._write_lock:
            return await self._run(self._insert_sync, record)

    async def get(self, record_id: str) -> R | None:
        return await self._run(self._get_sync, record_id)

    async def query(self, criteria: Mapping[str, Any] | None = None) -> list[R]:
        predicate = RecordFilter(criteria, self.record_type.FIELDS)
        return await self._run(self._query_sync, predicate)

    async def update(self, record_id: str, patch: Mapping[str, Any]) -> R | None:
        async with self._write_lock:
            return await self._run(self._update_sync, record_id, patch)

    async def delete(self, record_id: str) -> bool:
        async with self._write_lock:
            return await self._run(self._delete_sync, record_id)

    # ------------------------------------------------------------------
    # Blocking implementations (worker thread)
    # ------------------------------------------------------------------

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except OperationalError as exc:
            logger.error("Storage unavailable for %s: %s", self._mapping.table_name, exc)
            raise StorageUnavailableError(
                f"Storage unavailable for {self._mapping.table_name}: {exc.orig or exc}"
            ) from exc

    def _find_row(self, session: Session, record_id: str) -> Any:
        row_type = self._mapping.row_type
        return session.scalars(select(row_type).where(row_type.id == record_id)).first()

    def _insert_sync(self, record: R) -> R:
        name = self.record_type.__name__
        with self._session_factory() as session:
            record_id = record.id or self._id_factory()
            if self._find_row(session, record_id) is not None:
                raise RecordConflictError(f"{name} id {record_id!r} already exists")
            if session.get(RetiredId, (self._mapping.table_name, record_id)) is not None:
                raise RecordConflictError(f"{name} id {record_id!r} was deleted and cannot be reused")

            committed = record.with_server_fields(record_id, self._clock())
            session.add(self._mapping.row_type(**self._mapping.to_values(committed)))
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise RecordConflictError(f"{name} {record_id!r} violates a constraint: {exc.orig}") from exc
            return committed

    def _get_sync(self, record_id: str) -> R | None:
        with self._session_factory() as session:
            row = self._find_row(session, record_id)
            return self._mapping.from_row(row) if row is not None else None

    def _query_sync(self, predicate: RecordFilter[R]) -> list[R]:
        row_type = self._mapping.row_type
        stmt = select(row_type).order_by(row_type.seq)
        for name, expected in predicate.criteria.items():
            column = self._mapping.columns.get(name)
            if column is not None and (expected is None or isinstance(expected, str)):
                stmt = stmt.where(getattr(row_type, column) == expected)
        with self._session_factory() as session:
            records = [self._mapping.from_row(row) for row in session.scalars(stmt)]
        return [r for r in records if predicate.matches(r)]

    def _update_sync(self, record_id: str, patch: Mapping[str, Any]) -> R | None:
        with self._session_factory() as session:
            row = self._find_row(session, record_id)
            if row is None:
                return None
            updated = self._mapping.from_row(row).with_patch(patch, self._clock())
            for attr, value in self._mapping.to_values(updated).items():
                setattr(row, attr, value)
            session.commit()
            return updated

    def _delete_sync(self, record_id: str) -> bool:
        with self._session_factory() as session:
            row = self._find_row(session, record_id)
            if row is None:
                return False
            session.delete(row)
            session.add(RetiredId(table_name=self._mapping.table_name, record_id=record_id))
            session.commit()
            return True
