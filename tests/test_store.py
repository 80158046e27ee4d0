"""
Tests for the Store Adapter contract — core/store.py and db/store.py.

Every contract test runs against both the in-memory store and the SQLite
backed SqlStore, so the two adapters cannot drift apart.
"""

import asyncio

import pytest

from core.errors import ErrorKind, RecordConflictError, StorageUnavailableError, UnknownFieldError
from core.records import LogEntry, MoodEntry, Project, Task
from core.store import InMemoryStore, RecordFilter
from db.store import LOG_MAPPING, MOOD_MAPPING, PROJECT_MAPPING, TASK_MAPPING, SqlStore

_MAPPINGS = {
    LogEntry: LOG_MAPPING,
    MoodEntry: MOOD_MAPPING,
    Project: PROJECT_MAPPING,
    Task: TASK_MAPPING,
}


@pytest.fixture(params=["memory", "sql"])
def make_store(request, session_factory, sequential_ids, fixed_clock):
    def factory(record_type):
        if request.param == "memory":
            return InMemoryStore(record_type, id_factory=sequential_ids, clock=fixed_clock)
        return SqlStore(
            record_type,
            _MAPPINGS[record_type],
            session_factory,
            id_factory=sequential_ids,
            clock=fixed_clock,
        )

    return factory


class TestInsertAndGet:
    @pytest.mark.asyncio
    async def test_server_fields_assigned(self, make_store) -> None:
        store = make_store(LogEntry)
        entry = await store.insert(LogEntry(id="", timestamp="", type="meal", data={"kcal": 500}))
        assert entry.id == "id-1"
        assert entry.timestamp == "2025-03-01T09:00:00.000Z"

    @pytest.mark.asyncio
    async def test_round_trip_is_exact(self, make_store) -> None:
        store = make_store(LogEntry)
        original = LogEntry(
            id="L1",
            timestamp="2025-01-01T10:00:00Z",
            type="workout",
            data={"km": 5, "tags": ["run"]},
            metadata={"source": "watch"},
        )
        await store.insert(LogEntry(id="", timestamp="", type="other"))
        await store.insert(original)
        assert await store.query({"id": "L1"}) == [original]
        assert original in await store.query({})
        assert await store.get("L1") == original

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, make_store) -> None:
        assert await make_store(MoodEntry).get("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, make_store) -> None:
        store = make_store(MoodEntry)
        await store.insert(MoodEntry(id="m1", mood="calm"))
        with pytest.raises(RecordConflictError):
            await store.insert(MoodEntry(id="m1", mood="tired"))
        assert [m.mood for m in await store.query()] == ["calm"]


class TestQuery:
    @pytest.mark.asyncio
    async def test_insertion_order(self, make_store) -> None:
        store = make_store(MoodEntry)
        for mood in ("calm", "anxious", "happy"):
            await store.insert(MoodEntry(id="", mood=mood))
        assert [m.mood for m in await store.query({})] == ["calm", "anxious", "happy"]

    @pytest.mark.asyncio
    async def test_equality_filter(self, make_store) -> None:
        store = make_store(LogEntry)
        await store.insert(LogEntry(id="", timestamp="", type="meal"))
        await store.insert(LogEntry(id="", timestamp="", type="workout"))
        await store.insert(LogEntry(id="", timestamp="", type="meal"))
        assert [e.id for e in await store.query({"type": "meal"})] == ["id-1", "id-3"]

    @pytest.mark.asyncio
    async def test_filter_on_structured_field(self, make_store) -> None:
        store = make_store(LogEntry)
        await store.insert(LogEntry(id="", timestamp="", type="meal", data={"kcal": 500}))
        await store.insert(LogEntry(id="", timestamp="", type="meal", data={"kcal": 700}))
        assert [e.id for e in await store.query({"data": {"kcal": 700}})] == ["id-2"]

    @pytest.mark.asyncio
    async def test_filter_with_non_string_value_on_text_field(self, make_store) -> None:
        store = make_store(MoodEntry)
        await store.insert(MoodEntry(id="", mood="calm"))
        assert await store.query({"mood": 5}) == []

    @pytest.mark.asyncio
    async def test_filter_by_wire_name(self, make_store) -> None:
        projects = make_store(Project)
        tasks = make_store(Task)
        await projects.insert(Project(id="p1", name="A", description=""))
        await projects.insert(Project(id="p2", name="B", description=""))
        await tasks.insert(Task(id="t1", project_id="p1", title="x"))
        await tasks.insert(Task(id="t2", project_id="p2", title="y"))
        assert [t.id for t in await tasks.query({"projectId": "p2"})] == ["t2"]

    @pytest.mark.asyncio
    async def test_unknown_filter_field(self, make_store) -> None:
        with pytest.raises(UnknownFieldError) as exc_info:
            await make_store(LogEntry).query({"colour": "red"})
        assert exc_info.value.kind is ErrorKind.INVALID_PARAMS
        assert exc_info.value.details == ("filter.colour",)


class TestUpdate:
    @pytest.mark.asyncio
    async def test_patch_applied(self, make_store) -> None:
        store = make_store(Project)
        await store.insert(Project(id="p1", name="A", description="d"))
        updated = await store.update("p1", {"status": "completed"})
        assert updated is not None and updated.status == "completed"
        assert (await store.get("p1")).status == "completed"

    @pytest.mark.asyncio
    async def test_missing_record(self, make_store) -> None:
        assert await make_store(Project).update("nope", {"status": "archived"}) is None

    @pytest.mark.asyncio
    async def test_immutable_field_rejected(self, make_store) -> None:
        store = make_store(Task)
        await make_store(Project).insert(Project(id="p1", name="A", description=""))
        await store.insert(Task(id="t1", project_id="p1", title="x"))
        with pytest.raises(UnknownFieldError):
            await store.update("t1", {"projectId": "p2"})


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_then_get(self, make_store) -> None:
        store = make_store(LogEntry)
        await store.insert(LogEntry(id="l1", timestamp="t", type="x"))
        assert await store.delete("l1") is True
        assert await store.get("l1") is None
        assert await store.delete("l1") is False

    @pytest.mark.asyncio
    async def test_deleted_id_never_reused(self, make_store) -> None:
        store = make_store(LogEntry)
        await store.insert(LogEntry(id="l1", timestamp="t", type="x"))
        await store.delete("l1")
        with pytest.raises(RecordConflictError):
            await store.insert(LogEntry(id="l1", timestamp="t", type="x"))


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_inserts_get_distinct_ids(self, make_store) -> None:
        store = make_store(MoodEntry)
        entries = await asyncio.gather(
            *(store.insert(MoodEntry(id="", mood=f"m{i}")) for i in range(20))
        )
        assert len({e.id for e in entries}) == 20
        assert len(await store.query()) == 20

    @pytest.mark.asyncio
    async def test_read_after_write_with_concurrent_writers(self, make_store) -> None:
        store = make_store(LogEntry)

        async def writer(n: int) -> None:
            for i in range(5):
                await store.insert(LogEntry(id="", timestamp="", type=f"bg-{n}-{i}"))

        async def insert_then_read() -> bool:
            mine = await store.insert(LogEntry(id="mine", timestamp="", type="marker"))
            return mine in await store.query({"type": "marker"})

        results = await asyncio.gather(writer(1), insert_then_read(), writer(2))
        assert results[1] is True
        assert len(await store.query()) == 11


class TestSqlStoreSpecifics:
    @pytest.mark.asyncio
    async def test_task_requires_existing_project(self, session_factory) -> None:
        tasks = SqlStore(Task, TASK_MAPPING, session_factory)
        with pytest.raises(RecordConflictError):
            await tasks.insert(Task(id="t1", project_id="missing", title="x"))
        assert await tasks.query() == []

    @pytest.mark.asyncio
    async def test_data_survives_a_new_store_instance(self, session_factory) -> None:
        first = SqlStore(MoodEntry, MOOD_MAPPING, session_factory)
        await first.insert(MoodEntry(id="m1", mood="calm", metadata="walk"))
        second = SqlStore(MoodEntry, MOOD_MAPPING, session_factory)
        assert (await second.get("m1")).metadata == "walk"

    @pytest.mark.asyncio
    async def test_missing_tables_report_storage_unavailable(self, sqlite_url) -> None:
        from db.session import create_engine_for, make_session_factory

        store = SqlStore(MoodEntry, MOOD_MAPPING, make_session_factory(create_engine_for(sqlite_url)))
        with pytest.raises(StorageUnavailableError) as exc_info:
            await store.query()
        assert exc_info.value.kind is ErrorKind.STORAGE_UNAVAILABLE


class TestRecordFilter:
    def test_empty_filter_matches_everything(self) -> None:
        predicate = RecordFilter({}, MoodEntry.FIELDS)
        assert not predicate
        assert predicate.matches(MoodEntry(id="m", mood="x"))
