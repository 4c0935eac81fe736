"""SqliteTaskStore 测试 -- CRUD、幂等索引、过滤、批量推进、级联删除"""

from datetime import UTC, datetime

import aiosqlite
import pytest
from missioncontrol.core.models import ActivityType, TaskActivity, TaskStatus
from missioncontrol.core.store import IDEMPOTENCY_INDEX_NAME, StoreGroup


class TestSchema:
    async def test_wal_and_foreign_keys_enabled(self, store_group: StoreGroup):
        cursor = await store_group.conn.execute("PRAGMA journal_mode")
        assert (await cursor.fetchone())[0] == "wal"
        cursor = await store_group.conn.execute("PRAGMA foreign_keys")
        assert (await cursor.fetchone())[0] == 1

    async def test_idempotency_index_exists(self, store_group: StoreGroup):
        cursor = await store_group.conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND name = ?",
            (IDEMPOTENCY_INDEX_NAME,),
        )
        assert await cursor.fetchone() is not None

    async def test_open_is_idempotent(self, tmp_db_path):
        group = StoreGroup(tmp_db_path)
        assert await group.open() is await group.open()
        await group.close()
        assert not group.is_open
        with pytest.raises(RuntimeError):
            _ = group.conn


class TestCrud:
    async def test_create_and_get_roundtrip(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        task = await seed.task(
            ws.id,
            initiative_id="INIT-7",
            task_type="claude-team",
            task_type_config={"team_size": 2, "team_members": []},
            planning_messages=[{"role": "user", "content": "hi"}],
        )

        loaded = await store_group.task_store.get_task(task.id)

        assert loaded is not None
        assert loaded.title == task.title
        assert loaded.status == TaskStatus.INBOX
        assert loaded.initiative_id == "INIT-7"
        assert loaded.task_type_config == {"team_size": 2, "team_members": []}
        assert loaded.planning_messages == [{"role": "user", "content": "hi"}]
        assert loaded.planning_complete is False

    async def test_get_missing_returns_none(self, store_group: StoreGroup):
        assert await store_group.task_store.get_task("nope") is None

    async def test_update_fields_serializes_values(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        task = await seed.task(ws.id)

        await store_group.task_store.update_fields(
            task.id,
            {"status": TaskStatus.REVIEW, "planning_complete": True, "description": "d"},
            datetime(2030, 1, 1, tzinfo=UTC).isoformat(),
        )
        loaded = await store_group.task_store.get_task(task.id)

        assert loaded.status == TaskStatus.REVIEW
        assert loaded.planning_complete is True
        assert loaded.description == "d"
        assert loaded.updated_at.year == 2030

    async def test_update_fields_rejects_unknown_column(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        task = await seed.task(ws.id)
        with pytest.raises(ValueError):
            await store_group.task_store.update_fields(task.id, {"id": "x"}, "2030-01-01")


class TestIdempotencyIndex:
    """(source, external_request_id) 唯一性由数据库保证"""

    async def test_duplicate_key_raises_integrity_error(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        await seed.task(ws.id, source="panel", external_request_id="req-1")

        with pytest.raises(aiosqlite.IntegrityError) as exc_info:
            await seed.task(ws.id, source="panel", external_request_id="req-1")
        assert "external_request_id" in str(exc_info.value)

    async def test_same_key_different_source_allowed(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        await seed.task(ws.id, source="panel", external_request_id="req-1")
        await seed.task(ws.id, source="cli", external_request_id="req-1")

        found = await store_group.task_store.get_by_external_request_id("cli", "req-1")
        assert found is not None
        assert found.source == "cli"

    async def test_null_keys_never_conflict(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        await seed.task(ws.id)
        await seed.task(ws.id)
        assert len(await store_group.task_store.list_tasks()) == 2


class TestQueries:
    async def test_list_filters_and_order(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        other = await seed.workspace("other")
        first = await seed.task(ws.id, title="first", initiative_id="INIT-1")
        second = await seed.task(ws.id, title="second", status=TaskStatus.DONE)
        await seed.task(other.id, title="elsewhere")

        store = store_group.task_store
        assert [t.id for t in await store.list_tasks(workspace_id=ws.id)] == [second.id, first.id]
        assert [t.id for t in await store.list_tasks(statuses=["done"])] == [second.id]
        assert [t.id for t in await store.list_tasks(initiative_id="init-1")] == [first.id]

    async def test_subtasks_and_top_level(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        parent = await seed.task(ws.id, title="parent")
        child = await seed.task(ws.id, title="child", parent_task_id=parent.id)

        store = store_group.task_store
        assert [t.id for t in await store.list_subtasks(parent.id)] == [child.id]
        assert [t.id for t in await store.list_tasks(top_level_only=True)] == [parent.id]
        assert [t.id for t in await store.list_tasks(parent_task_id=parent.id)] == [child.id]

    async def test_promote_only_matching_status(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        planning = await seed.task(ws.id, status=TaskStatus.PLANNING, initiative_id="INIT-2")
        done = await seed.task(ws.id, status=TaskStatus.DONE, initiative_id="INIT-2")

        count = await store_group.task_store.promote_initiative_tasks(
            "INIT-2", ws.id, "planning", "in_progress", "2030-01-01T00:00:00+00:00"
        )

        assert count == 1
        assert (await store_group.task_store.get_task(planning.id)).status == TaskStatus.IN_PROGRESS
        assert (await store_group.task_store.get_task(done.id)).status == TaskStatus.DONE

    async def test_latest_planning_initiative(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        await seed.task(ws.id, status=TaskStatus.PLANNING, initiative_id="INIT-1", source="panel")
        await seed.task(ws.id, status=TaskStatus.PLANNING, initiative_id="INIT-2", source="panel")
        await seed.task(ws.id, status=TaskStatus.DONE, initiative_id="INIT-3", source="panel")

        store = store_group.task_store
        assert await store.latest_planning_initiative(ws.id, "panel") == "INIT-2"
        assert await store.latest_planning_initiative(ws.id, "cli") is None

    async def test_count_initiative_tasks(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        await seed.task(ws.id, initiative_id="INIT-4", status=TaskStatus.DONE)
        await seed.task(ws.id, initiative_id="init-4")

        assert await store_group.task_store.count_initiative_tasks("INIT-4") == (2, 1)
        assert await store_group.task_store.count_initiative_tasks("INIT-404") == (0, 0)


class TestPlanningMessages:
    async def test_append_keeps_order(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        task = await seed.task(ws.id, planning_messages=[{"role": "assistant", "content": "Q1"}])

        ok = await store_group.task_store.append_planning_message(
            task.id, {"role": "user", "content": "A1"}, "2030-01-01T00:00:00+00:00"
        )

        stored = await store_group.task_store.get_task(task.id)
        assert ok is True
        assert stored.planning_messages == [
            {"role": "assistant", "content": "Q1"},
            {"role": "user", "content": "A1"},
        ]

    async def test_locked_task_untouched(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        task = await seed.task(ws.id, planning_complete=True)

        ok = await store_group.task_store.append_planning_message(
            task.id, {"role": "user", "content": "late"}, "2030-01-01T00:00:00+00:00"
        )

        assert ok is False
        assert (await store_group.task_store.get_task(task.id)).planning_messages is None


class TestDelete:
    async def test_delete_cascades_dependents(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        parent = await seed.task(ws.id, title="parent")
        child = await seed.task(ws.id, title="child", parent_task_id=parent.id)
        await store_group.activity_store.add_activity(
            TaskActivity(
                id="act-1",
                task_id=parent.id,
                activity_type=ActivityType.UPDATED,
                message="m",
                created_at=datetime.now(UTC),
            )
        )
        await store_group.conn.commit()

        await store_group.task_store.delete_task(parent.id)
        await store_group.conn.commit()

        assert await store_group.task_store.get_task(parent.id) is None
        assert await store_group.activity_store.list_activities(parent.id) == []
        orphan = await store_group.task_store.get_task(child.id)
        assert orphan.parent_task_id is None
