"""TaskStore SQLite 实现

tasks 表是唯一事实来源。
此处仅提供数据库操作，不自动提交事务，由调用方（service）管理。
"""

import json
from datetime import datetime
from typing import Any

import aiosqlite

from ..models.task import Task, parse_planning_messages

# 可通过 update_fields 修改的列
_UPDATABLE_COLUMNS = {
    "title",
    "description",
    "status",
    "priority",
    "assigned_agent_id",
    "due_date",
    "initiative_id",
    "external_request_id",
    "source",
    "parent_task_id",
    "evaluation_status",
    "task_type",
    "task_type_config",
    "planning_messages",
    "planning_spec",
    "planning_complete",
}


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """插入任务记录

        Raises:
            aiosqlite.IntegrityError: (source, external_request_id) 重复或外键不满足
        """
        await self._conn.execute(
            """
            INSERT INTO tasks (id, title, description, status, priority,
                               assigned_agent_id, created_by_agent_id, workspace_id,
                               initiative_id, external_request_id, source,
                               task_type, task_type_config, parent_task_id,
                               evaluation_status, due_date, planning_messages,
                               planning_spec, planning_complete, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.id,
                task.title,
                task.description,
                task.status.value,
                task.priority.value,
                task.assigned_agent_id,
                task.created_by_agent_id,
                task.workspace_id,
                task.initiative_id,
                task.external_request_id,
                task.source,
                task.task_type,
                json.dumps(task.task_type_config, ensure_ascii=False)
                if task.task_type_config is not None
                else None,
                task.parent_task_id,
                task.evaluation_status,
                task.due_date,
                json.dumps(task.planning_messages, ensure_ascii=False)
                if task.planning_messages is not None
                else None,
                task.planning_spec,
                int(task.planning_complete),
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 id 查询任务"""
        cursor = await self._conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def get_by_external_request_id(
        self,
        source: str,
        external_request_id: str,
    ) -> Task | None:
        """按幂等键 (source, external_request_id) 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE source = ? AND external_request_id = ?",
            (source, external_request_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(
        self,
        statuses: list[str] | None = None,
        workspace_id: str | None = None,
        assigned_agent_id: str | None = None,
        initiative_id: str | None = None,
        parent_task_id: str | None = None,
        top_level_only: bool = False,
    ) -> list[Task]:
        """查询任务列表，按 created_at 倒序"""
        conditions: list[str] = []
        params: list[Any] = []

        if statuses:
            conditions.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        if workspace_id:
            conditions.append("workspace_id = ?")
            params.append(workspace_id)
        if assigned_agent_id:
            conditions.append("assigned_agent_id = ?")
            params.append(assigned_agent_id)
        if initiative_id:
            conditions.append("UPPER(initiative_id) = ?")
            params.append(initiative_id.upper())
        if top_level_only:
            conditions.append("parent_task_id IS NULL")
        elif parent_task_id:
            conditions.append("parent_task_id = ?")
            params.append(parent_task_id)

        sql = "SELECT * FROM tasks"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY created_at DESC"

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_subtasks(self, parent_task_id: str) -> list[Task]:
        """查询子任务，按 created_at 正序"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE parent_task_id = ? ORDER BY created_at ASC",
            (parent_task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_fields(
        self,
        task_id: str,
        fields: dict[str, Any],
        updated_at: str,
    ) -> None:
        """更新任务字段（白名单列）"""
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"不可更新的列: {sorted(unknown)}")

        values: list[Any] = []
        assignments: list[str] = []
        for column, value in fields.items():
            assignments.append(f"{column} = ?")
            if column in ("planning_messages", "task_type_config") and value is not None:
                value = json.dumps(value, ensure_ascii=False)
            elif column == "planning_complete":
                value = int(bool(value))
            elif hasattr(value, "value"):
                value = value.value
            values.append(value)

        assignments.append("updated_at = ?")
        values.extend([updated_at, task_id])
        await self._conn.execute(
            f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ?",
            values,
        )

    async def update_task_status(self, task_id: str, status: str, updated_at: str) -> None:
        """仅更新任务状态"""
        await self._conn.execute(
            "UPDATE tasks SET status = ?, updated_at = ? WHERE id = ?",
            (status, updated_at, task_id),
        )

    async def promote_initiative_tasks(
        self,
        initiative_id: str,
        workspace_id: str,
        from_status: str,
        to_status: str,
        updated_at: str,
    ) -> int:
        """批量将同一 initiative 下的任务从 from_status 推进到 to_status

        Returns:
            受影响行数
        """
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET status = ?, updated_at = ?
            WHERE initiative_id = ? AND workspace_id = ? AND status = ?
            """,
            (to_status, updated_at, initiative_id, workspace_id, from_status),
        )
        return cursor.rowcount

    async def latest_planning_initiative(self, workspace_id: str, source: str) -> str | None:
        """查询 workspace 内最近一个处于 planning 的任务所关联的 initiative"""
        cursor = await self._conn.execute(
            """
            SELECT initiative_id FROM tasks
            WHERE workspace_id = ? AND source = ? AND status = 'planning'
              AND initiative_id IS NOT NULL
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (workspace_id, source),
        )
        row = await cursor.fetchone()
        return row["initiative_id"] if row else None

    async def count_initiative_tasks(self, initiative_id: str) -> tuple[int, int]:
        """统计 initiative 的任务数与已完成（done）任务数"""
        cursor = await self._conn.execute(
            """
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(CASE WHEN status = 'done' THEN 1 ELSE 0 END), 0) AS done
            FROM tasks WHERE UPPER(initiative_id) = ?
            """,
            (initiative_id.upper(),),
        )
        row = await cursor.fetchone()
        return int(row["total"]), int(row["done"])

    async def delete_task(self, task_id: str) -> None:
        """删除任务及其依赖记录

        task_activities / task_deliverables / planning_specs 通过 ON DELETE CASCADE 清理；
        会话与事件显式删除，conversations 置空关联。
        """
        await self._conn.execute("DELETE FROM openclaw_sessions WHERE task_id = ?", (task_id,))
        await self._conn.execute("DELETE FROM events WHERE task_id = ?", (task_id,))
        await self._conn.execute(
            "UPDATE conversations SET task_id = NULL WHERE task_id = ?", (task_id,)
        )
        await self._conn.execute(
            "UPDATE tasks SET parent_task_id = NULL WHERE parent_task_id = ?", (task_id,)
        )
        await self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

    async def append_planning_message(
        self,
        task_id: str,
        message: dict[str, Any],
        updated_at: str,
    ) -> bool:
        """在单条 UPDATE 内向 planning_messages 追加一条消息

        已锁定的任务不会被修改；损坏的列值按空数组处理。

        Returns:
            是否写入成功
        """
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET planning_messages = json_insert(
                    CASE WHEN json_valid(planning_messages)
                         THEN CASE json_type(planning_messages)
                                   WHEN 'array' THEN planning_messages ELSE '[]' END
                         ELSE '[]' END,
                    '$[#]', json(?)
                ),
                updated_at = ?
            WHERE id = ? AND planning_complete = 0
            """,
            (json.dumps(message, ensure_ascii=False), updated_at, task_id),
        )
        return cursor.rowcount > 0

    async def insert_planning_spec(
        self,
        spec_id: str,
        task_id: str,
        spec_markdown: str,
        locked_at: str,
    ) -> None:
        """写入锁定后的 planning spec"""
        await self._conn.execute(
            """
            INSERT INTO planning_specs (id, task_id, spec_markdown, locked_at)
            VALUES (?, ?, ?, ?)
            """,
            (spec_id, task_id, spec_markdown, locked_at),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        config_raw = row["task_type_config"]
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            status=row["status"],
            priority=row["priority"],
            assigned_agent_id=row["assigned_agent_id"],
            created_by_agent_id=row["created_by_agent_id"],
            workspace_id=row["workspace_id"],
            initiative_id=row["initiative_id"],
            external_request_id=row["external_request_id"],
            source=row["source"],
            task_type=row["task_type"],
            task_type_config=json.loads(config_raw) if config_raw else None,
            parent_task_id=row["parent_task_id"],
            evaluation_status=row["evaluation_status"],
            due_date=row["due_date"],
            planning_messages=parse_planning_messages(row["planning_messages"]),
            planning_spec=row["planning_spec"],
            planning_complete=bool(row["planning_complete"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
