"""ActivityStore SQLite 实现 -- task_activities / task_deliverables

agent 完成协议的前两步（登记交付物、记录完成活动）写入这里。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.activity import TaskActivity, TaskDeliverable


class SqliteActivityStore:
    """任务活动与交付物的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def add_activity(self, activity: TaskActivity) -> None:
        await self._conn.execute(
            """
            INSERT INTO task_activities (id, task_id, agent_id, activity_type,
                                         message, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                activity.id,
                activity.task_id,
                activity.agent_id,
                activity.activity_type.value,
                activity.message,
                json.dumps(activity.metadata, ensure_ascii=False)
                if activity.metadata is not None
                else None,
                activity.created_at.isoformat(),
            ),
        )

    async def list_activities(self, task_id: str) -> list[TaskActivity]:
        cursor = await self._conn.execute(
            "SELECT * FROM task_activities WHERE task_id = ? ORDER BY created_at DESC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [
            TaskActivity(
                id=row["id"],
                task_id=row["task_id"],
                agent_id=row["agent_id"],
                activity_type=row["activity_type"],
                message=row["message"],
                metadata=json.loads(row["metadata"]) if row["metadata"] else None,
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    async def add_deliverable(self, deliverable: TaskDeliverable) -> None:
        await self._conn.execute(
            """
            INSERT INTO task_deliverables (id, task_id, deliverable_type, title,
                                           path, description, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                deliverable.id,
                deliverable.task_id,
                deliverable.deliverable_type.value,
                deliverable.title,
                deliverable.path,
                deliverable.description,
                deliverable.created_at.isoformat(),
            ),
        )

    async def list_deliverables(self, task_id: str) -> list[TaskDeliverable]:
        cursor = await self._conn.execute(
            "SELECT * FROM task_deliverables WHERE task_id = ? ORDER BY created_at ASC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [
            TaskDeliverable(
                id=row["id"],
                task_id=row["task_id"],
                deliverable_type=row["deliverable_type"],
                title=row["title"],
                path=row["path"],
                description=row["description"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]
