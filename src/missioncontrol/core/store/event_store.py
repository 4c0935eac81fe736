"""EventStore SQLite 实现

事件表 append-only：只允许插入，不允许更新。
仅在删除任务时随任务一并清理。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.event import Event


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_event(self, event: Event) -> None:
        """追加事件（append-only）

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO events (id, type, agent_id, task_id, message, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.type.value,
                event.agent_id,
                event.task_id,
                event.message,
                json.dumps(event.metadata, ensure_ascii=False),
                event.created_at.isoformat(),
            ),
        )

    async def get_events_for_task(self, task_id: str) -> list[Event]:
        """查询指定任务的所有事件，按时间正序（同一时刻按写入顺序）"""
        cursor = await self._conn.execute(
            "SELECT * FROM events WHERE task_id = ? ORDER BY created_at ASC, rowid ASC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def list_recent(self, limit: int = 50) -> list[Event]:
        """查询最近的事件（全局审计流）"""
        cursor = await self._conn.execute(
            "SELECT * FROM events ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> Event:
        """将数据库行转换为 Event 模型"""
        return Event(
            id=row["id"],
            type=row["type"],
            agent_id=row["agent_id"],
            task_id=row["task_id"],
            message=row["message"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=datetime.fromisoformat(row["created_at"]),
        )
