"""SessionStore SQLite 实现 -- openclaw_sessions 表

每个 agent 最多一个 active 会话；派发时优先复用。
"""

from datetime import datetime

import aiosqlite

from ..models.enums import SessionStatus
from ..models.task import Session


class SqliteSessionStore:
    """openclaw_sessions 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_active_session(self, agent_id: str) -> Session | None:
        """查询 agent 当前的 active 会话"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM openclaw_sessions
            WHERE agent_id = ? AND status = ?
            ORDER BY created_at ASC
            LIMIT 1
            """,
            (agent_id, SessionStatus.ACTIVE.value),
        )
        row = await cursor.fetchone()
        return self._row_to_session(row) if row else None

    async def create_session(self, session: Session) -> None:
        await self._conn.execute(
            """
            INSERT INTO openclaw_sessions (id, agent_id, session_key, session_type,
                                           status, task_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session.id,
                session.agent_id,
                session.session_key,
                session.session_type,
                session.status,
                session.task_id,
                session.created_at.isoformat(),
                session.updated_at.isoformat(),
            ),
        )

    async def attach_task(self, session_id: str, task_id: str, updated_at: str) -> None:
        """记录会话最近一次派发的任务"""
        await self._conn.execute(
            "UPDATE openclaw_sessions SET task_id = ?, updated_at = ? WHERE id = ?",
            (task_id, updated_at, session_id),
        )

    async def list_sessions(self, agent_id: str, status: str | None = None) -> list[Session]:
        if status:
            cursor = await self._conn.execute(
                "SELECT * FROM openclaw_sessions WHERE agent_id = ? AND status = ?",
                (agent_id, status),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT * FROM openclaw_sessions WHERE agent_id = ?", (agent_id,)
            )
        rows = await cursor.fetchall()
        return [self._row_to_session(row) for row in rows]

    @staticmethod
    def _row_to_session(row: aiosqlite.Row) -> Session:
        return Session(
            id=row["id"],
            agent_id=row["agent_id"],
            session_key=row["session_key"],
            session_type=row["session_type"],
            status=row["status"],
            task_id=row["task_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
