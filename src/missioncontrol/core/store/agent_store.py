"""AgentStore SQLite 实现 -- agents 与 workspaces 查询

workspace / agent 的通用 CRUD 不在本核心范围内，由外部同步任务写入；
此处仅提供派发与激活流程需要的查询，以及初始化数据用的插入方法。
"""

from datetime import datetime

import aiosqlite

from ..models.task import Agent, Workspace


class SqliteAgentStore:
    """agents / workspaces 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_workspace(self, workspace: Workspace) -> None:
        """插入 workspace"""
        await self._conn.execute(
            "INSERT INTO workspaces (id, name, slug, created_at) VALUES (?, ?, ?, ?)",
            (workspace.id, workspace.name, workspace.slug, workspace.created_at.isoformat()),
        )

    async def create_agent(self, agent: Agent) -> None:
        """插入 agent"""
        await self._conn.execute(
            """
            INSERT INTO agents (id, name, role, status, is_master, workspace_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                agent.id,
                agent.name,
                agent.role,
                agent.status.value,
                int(agent.is_master),
                agent.workspace_id,
                agent.created_at.isoformat(),
            ),
        )

    async def get_workspace(self, workspace_id: str) -> Workspace | None:
        cursor = await self._conn.execute(
            "SELECT * FROM workspaces WHERE id = ?", (workspace_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_workspace(row) if row else None

    async def find_workspace(self, slug_or_id: str) -> Workspace | None:
        """按 slug 或 id 查找 workspace"""
        cursor = await self._conn.execute(
            "SELECT * FROM workspaces WHERE slug = ? OR id = ? LIMIT 1",
            (slug_or_id, slug_or_id),
        )
        row = await cursor.fetchone()
        return self._row_to_workspace(row) if row else None

    async def get_default_workspace(self) -> Workspace | None:
        """最早创建的 workspace（创建任务未指定 workspace 时使用）"""
        cursor = await self._conn.execute(
            "SELECT * FROM workspaces ORDER BY created_at ASC LIMIT 1"
        )
        row = await cursor.fetchone()
        return self._row_to_workspace(row) if row else None

    async def get_agent(self, agent_id: str) -> Agent | None:
        cursor = await self._conn.execute("SELECT * FROM agents WHERE id = ?", (agent_id,))
        row = await cursor.fetchone()
        return self._row_to_agent(row) if row else None

    async def get_workspace_agent(self, agent_id: str, workspace_id: str) -> Agent | None:
        """查询属于指定 workspace 的 agent"""
        cursor = await self._conn.execute(
            "SELECT * FROM agents WHERE id = ? AND workspace_id = ? LIMIT 1",
            (agent_id, workspace_id),
        )
        row = await cursor.fetchone()
        return self._row_to_agent(row) if row else None

    async def get_preferred_agent(self, workspace_id: str) -> Agent | None:
        """workspace 的默认 agent：master 优先，其次按 id 排序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM agents WHERE workspace_id = ?
            ORDER BY is_master DESC, id ASC
            LIMIT 1
            """,
            (workspace_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_agent(row) if row else None

    async def list_other_online_masters(self, agent_id: str, workspace_id: str) -> list[Agent]:
        """同 workspace 中除 agent_id 外、状态非 offline 的 master agent"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM agents
            WHERE workspace_id = ? AND is_master = 1 AND id != ? AND status != 'offline'
            ORDER BY id ASC
            """,
            (workspace_id, agent_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_agent(row) for row in rows]

    async def update_agent_status(self, agent_id: str, status: str) -> None:
        await self._conn.execute(
            "UPDATE agents SET status = ? WHERE id = ?", (status, agent_id)
        )

    @staticmethod
    def _row_to_workspace(row: aiosqlite.Row) -> Workspace:
        return Workspace(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_agent(row: aiosqlite.Row) -> Agent:
        return Agent(
            id=row["id"],
            name=row["name"],
            role=row["role"],
            status=row["status"],
            is_master=bool(row["is_master"]),
            workspace_id=row["workspace_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
