"""Mission Control Core Store -- SQLite 持久化实现

StoreGroup 显式持有数据库连接，open()/close() 管理生命周期；
由 gateway lifespan 创建并挂到 app.state，通过 Depends 注入各 handler。
"""

from pathlib import Path

import aiosqlite

from .activity_store import SqliteActivityStore
from .agent_store import SqliteAgentStore
from .event_store import SqliteEventStore
from .session_store import SqliteSessionStore
from .sqlite_init import IDEMPOTENCY_INDEX_NAME, init_db
from .task_store import SqliteTaskStore


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def open(self) -> "StoreGroup":
        """建立连接并初始化 schema（幂等）"""
        if self._conn is not None:
            return self

        # 确保数据库目录存在
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(self.db_path)
        conn.row_factory = aiosqlite.Row
        await init_db(conn)

        self._conn = conn
        self.task_store = SqliteTaskStore(conn)
        self.event_store = SqliteEventStore(conn)
        self.agent_store = SqliteAgentStore(conn)
        self.session_store = SqliteSessionStore(conn)
        self.activity_store = SqliteActivityStore(conn)
        return self

    async def close(self) -> None:
        """关闭连接"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("StoreGroup 尚未 open()")
        return self._conn

    async def __aenter__(self) -> "StoreGroup":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


async def create_store_group(db_path: str | Path) -> StoreGroup:
    """创建并打开 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        已 open 的 StoreGroup 实例
    """
    return await StoreGroup(db_path).open()


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteEventStore",
    "SqliteAgentStore",
    "SqliteSessionStore",
    "SqliteActivityStore",
    "IDEMPOTENCY_INDEX_NAME",
    "init_db",
]
