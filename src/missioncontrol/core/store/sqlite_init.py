"""SQLite 数据库初始化

PRAGMA 配置 + 表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# 幂等键唯一索引名（TaskService 据此识别幂等冲突）
IDEMPOTENCY_INDEX_NAME = "idx_tasks_source_external_request_id"

_WORKSPACES_DDL = """
CREATE TABLE IF NOT EXISTS workspaces (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    slug        TEXT NOT NULL UNIQUE,
    created_at  TEXT NOT NULL
);
"""

_AGENTS_DDL = """
CREATE TABLE IF NOT EXISTS agents (
    id            TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    role          TEXT NOT NULL DEFAULT '',
    status        TEXT NOT NULL DEFAULT 'standby',
    is_master     INTEGER NOT NULL DEFAULT 0,
    workspace_id  TEXT NOT NULL,
    created_at    TEXT NOT NULL,

    FOREIGN KEY (workspace_id) REFERENCES workspaces(id)
);
"""

_AGENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_agents_workspace ON agents(workspace_id);",
]

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    id                   TEXT PRIMARY KEY,
    title                TEXT NOT NULL,
    description          TEXT,
    status               TEXT NOT NULL DEFAULT 'inbox',
    priority             TEXT NOT NULL DEFAULT 'normal',
    assigned_agent_id    TEXT REFERENCES agents(id),
    created_by_agent_id  TEXT REFERENCES agents(id),
    workspace_id         TEXT NOT NULL REFERENCES workspaces(id),
    initiative_id        TEXT,
    external_request_id  TEXT,
    source               TEXT NOT NULL DEFAULT 'mission-control',
    task_type            TEXT NOT NULL DEFAULT 'openclaw-native',
    task_type_config     TEXT,
    parent_task_id       TEXT REFERENCES tasks(id),
    evaluation_status    TEXT,
    due_date             TEXT,
    planning_messages    TEXT,
    planning_spec        TEXT,
    planning_complete    INTEGER NOT NULL DEFAULT 0,
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_workspace ON tasks(workspace_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_initiative ON tasks(initiative_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_task_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
    # 幂等键唯一约束（仅对非 NULL external_request_id 生效）
    (
        f"CREATE UNIQUE INDEX IF NOT EXISTS {IDEMPOTENCY_INDEX_NAME} "
        "ON tasks(source, external_request_id) WHERE external_request_id IS NOT NULL;"
    ),
]

# events 表 DDL（append-only 审计日志）
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    id          TEXT PRIMARY KEY,
    type        TEXT NOT NULL,
    agent_id    TEXT,
    task_id     TEXT,
    message     TEXT NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL
);
"""

_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_events_task ON events(task_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_events_created_at ON events(created_at DESC);",
]

_SESSIONS_DDL = """
CREATE TABLE IF NOT EXISTS openclaw_sessions (
    id            TEXT PRIMARY KEY,
    agent_id      TEXT NOT NULL,
    session_key   TEXT NOT NULL,
    session_type  TEXT NOT NULL DEFAULT 'persistent',
    status        TEXT NOT NULL DEFAULT 'active',
    task_id       TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
"""

_SESSIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_sessions_agent ON openclaw_sessions(agent_id, status);",
    # 每个 agent 最多一个 active 会话
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_one_active_per_agent "
    "ON openclaw_sessions(agent_id) WHERE status = 'active';",
]

_ACTIVITIES_DDL = """
CREATE TABLE IF NOT EXISTS task_activities (
    id             TEXT PRIMARY KEY,
    task_id        TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    agent_id       TEXT,
    activity_type  TEXT NOT NULL,
    message        TEXT NOT NULL,
    metadata       TEXT,
    created_at     TEXT NOT NULL
);
"""

_DELIVERABLES_DDL = """
CREATE TABLE IF NOT EXISTS task_deliverables (
    id                TEXT PRIMARY KEY,
    task_id           TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    deliverable_type  TEXT NOT NULL,
    title             TEXT NOT NULL,
    path              TEXT,
    description       TEXT,
    created_at        TEXT NOT NULL
);
"""

_ACTIVITY_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_activities_task ON task_activities(task_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_deliverables_task ON task_deliverables(task_id);",
]

_CONVERSATIONS_DDL = """
CREATE TABLE IF NOT EXISTS conversations (
    id          TEXT PRIMARY KEY,
    title       TEXT,
    task_id     TEXT REFERENCES tasks(id),
    created_at  TEXT NOT NULL
);
"""

_PLANNING_SPECS_DDL = """
CREATE TABLE IF NOT EXISTS planning_specs (
    id             TEXT PRIMARY KEY,
    task_id        TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    spec_markdown  TEXT NOT NULL,
    locked_at      TEXT NOT NULL
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表（按外键依赖顺序）
    for ddl in (
        _WORKSPACES_DDL,
        _AGENTS_DDL,
        _TASKS_DDL,
        _EVENTS_DDL,
        _SESSIONS_DDL,
        _ACTIVITIES_DDL,
        _DELIVERABLES_DDL,
        _CONVERSATIONS_DDL,
        _PLANNING_SPECS_DDL,
    ):
        await conn.execute(ddl)

    # 创建索引
    for idx_sql in (
        _AGENTS_INDEXES
        + _TASKS_INDEXES
        + _EVENTS_INDEXES
        + _SESSIONS_INDEXES
        + _ACTIVITY_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
