"""全局 pytest 配置 -- 临时 SQLite / ledger fixture、测试数据构造与可记录的 gateway 替身"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from missioncontrol.core.ledger import LedgerSync
from missioncontrol.core.models import (
    Agent,
    AgentStatus,
    Task,
    TaskPriority,
    TaskStatus,
    Workspace,
)
from missioncontrol.core.store import StoreGroup
from missioncontrol.gateway.services.sse_hub import SSEHub
from missioncontrol.transport import GatewayCallError, GatewayConnectError
from ulid import ULID


class FakeGatewayClient:
    """记录每次调用的 gateway 替身，可模拟连接失败与调用失败"""

    def __init__(self) -> None:
        self._connected = False
        self.connect_fails = False
        self.call_fails = False
        self.connect_attempts = 0
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.connect_attempts += 1
        if self.connect_fails:
            raise GatewayConnectError("http://fake-gateway", "connection refused")
        self._connected = True

    async def call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((method, params))
        if self.call_fails:
            raise GatewayCallError(method, "agent session rejected message")
        return {"success": True}

    async def close(self) -> None:
        self._connected = False


class Seeder:
    """直接写库构造 workspace / agent / task"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group
        self._clock = datetime(2025, 1, 1, tzinfo=UTC)

    def _tick(self) -> datetime:
        # 保证 created_at 严格递增，排序断言稳定
        self._clock += timedelta(seconds=1)
        return self._clock

    async def workspace(self, slug: str = "default", name: str | None = None) -> Workspace:
        workspace = Workspace(
            id=f"ws-{slug}",
            name=name or slug.title(),
            slug=slug,
            created_at=self._tick(),
        )
        await self._stores.agent_store.create_workspace(workspace)
        await self._stores.conn.commit()
        return workspace

    async def agent(
        self,
        workspace_id: str,
        agent_id: str | None = None,
        name: str = "Worker Agent",
        is_master: bool = False,
        status: AgentStatus = AgentStatus.STANDBY,
        role: str = "developer",
    ) -> Agent:
        agent = Agent(
            id=agent_id or f"agent-{ULID()}",
            name=name,
            role=role,
            status=status,
            is_master=is_master,
            workspace_id=workspace_id,
            created_at=self._tick(),
        )
        await self._stores.agent_store.create_agent(agent)
        await self._stores.conn.commit()
        return agent

    async def task(self, workspace_id: str, **fields: Any) -> Task:
        now = self._tick()
        data: dict[str, Any] = {
            "id": str(ULID()),
            "title": "Build landing page",
            "status": TaskStatus.INBOX,
            "priority": TaskPriority.NORMAL,
            "workspace_id": workspace_id,
            "created_at": now,
            "updated_at": now,
        }
        data.update(fields)
        task = Task(**data)
        await self._stores.task_store.create_task(task)
        await self._stores.conn.commit()
        return task


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供已 open 的 StoreGroup"""
    group = await StoreGroup(tmp_db_path).open()
    yield group
    await group.close()


@pytest_asyncio.fixture
async def ledger_path(tmp_path: Path) -> Path:
    """临时 INITIATIVES.json 路径（文件默认不存在）"""
    return tmp_path / "status" / "INITIATIVES.json"


@pytest_asyncio.fixture
async def ledger(ledger_path: Path) -> LedgerSync:
    return LedgerSync(ledger_path)


@pytest_asyncio.fixture
async def sse_hub() -> SSEHub:
    return SSEHub()


@pytest_asyncio.fixture
async def fake_gateway() -> FakeGatewayClient:
    return FakeGatewayClient()


@pytest_asyncio.fixture
async def seed(store_group: StoreGroup) -> Seeder:
    return Seeder(store_group)


@pytest_asyncio.fixture
async def app(store_group, sse_hub, ledger, fake_gateway, tmp_path: Path, monkeypatch):
    """创建测试用 FastAPI app，手动初始化 lifespan 状态"""
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    monkeypatch.setenv("MC_PROJECTS_PATH", "/tmp/mc-test-projects")
    monkeypatch.setenv("MC_URL", "http://localhost:4000")
    monkeypatch.delenv("MC_API_TOKEN", raising=False)
    monkeypatch.delenv("MC_DEMO_MODE", raising=False)

    from missioncontrol.gateway.main import create_app

    application = create_app()
    application.state.store_group = store_group
    application.state.sse_hub = sse_hub
    application.state.ledger = ledger
    application.state.gateway_client = fake_gateway
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
