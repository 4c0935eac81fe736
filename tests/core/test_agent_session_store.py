"""SqliteAgentStore / SqliteSessionStore 测试"""

from datetime import UTC, datetime

import aiosqlite
import pytest
from missioncontrol.core.models import AgentStatus, Session
from missioncontrol.core.store import StoreGroup


def _session(session_id: str, agent_id: str, status: str = "active") -> Session:
    now = datetime.now(UTC)
    return Session(
        id=session_id,
        agent_id=agent_id,
        session_key=f"dm:{agent_id}",
        status=status,
        created_at=now,
        updated_at=now,
    )


class TestAgentQueries:
    async def test_find_workspace_by_slug_or_id(self, store_group: StoreGroup, seed):
        ws = await seed.workspace("apollo")
        store = store_group.agent_store

        assert (await store.find_workspace("apollo")).id == ws.id
        assert (await store.find_workspace(ws.id)).slug == "apollo"
        assert await store.find_workspace("zeus") is None

    async def test_default_workspace_is_oldest(self, store_group: StoreGroup, seed):
        first = await seed.workspace("first")
        await seed.workspace("second")
        assert (await store_group.agent_store.get_default_workspace()).id == first.id

    async def test_preferred_agent_is_master_first(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        await seed.agent(ws.id, agent_id="a-worker")
        master = await seed.agent(ws.id, agent_id="z-master", is_master=True)

        preferred = await store_group.agent_store.get_preferred_agent(ws.id)
        assert preferred.id == master.id

    async def test_preferred_agent_falls_back_to_id_order(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        await seed.agent(ws.id, agent_id="b-agent")
        await seed.agent(ws.id, agent_id="a-agent")

        preferred = await store_group.agent_store.get_preferred_agent(ws.id)
        assert preferred.id == "a-agent"

    async def test_workspace_agent_scoped(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        other = await seed.workspace("other")
        agent = await seed.agent(other.id)

        store = store_group.agent_store
        assert await store.get_workspace_agent(agent.id, ws.id) is None
        assert (await store.get_workspace_agent(agent.id, other.id)).id == agent.id

    async def test_other_online_masters_excludes_self_and_offline(
        self, store_group: StoreGroup, seed
    ):
        ws = await seed.workspace()
        me = await seed.agent(ws.id, agent_id="m-1", is_master=True)
        await seed.agent(ws.id, agent_id="m-2", is_master=True, status=AgentStatus.WORKING)
        await seed.agent(ws.id, agent_id="m-3", is_master=True, status=AgentStatus.OFFLINE)
        await seed.agent(ws.id, agent_id="w-1")

        others = await store_group.agent_store.list_other_online_masters(me.id, ws.id)
        assert [a.id for a in others] == ["m-2"]

    async def test_update_agent_status(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        agent = await seed.agent(ws.id)

        await store_group.agent_store.update_agent_status(agent.id, AgentStatus.WORKING.value)
        assert (await store_group.agent_store.get_agent(agent.id)).status == AgentStatus.WORKING


class TestSessionStore:
    async def test_get_active_session(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        agent = await seed.agent(ws.id)
        store = store_group.session_store

        assert await store.get_active_session(agent.id) is None
        await store.create_session(_session("s-1", agent.id))
        await store.create_session(_session("s-0", agent.id, status="ended"))

        active = await store.get_active_session(agent.id)
        assert active.id == "s-1"
        assert active.session_key == f"dm:{agent.id}"

    async def test_second_active_session_rejected(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        agent = await seed.agent(ws.id)
        store = store_group.session_store
        await store.create_session(_session("s-1", agent.id))

        with pytest.raises(aiosqlite.IntegrityError):
            await store.create_session(_session("s-2", agent.id))

        # ended 会话不受约束
        await store.create_session(_session("s-3", agent.id, status="ended"))
        assert len(await store.list_sessions(agent.id)) == 2
        assert len(await store.list_sessions(agent.id, status="active")) == 1

    async def test_attach_task(self, store_group: StoreGroup, seed):
        ws = await seed.workspace()
        agent = await seed.agent(ws.id)
        store = store_group.session_store
        await store.create_session(_session("s-1", agent.id))

        await store.attach_task("s-1", "task-9", datetime.now(UTC).isoformat())
        assert (await store.get_active_session(agent.id)).task_id == "task-9"
