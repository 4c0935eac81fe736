"""可观测性与运维接口测试 -- request_id、trace_id 提取、健康检查、SSE 广播、lifespan"""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient
from missioncontrol.gateway.middleware.trace_mw import extract_task_id
from missioncontrol.gateway.services.sse_hub import SSEHub


class TestRequestId:
    async def test_generated_when_absent(self, client):
        resp = await client.get("/health")
        assert resp.headers["X-Request-ID"]

    async def test_echoed_when_present(self, client):
        resp = await client.get("/health", headers={"X-Request-ID": "req-abc"})
        assert resp.headers["X-Request-ID"] == "req-abc"


class TestTraceId:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/api/tasks/t-1", "t-1"),
            ("/api/tasks/t-1/dispatch", "t-1"),
            ("/api/tasks", None),
            ("/api/workspaces/activate", None),
        ],
    )
    def test_extract_task_id(self, path, expected):
        assert extract_task_id(path) == expected


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json() == {"status": "ok"}

    async def test_ready(self, client, ledger_path, fake_gateway):
        resp = await client.get("/ready")

        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ready",
            "checks": {"sqlite": "ok", "ledger_dir": "absent", "gateway": "disconnected"},
        }

        ledger_path.parent.mkdir(parents=True)
        await fake_gateway.connect()
        checks = (await client.get("/ready")).json()["checks"]
        assert checks["ledger_dir"] == "ok"
        assert checks["gateway"] == "connected"

    async def test_not_ready_when_db_closed(self, client, store_group):
        await store_group.close()
        resp = await client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["status"] == "not_ready"


class TestSSEHub:
    async def test_broadcast_to_all_subscribers(self):
        hub = SSEHub()
        q1 = await hub.subscribe()
        q2 = await hub.subscribe()

        await hub.broadcast("task_updated", {"id": "t1"})

        expected = {"type": "task_updated", "payload": {"id": "t1"}}
        assert q1.get_nowait() == expected
        assert q2.get_nowait() == expected
        await hub.unsubscribe(q1)
        assert hub.subscriber_count == 1

    async def test_slow_subscriber_dropped(self):
        hub = SSEHub(queue_maxsize=1)
        queue = await hub.subscribe()

        await hub.broadcast("a", {})
        await hub.broadcast("b", {})

        assert hub.subscriber_count == 0
        assert queue.qsize() == 1


class TestLifespan:
    async def test_lifespan_initializes_state(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MC_DB_PATH", str(tmp_path / "db" / "mc.db"))
        monkeypatch.setenv("MC_LEDGER_PATH", str(tmp_path / "status" / "INITIATIVES.json"))
        monkeypatch.setenv("MC_GATEWAY_MODE", "echo")
        monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
        monkeypatch.delenv("MC_API_TOKEN", raising=False)
        monkeypatch.delenv("MC_DEMO_MODE", raising=False)

        from missioncontrol.gateway.main import create_app
        from missioncontrol.transport import EchoGatewayClient

        app = create_app()
        async with app.router.lifespan_context(app):
            assert app.state.store_group.is_open
            assert isinstance(app.state.gateway_client, EchoGatewayClient)
            assert app.state.ledger.path == tmp_path / "status" / "INITIATIVES.json"

            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                ws = await ac.get("/ready")
                assert ws.json()["checks"]["sqlite"] == "ok"

        assert not app.state.store_group.is_open
        assert (tmp_path / "db" / "mc.db").exists()


class TestEventStream:
    async def test_connected_then_updates_then_heartbeat(self, sse_hub):
        from missioncontrol.gateway.routes.stream import board_event_generator

        stream = board_event_generator(sse_hub, heartbeat_interval=0.05)

        first = await anext(stream)
        assert first["event"] == "connected"
        assert sse_hub.subscriber_count == 1

        await sse_hub.broadcast("task_deleted", {"id": "t9"})
        second = await asyncio.wait_for(anext(stream), timeout=1)
        assert second["event"] == "task_deleted"
        assert '"t9"' in second["data"]

        third = await asyncio.wait_for(anext(stream), timeout=1)
        assert third == {"comment": "heartbeat"}

        await stream.aclose()
        assert sse_hub.subscriber_count == 0
