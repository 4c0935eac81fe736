"""端到端任务生命周期 -- 创建 -> 分配自动派发 -> agent 回调 -> review -> master 审批"""

import json

from missioncontrol.core.models import EventType


class TestTaskLifecycle:
    async def test_full_lifecycle(self, client, seed, store_group, fake_gateway, ledger_path):
        ws = await seed.workspace("apollo")
        master = await seed.agent(ws.id, agent_id="lead", name="Lead", is_master=True)
        worker = await seed.agent(ws.id, agent_id="dev", name="Dev")

        # 1. 面板创建任务（带 initiative，ledger 自动补 planned 条目）
        created = await client.post(
            "/api/tasks",
            json={
                "title": "Landing page",
                "workspace_id": ws.id,
                "initiative_id": "INIT-42",
                "source": "panel",
                "external_request_id": "panel-42",
            },
        )
        assert created.status_code == 201
        task_id = created.json()["id"]

        # 2. 分配给 worker：自动派发一次，任务进入 in_progress
        assigned = await client.patch(
            f"/api/tasks/{task_id}",
            json={"assigned_agent_id": worker.id, "status": "assigned"},
        )
        assert assigned.json()["status"] == "in_progress"
        assert len(fake_gateway.calls) == 1
        message = fake_gateway.calls[0][1]["message"]
        assert f"**Task ID:** {task_id}" in message
        assert "- Initiative: Landing page" in message
        assert fake_gateway.calls[0][1]["idempotencyKey"] == "dispatch-panel-42"

        # 3. agent 按完成协议回调
        await client.post(
            f"/api/tasks/{task_id}/deliverables",
            json={"deliverable_type": "file", "title": "index.html", "path": "/tmp/index.html"},
        )
        await client.post(
            f"/api/tasks/{task_id}/activities",
            json={"activity_type": "completed", "message": "Done", "agent_id": worker.id},
        )
        review = await client.patch(
            f"/api/tasks/{task_id}",
            json={"status": "review", "updated_by_agent_id": worker.id},
        )
        assert review.json()["status"] == "review"

        # 4. worker 不能自行审批；master 可以
        forbidden = await client.patch(
            f"/api/tasks/{task_id}",
            json={"status": "done", "updated_by_agent_id": worker.id},
        )
        assert forbidden.status_code == 403
        approved = await client.patch(
            f"/api/tasks/{task_id}",
            json={"status": "done", "updated_by_agent_id": master.id},
        )
        assert approved.json()["status"] == "done"

        # 审计事件完整
        events = await store_group.event_store.get_events_for_task(task_id)
        assert [e.type for e in events] == [
            EventType.TASK_CREATED,
            EventType.TASK_STATUS_CHANGED,  # initiative planned
            EventType.TASK_STATUS_CHANGED,  # inbox -> assigned
            EventType.TASK_ASSIGNED,
            EventType.TASK_DISPATCHED,
            EventType.TASK_STATUS_CHANGED,  # in_progress -> review
            EventType.TASK_COMPLETED,
        ]

        # ledger 记录 planned -> in-progress -> completed (review) -> completed (done)
        entry = json.loads(ledger_path.read_text(encoding="utf-8"))["initiatives"][0]
        assert entry["id"] == "INIT-42"
        assert entry["status"] == "completed"
        assert [h["status"] for h in entry["history"]] == [
            "planned",
            "in-progress",
            "in-progress",
            "completed",
            "completed",
        ]
