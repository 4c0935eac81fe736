"""planning 路由

POST /api/tasks/{task_id}/planning/messages: 追加一条问答记录。
POST /api/tasks/{task_id}/planning/approve: 锁定 spec，任务移入 inbox。
"""

from fastapi import APIRouter, Depends
from missioncontrol.core.models import PlanningMessage

from ..deps import get_ledger, get_sse_hub, get_store_group
from ..services.planning_service import PlanningService

router = APIRouter()


@router.post("/api/tasks/{task_id}/planning/messages", status_code=201)
async def record_planning_message(
    task_id: str,
    body: PlanningMessage,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
):
    """记录 planning 问答"""
    service = PlanningService(store_group, sse_hub=sse_hub)
    messages = await service.record_message(task_id, body)
    return {"messages": messages}


@router.post("/api/tasks/{task_id}/planning/approve")
async def approve_planning(
    task_id: str,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
    ledger=Depends(get_ledger),
):
    """锁定 planning spec"""
    service = PlanningService(store_group, sse_hub=sse_hub, ledger=ledger)
    spec_markdown = await service.lock_spec(task_id)
    return {"success": True, "specMarkdown": spec_markdown}
