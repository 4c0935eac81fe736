"""任务路由 -- 创建（幂等）/ 查询 / 更新 / 删除

POST   /api/tasks: 创建任务；201 新建，200 幂等命中
GET    /api/tasks: 任务列表，支持 status（逗号分隔）等筛选
GET    /api/tasks/{task_id}: 任务详情，含子任务与事件
PATCH  /api/tasks/{task_id}: 字段更新与状态流转
DELETE /api/tasks/{task_id}: 删除任务
"""

from fastapi import APIRouter, Depends, Query
from missioncontrol.core.models import TaskCreate, TaskUpdate
from starlette.responses import JSONResponse

from ..deps import get_dispatch_service, get_ledger, get_sse_hub, get_store_group
from ..services.task_service import TaskService
from ..services.transition_service import TransitionService

router = APIRouter()


@router.post("/api/tasks")
async def create_task(
    body: TaskCreate,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
    ledger=Depends(get_ledger),
):
    """创建任务

    (source, external_request_id) 已存在时原样返回已有任务（200），不产生任何写入。
    """
    service = TaskService(store_group, sse_hub, ledger)
    task, created = await service.create_task(body)
    return JSONResponse(
        status_code=201 if created else 200,
        content=task.to_api_dict(),
    )


@router.get("/api/tasks")
async def list_tasks(
    status: str | None = Query(default=None, description="按状态筛选，逗号分隔多值"),
    workspace_id: str | None = Query(default=None),
    assigned_agent_id: str | None = Query(default=None),
    initiative_id: str | None = Query(default=None),
    parent_task_id: str | None = Query(default=None, description='"none" 表示仅顶层任务'),
    store_group=Depends(get_store_group),
):
    """查询任务列表，按 created_at 倒序"""
    service = TaskService(store_group)
    tasks = await service.list_tasks(
        status=status,
        workspace_id=workspace_id,
        assigned_agent_id=assigned_agent_id,
        initiative_id=initiative_id,
        parent_task_id=parent_task_id,
    )
    return {"tasks": [t.to_api_dict() for t in tasks]}


@router.get("/api/tasks/{task_id}")
async def get_task_detail(
    task_id: str,
    store_group=Depends(get_store_group),
):
    """查询任务详情，包含子任务与审计事件"""
    service = TaskService(store_group)
    task = await service.get_task(task_id)
    if task is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "TASK_NOT_FOUND",
                    "message": f"Task with id {task_id} does not exist",
                }
            },
        )

    detail = await service.get_task_detail(task_id)
    events = await store_group.event_store.get_events_for_task(task_id)
    detail["events"] = [e.model_dump(mode="json") for e in events]
    return detail


@router.patch("/api/tasks/{task_id}")
async def update_task(
    task_id: str,
    body: TaskUpdate,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
    ledger=Depends(get_ledger),
    dispatch_service=Depends(get_dispatch_service),
):
    """更新任务；状态与分配变化可能触发自动派发与 ledger 回写"""
    service = TransitionService(
        store_group,
        sse_hub=sse_hub,
        ledger=ledger,
        dispatch_service=dispatch_service,
    )
    task = await service.update_task(task_id, body)
    return task.to_api_dict()


@router.delete("/api/tasks/{task_id}")
async def delete_task(
    task_id: str,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
):
    """删除任务（活动与交付物级联删除）"""
    service = TaskService(store_group, sse_hub)
    await service.delete_task(task_id)
    return {"success": True}
