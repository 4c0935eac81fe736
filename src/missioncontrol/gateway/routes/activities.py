"""完成协议路由 -- agent 完成任务后回调登记交付物与活动

POST/GET /api/tasks/{task_id}/deliverables
POST/GET /api/tasks/{task_id}/activities
"""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends
from missioncontrol.core.models import (
    ActivityCreate,
    DeliverableCreate,
    TaskActivity,
    TaskDeliverable,
)
from starlette.responses import JSONResponse
from ulid import ULID

from ..deps import get_sse_hub, get_store_group
from ..services.task_service import TaskService

log = structlog.get_logger()

router = APIRouter()


@router.post("/api/tasks/{task_id}/deliverables")
async def create_deliverable(
    task_id: str,
    body: DeliverableCreate,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
):
    """登记一个交付物"""
    await TaskService(store_group).require_task(task_id)
    deliverable = TaskDeliverable(
        id=str(ULID()),
        task_id=task_id,
        deliverable_type=body.deliverable_type,
        title=body.title,
        path=body.path,
        description=body.description,
        created_at=datetime.now(UTC),
    )
    await store_group.activity_store.add_deliverable(deliverable)
    await store_group.conn.commit()
    log.info("deliverable_added", task_id=task_id, deliverable_id=deliverable.id)

    payload = deliverable.model_dump(mode="json")
    if sse_hub:
        await sse_hub.broadcast("deliverable_added", payload)
    return JSONResponse(status_code=201, content=payload)


@router.get("/api/tasks/{task_id}/deliverables")
async def list_deliverables(task_id: str, store_group=Depends(get_store_group)):
    await TaskService(store_group).require_task(task_id)
    deliverables = await store_group.activity_store.list_deliverables(task_id)
    return {"deliverables": [d.model_dump(mode="json") for d in deliverables]}


@router.post("/api/tasks/{task_id}/activities")
async def create_activity(
    task_id: str,
    body: ActivityCreate,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
):
    """记录一条任务活动"""
    await TaskService(store_group).require_task(task_id)
    activity = TaskActivity(
        id=str(ULID()),
        task_id=task_id,
        agent_id=body.agent_id,
        activity_type=body.activity_type,
        message=body.message,
        metadata=body.metadata,
        created_at=datetime.now(UTC),
    )
    await store_group.activity_store.add_activity(activity)
    await store_group.conn.commit()
    log.info(
        "activity_logged",
        task_id=task_id,
        activity_type=activity.activity_type.value,
    )

    payload = activity.model_dump(mode="json")
    if sse_hub:
        await sse_hub.broadcast("activity_logged", payload)
    return JSONResponse(status_code=201, content=payload)


@router.get("/api/tasks/{task_id}/activities")
async def list_activities(task_id: str, store_group=Depends(get_store_group)):
    await TaskService(store_group).require_task(task_id)
    activities = await store_group.activity_store.list_activities(task_id)
    return {"activities": [a.model_dump(mode="json") for a in activities]}
