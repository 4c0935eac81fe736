"""任务派发路由

POST /api/tasks/{task_id}/dispatch: 将任务派发给其被分配的 agent。
200 成功 / 400 未分配 agent / 404 任务或 agent 不存在 / 409 编排者冲突 /
500 调用失败 / 503 gateway 不可用。失败时任务不被修改。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import get_dispatch_service

router = APIRouter()


class DispatchRequest(BaseModel):
    """派发请求体（全部可选）"""

    override_message: str | None = Field(default=None, description="直接发送的消息")
    external_request_id: str | None = Field(default=None, description="派发幂等键来源")
    source: str | None = Field(default=None, description="请求来源")


@router.post("/api/tasks/{task_id}/dispatch")
async def dispatch_task(
    task_id: str,
    body: DispatchRequest | None = None,
    dispatch_service=Depends(get_dispatch_service),
):
    """派发任务"""
    body = body or DispatchRequest()
    return await dispatch_service.dispatch(
        task_id,
        override_message=body.override_message,
        external_request_id=body.external_request_id,
    )
