"""任务活动与交付物 -- agent 完成协议的回调落点"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import ActivityType, DeliverableType


class TaskActivity(BaseModel):
    """任务活动记录"""

    id: str
    task_id: str
    agent_id: str | None = None
    activity_type: ActivityType
    message: str
    metadata: dict[str, Any] | None = None
    created_at: datetime


class TaskDeliverable(BaseModel):
    """任务交付物"""

    id: str
    task_id: str
    deliverable_type: DeliverableType
    title: str
    path: str | None = None
    description: str | None = None
    created_at: datetime


class ActivityCreate(BaseModel):
    """POST /api/tasks/{id}/activities 请求体"""

    activity_type: ActivityType
    message: str = Field(min_length=1, max_length=5000, description="活动描述")
    agent_id: str | None = Field(default=None, description="执行 agent")
    metadata: dict[str, Any] | None = Field(default=None, description="附加信息")


class DeliverableCreate(BaseModel):
    """POST /api/tasks/{id}/deliverables 请求体"""

    deliverable_type: DeliverableType
    title: str = Field(min_length=1, description="交付物名称")
    path: str | None = Field(default=None, description="文件路径或 URL")
    description: str | None = Field(default=None, description="说明")
