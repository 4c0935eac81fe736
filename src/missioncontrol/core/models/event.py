"""Event Domain Model

事件表 append-only，不允许更新或删除。
每次状态流转与派发尝试都写入一条审计事件。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventType


class Event(BaseModel):
    """审计事件"""

    id: str = Field(description="唯一标识，ULID 格式，时间有序")
    type: EventType = Field(description="事件类型")
    agent_id: str | None = Field(default=None, description="相关 agent")
    task_id: str | None = Field(default=None, description="相关任务")
    message: str = Field(description="人类可读描述")
    metadata: dict[str, Any] = Field(default_factory=dict, description="结构化元数据")
    created_at: datetime = Field(description="事件时间戳")
