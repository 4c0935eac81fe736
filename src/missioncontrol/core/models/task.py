"""Task / Workspace / Agent Domain Model

tasks 表是唯一事实来源；initiative_id 仅逻辑引用 ledger 条目，不做外键约束。
(source, external_request_id) 在 external_request_id 非空时唯一 -- 幂等契约。
"""

import json
import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .enums import AgentStatus, TaskPriority, TaskStatus
from .task_types import DEFAULT_TASK_TYPE

INITIATIVE_ID_PATTERN = re.compile(r"^INIT-\d+$", re.IGNORECASE)


class Workspace(BaseModel):
    """Workspace -- 人类可读 slug 标识"""

    id: str = Field(description="唯一标识")
    name: str = Field(description="显示名称")
    slug: str = Field(description="人类可读 slug")
    created_at: datetime = Field(description="创建时间")


class Agent(BaseModel):
    """Agent 数据模型"""

    id: str = Field(description="唯一标识")
    name: str = Field(description="显示名称")
    role: str = Field(default="", description="角色")
    status: AgentStatus = Field(default=AgentStatus.STANDBY, description="在线状态")
    is_master: bool = Field(default=False, description="是否为 master（编排者）agent")
    workspace_id: str = Field(description="所属 workspace")
    created_at: datetime = Field(description="创建时间")


class Task(BaseModel):
    """Task 数据模型"""

    id: str = Field(description="唯一标识")
    title: str = Field(description="任务标题")
    description: str | None = Field(default=None, description="任务描述")
    status: TaskStatus = Field(default=TaskStatus.INBOX, description="看板状态")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL, description="优先级")
    assigned_agent_id: str | None = Field(default=None, description="被分配的 agent")
    created_by_agent_id: str | None = Field(default=None, description="创建者 agent")
    workspace_id: str = Field(description="所属 workspace")
    initiative_id: str | None = Field(default=None, description="关联的 initiative（逻辑引用）")
    external_request_id: str | None = Field(default=None, description="外部请求 ID（幂等键）")
    source: str = Field(default="mission-control", description="请求来源（幂等键作用域）")
    task_type: str = Field(default=DEFAULT_TASK_TYPE, description="任务类型标签")
    task_type_config: dict[str, Any] | None = Field(default=None, description="类型专属配置")
    parent_task_id: str | None = Field(default=None, description="父任务（最多一层嵌套）")
    evaluation_status: str | None = Field(default=None, description="评估状态")
    due_date: str | None = Field(default=None, description="截止日期")
    planning_messages: list[dict[str, Any]] | None = Field(
        default=None, description="planning 阶段问答记录"
    )
    planning_spec: str | None = Field(default=None, description="planning 阶段草拟的 spec")
    planning_complete: bool = Field(default=False, description="spec 是否已锁定")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    def to_api_dict(self) -> dict[str, Any]:
        """API 响应序列化"""
        return self.model_dump(mode="json")


class Session(BaseModel):
    """派发会话 -- 与单个 agent 的传输通道

    每个 agent 最多一个 active 会话，后续派发复用。
    """

    id: str = Field(description="唯一标识")
    agent_id: str = Field(description="对端 agent")
    session_key: str = Field(description="传输层会话键，如 dm:{agent_id}")
    session_type: str = Field(default="persistent", description="会话类型")
    status: str = Field(default="active", description="active / ended")
    task_id: str | None = Field(default=None, description="最近一次派发的任务")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


# ─── 请求体校验模型 ──────────────────────────────────────────────────


class PlanningMessage(BaseModel):
    """planning 问答记录中的一条消息"""

    role: Literal["system", "user", "assistant"]
    content: str = Field(max_length=20000)


def _blank_to_none(value: Any) -> Any:
    if value == "":
        return None
    return value


def _normalize_initiative_id(value: str | None) -> str | None:
    if value is None:
        return None
    if not INITIATIVE_ID_PATTERN.match(value):
        raise ValueError("initiative_id must be INIT-XXX format")
    return value.upper()


class TaskCreate(BaseModel):
    """POST /api/tasks 请求体"""

    title: str = Field(min_length=1, max_length=500, description="任务标题")
    description: str | None = Field(default=None, max_length=10000, description="任务描述")
    status: TaskStatus | None = Field(default=None, description="初始状态，默认 inbox")
    priority: TaskPriority | None = Field(default=None, description="优先级，默认 normal")
    assigned_agent_id: str | None = Field(default=None, description="被分配的 agent")
    created_by_agent_id: str | None = Field(default=None, description="创建者 agent")
    workspace_id: str | None = Field(default=None, description="所属 workspace")
    initiative_id: str | None = Field(default=None, description="INIT-XXX 格式")
    external_request_id: str | None = Field(
        default=None, min_length=1, max_length=255, description="外部请求 ID"
    )
    source: str | None = Field(default=None, min_length=1, max_length=64, description="请求来源")
    due_date: str | None = Field(default=None, description="截止日期")
    task_type: str | None = Field(default=None, description="任务类型标签")
    task_type_config: dict[str, Any] | None = Field(default=None, description="类型专属配置")
    parent_task_id: str | None = Field(default=None, description="父任务 ID")

    @field_validator(
        "assigned_agent_id", "created_by_agent_id", "parent_task_id", mode="before"
    )
    @classmethod
    def blank_refs_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("initiative_id")
    @classmethod
    def check_initiative_id(cls, v: str | None) -> str | None:
        return _normalize_initiative_id(v)


class TaskUpdate(BaseModel):
    """PATCH /api/tasks/{id} 请求体

    assigned_agent_id / parent_task_id 显式传 "" 或 null 表示清空，
    因此通过 model_fields_set 区分“未传”与“清空”。
    """

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_agent_id: str | None = None
    due_date: str | None = None
    initiative_id: str | None = None
    external_request_id: str | None = Field(default=None, min_length=1, max_length=255)
    source: str | None = Field(default=None, min_length=1, max_length=64)
    task_type: str | None = None
    task_type_config: dict[str, Any] | None = None
    parent_task_id: str | None = None
    planning_messages: list[PlanningMessage] | None = Field(
        default=None, description="整体替换 planning 问答记录"
    )
    planning_spec: str | None = Field(default=None, max_length=50000, description="草拟的 spec")
    updated_by_agent_id: str | None = Field(
        default=None, description="执行更新的 agent（审批门控依据）"
    )

    @field_validator(
        "assigned_agent_id", "parent_task_id", "updated_by_agent_id", mode="before"
    )
    @classmethod
    def blank_refs_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("initiative_id")
    @classmethod
    def check_initiative_id(cls, v: str | None) -> str | None:
        return _normalize_initiative_id(v)

    def changes(self) -> dict[str, Any]:
        """返回实际要写入的字段（排除 updated_by_agent_id）"""
        changes = {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "updated_by_agent_id"
        }
        if self.planning_messages is not None and "planning_messages" in changes:
            changes["planning_messages"] = [m.model_dump() for m in self.planning_messages]
        return changes


def parse_planning_messages(raw: str | None) -> list[dict[str, Any]] | None:
    """解析 planning_messages 列（JSON 数组）；格式损坏时返回 None"""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, list) else None


class ActivationRequest(BaseModel):
    """POST /api/workspaces/activate 请求体"""

    workspace: str = Field(default="", max_length=200, description="workspace slug 或 id")
    agent_id: str | None = Field(default=None, description="指定执行 agent")
    initiative_id: str | None = Field(default=None, description="INIT-XXX 格式")
    external_request_id: str | None = Field(
        default=None, min_length=1, max_length=255, description="外部请求 ID"
    )
    source: str | None = Field(default=None, min_length=1, max_length=64, description="请求来源")

    @field_validator("agent_id", "initiative_id", "external_request_id", "source", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
        return _blank_to_none(v)

    @field_validator("initiative_id")
    @classmethod
    def check_initiative_id(cls, v: str | None) -> str | None:
        return _normalize_initiative_id(v)
