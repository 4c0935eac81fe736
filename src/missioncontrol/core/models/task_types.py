"""任务类型 -- 按 task_type 标签区分的配置联合类型

每个变体持有自己的配置 schema；校验器与派发消息构建器都按标签分派。
数据库中 task_type 与 task_type_config 分两列存储，config JSON 不含标签字段。
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError

DEFAULT_TASK_TYPE = "openclaw-native"


class OpenClawNativeConfig(BaseModel):
    """标准任务，直接派发给被分配的 agent"""

    task_type: Literal["openclaw-native"] = "openclaw-native"


class TeamMember(BaseModel):
    """Claude Team 成员定义"""

    name: str = Field(description="成员名称")
    focus: str = Field(default="", description="关注方向")
    role: str = Field(default="", description="角色")


class ClaudeTeamConfig(BaseModel):
    """启动一个 Claude Code Agent Team 并行执行"""

    task_type: Literal["claude-team"] = "claude-team"
    team_size: int = Field(ge=1, le=10, description="Number of agents in the team")
    team_members: list[TeamMember] = Field(
        default_factory=list, description="Team member definitions"
    )
    model: str | None = Field(default=None, description="Optional model override")


class Hypothesis(BaseModel):
    """并行调查的一个方向"""

    label: str = Field(min_length=1, description="方向标签")
    focus_description: str = Field(default="", description="关注点描述")


class MultiHypothesisConfig(BaseModel):
    """派发 N 个并行调查者，每个探索不同方向"""

    task_type: Literal["multi-hypothesis"] = "multi-hypothesis"
    hypotheses: list[Hypothesis] = Field(
        min_length=1, max_length=10, description="Investigation angles (1-10)"
    )
    coordinator_agent_id: str | None = Field(
        default=None, description="Optional coordinator agent"
    )


class PlaceholderTaskConfig(BaseModel):
    """已登记但尚未实现派发的任务类型，config 原样保存"""

    model_config = ConfigDict(extra="allow")

    task_type: Literal["e2e-validation", "prd-flow", "mcp-task"]


TaskTypeConfig = Annotated[
    OpenClawNativeConfig | ClaudeTeamConfig | MultiHypothesisConfig | PlaceholderTaskConfig,
    Field(discriminator="task_type"),
]

_config_adapter: TypeAdapter[TaskTypeConfig] = TypeAdapter(TaskTypeConfig)


class TaskTypeMetadata(BaseModel):
    """任务类型目录项"""

    type: str
    label: str
    description: str
    badge: str
    badge_color: str
    is_implemented: bool
    default_config: dict[str, Any] | None = None
    config_model: type[BaseModel] | None = None

    def to_dict(self, include_config_schema: bool = True) -> dict[str, Any]:
        """渲染为 /api/task-types 的条目（沿用看板前端的 camelCase 键）"""
        data: dict[str, Any] = {
            "type": self.type,
            "label": self.label,
            "description": self.description,
            "badge": self.badge,
            "badgeColor": self.badge_color,
            "isImplemented": self.is_implemented,
        }
        if self.default_config is not None:
            data["defaultConfig"] = self.default_config
        if include_config_schema:
            data["configSchema"] = config_json_schema(self.config_model)
        return data


def config_json_schema(model: type[BaseModel] | None) -> dict[str, Any] | None:
    """从 pydantic 模型生成 config 的 JSON schema（不含 task_type 标签）"""
    if model is None:
        return None
    schema = model.model_json_schema()
    schema.get("properties", {}).pop("task_type", None)
    if "required" in schema:
        schema["required"] = [r for r in schema["required"] if r != "task_type"]
    return schema


TASK_TYPE_REGISTRY: list[TaskTypeMetadata] = [
    TaskTypeMetadata(
        type="openclaw-native",
        label="OpenClaw Native",
        description="Standard task dispatched directly to the assigned OpenClaw agent.",
        badge="OC",
        badge_color="bg-blue-500/20 text-blue-400",
        is_implemented=True,
    ),
    TaskTypeMetadata(
        type="claude-team",
        label="Claude Team",
        description=(
            "Spawn a Claude Code Agent Team for parallel multi-agent execution of complex work."
        ),
        badge="CT",
        badge_color="bg-purple-500/20 text-purple-400",
        is_implemented=True,
        default_config={"team_size": 2, "team_members": []},
        config_model=ClaudeTeamConfig,
    ),
    TaskTypeMetadata(
        type="multi-hypothesis",
        label="Multi-Hypothesis",
        description=(
            "Dispatch N parallel investigators via sessions_spawn, "
            "each exploring a different approach."
        ),
        badge="MH",
        badge_color="bg-cyan-500/20 text-cyan-400",
        is_implemented=True,
        default_config={
            "hypotheses": [
                {"label": "Simplicity", "focus_description": ""},
                {"label": "Angle B", "focus_description": ""},
                {"label": "Angle C", "focus_description": ""},
            ]
        },
        config_model=MultiHypothesisConfig,
    ),
    TaskTypeMetadata(
        type="e2e-validation",
        label="E2E Validation",
        description="Coming soon: automated end-to-end validation flow.",
        badge="E2E",
        badge_color="bg-yellow-500/20 text-yellow-400",
        is_implemented=False,
    ),
    TaskTypeMetadata(
        type="prd-flow",
        label="PRD Flow",
        description="Coming soon: structured product requirements document generation flow.",
        badge="PRD",
        badge_color="bg-green-500/20 text-green-400",
        is_implemented=False,
    ),
    TaskTypeMetadata(
        type="mcp-task",
        label="MCP Task",
        description="Coming soon: task dispatched via Model Context Protocol server.",
        badge="MCP",
        badge_color="bg-pink-500/20 text-pink-400",
        is_implemented=False,
    ),
]


def get_task_type_metadata(task_type: str | None) -> TaskTypeMetadata | None:
    """按类型名查找目录项，未知类型返回 None"""
    for meta in TASK_TYPE_REGISTRY:
        if meta.type == (task_type or DEFAULT_TASK_TYPE):
            return meta
    return None


def parse_task_type_config(
    task_type: str | None,
    config: dict[str, Any] | None,
) -> TaskTypeConfig:
    """按标签校验 task_type_config

    config 为空时使用目录中的默认配置。

    Raises:
        ValidationError: 未知任务类型或 config 不满足该变体的 schema
    """
    task_type = task_type or DEFAULT_TASK_TYPE
    meta = get_task_type_metadata(task_type)
    if meta is None:
        raise ValidationError(f"Unknown task_type '{task_type}'")

    payload = dict(config if config is not None else (meta.default_config or {}))
    payload["task_type"] = task_type
    try:
        return _config_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid task_type_config for '{task_type}'",
            details=[
                {"loc": [str(p) for p in err["loc"]], "msg": err["msg"]}
                for err in e.errors()
            ],
        ) from e


def dump_task_type_config(config: TaskTypeConfig) -> dict[str, Any] | None:
    """序列化为入库的 config dict（去掉标签；无内容时返回 None）"""
    data = config.model_dump(exclude={"task_type"}, exclude_none=True)
    return data or None
