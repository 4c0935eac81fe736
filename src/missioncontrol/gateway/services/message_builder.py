"""派发消息构建 -- 按 task_type 标签分派到各变体的构建函数

所有消息都包含优先级、截止日期、任务 ID、输出目录，以及三步完成协议
（登记交付物 -> 记录完成活动 -> 移入 review）。
"""

import re

from missioncontrol.core.config import get_mission_control_url, get_projects_path
from missioncontrol.core.exceptions import ValidationError
from missioncontrol.core.models import (
    ClaudeTeamConfig,
    MultiHypothesisConfig,
    OpenClawNativeConfig,
    Task,
    get_task_type_metadata,
    parse_task_type_config,
)
from pydantic import BaseModel

PRIORITY_EMOJI = {
    "low": "🔵",
    "normal": "⚪",
    "high": "🟡",
    "urgent": "🔴",
}

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


class InitiativeContext(BaseModel):
    """插入派发消息的 initiative 摘要"""

    title: str
    status: str
    task_count: int


def slugify_title(title: str) -> str:
    """标题转输出目录名：小写，非字母数字折叠为 '-'，去掉首尾 '-'"""
    return _SLUG_PATTERN.sub("-", title.lower()).strip("-")


def output_directory(title: str) -> str:
    return f"{get_projects_path()}/{slugify_title(title)}"


def build_callback_instructions(task_id: str, mission_control_url: str) -> str:
    """三步完成协议；最后一步只能移入 review，done 需另行审批"""
    return f"""**MANDATORY POST-COMPLETION STEPS - Do ALL 3 in order using fetch_url or http tool:**

Step 1: Register EACH deliverable file (repeat for every file you created):
```
POST {mission_control_url}/api/tasks/{task_id}/deliverables
Content-Type: application/json

{{"deliverable_type": "file", "title": "<filename>", "path": "<full_path_to_file>"}}
```

Step 2: Log completion activity:
```
POST {mission_control_url}/api/tasks/{task_id}/activities
Content-Type: application/json

{{"activity_type": "completed", "message": "<summary of what was done>"}}
```

Step 3: Move task to review (human will approve):
```
PATCH {mission_control_url}/api/tasks/{task_id}
Content-Type: application/json

{{"status": "review"}}
```

Do NOT skip any step. Do NOT set status to "done", only "review". The human reviews and approves.

When all 3 API calls succeed, reply with:
`TASK_COMPLETE: [brief summary]`"""


def _task_block(task: Task) -> str:
    """标题 / 描述 / 优先级 / 截止日期 / 任务 ID / 输出目录 + 完成协议"""
    lines = [f"**Title:** {task.title}"]
    if task.description:
        lines.append(f"**Description:** {task.description}")
    lines.append(f"**Priority:** {task.priority.value.upper()}")
    if task.due_date:
        lines.append(f"**Due:** {task.due_date}")
    lines.append(f"**Task ID:** {task.id}")
    return (
        "\n".join(lines)
        + f"\n\n**OUTPUT DIRECTORY:** {output_directory(task.title)}\n"
        + "Create this directory and save all deliverables there.\n\n"
        + build_callback_instructions(task.id, get_mission_control_url())
    )


def _header(task: Task, label: str) -> str:
    emoji = PRIORITY_EMOJI.get(task.priority.value, PRIORITY_EMOJI["normal"])
    return f"{emoji} **{label}**"


def _build_openclaw_native(task: Task) -> str:
    return f"{_header(task, 'NEW TASK ASSIGNED')}\n\n{_task_block(task)}"


def _build_claude_team(task: Task, config: ClaudeTeamConfig) -> str:
    if config.team_members:
        team_block = "\n".join(
            f"  Agent {i}: {m.name} ({m.role}) - {m.focus}"
            for i, m in enumerate(config.team_members, start=1)
        )
    else:
        team_block = f"  {config.team_size} agents (roles to be determined by team lead)"
    model_line = f"\n**Model Override:** {config.model}" if config.model else ""

    return (
        f"{_header(task, 'TEAM TASK ASSIGNED')}\n\n"
        "**EXECUTION STRATEGY: Claude Code Agent Teams**\n"
        f"Set env: CLAUDE_CODE_EXPERIMENTAL_AGENT_TEAMS=1{model_line}\n\n"
        f"**Team Configuration:**\n{team_block}\n\n"
        f"{_task_block(task)}"
    )


def _build_multi_hypothesis(task: Task, config: MultiHypothesisConfig) -> str:
    hypotheses_block = "\n".join(
        f"  Hypothesis {i} [{h.label}]: {h.focus_description or '(no focus specified)'}"
        for i, h in enumerate(config.hypotheses, start=1)
    )
    coordinator_line = (
        f"\n**Coordinator Agent:** {config.coordinator_agent_id}"
        if config.coordinator_agent_id
        else ""
    )

    return (
        f"{_header(task, 'PARALLEL INVESTIGATION TASK ASSIGNED')}\n\n"
        "**EXECUTION STRATEGY: Parallel Hypotheses**\n"
        f"Use sessions_spawn to create {len(config.hypotheses)} parallel investigators, "
        f"each exploring a different approach.{coordinator_line}\n\n"
        f"**Investigation Angles:**\n{hypotheses_block}\n\n"
        f"{_task_block(task)}"
    )


def build_initiative_block(context: InitiativeContext | None) -> str:
    if context is None:
        return ""
    return (
        "\n**INITIATIVE CONTEXT:**\n"
        f"- Initiative: {context.title}\n"
        f"- Status: {context.status}\n"
        f"- Tasks in initiative: {context.task_count}\n"
    )


def build_dispatch_message(task: Task, context: InitiativeContext | None = None) -> str:
    """构建派发消息

    Args:
        task: 待派发任务（task_type_config 已入库的形态）
        context: 任务关联 initiative 时的摘要，插入到首段之后

    Raises:
        ValidationError: config 不合法，或该任务类型尚未实现派发
    """
    config = parse_task_type_config(task.task_type, task.task_type_config)
    match config:
        case OpenClawNativeConfig():
            message = _build_openclaw_native(task)
        case ClaudeTeamConfig():
            message = _build_claude_team(task, config)
        case MultiHypothesisConfig():
            message = _build_multi_hypothesis(task, config)
        case _:
            meta = get_task_type_metadata(task.task_type)
            suffix = f" ({meta.label})" if meta else ""
            raise ValidationError(
                f"Task type '{task.task_type}' is not yet implemented for dispatch.{suffix}"
            )

    initiative_block = build_initiative_block(context)
    if initiative_block:
        split_at = message.find("\n\n")
        if split_at > 0:
            message = message[:split_at] + "\n" + initiative_block + message[split_at:]
        else:
            message = initiative_block + "\n" + message
    return message
