"""Initiative 解析链与状态映射 -- 纯函数，无 I/O

解析优先级（先命中者胜）：
1. 任务上显式的 initiative_id
2. 任务 id 形如 initiative-init-<n>（仅在没有显式字段时尝试）
3. 任务标题以 "INIT-<n>:" 开头
"""

import re

from ..models.enums import LedgerStatus

_TASK_ID_PATTERN = re.compile(r"^initiative-(init-\d+)$", re.IGNORECASE)
_TITLE_PATTERN = re.compile(r"^(INIT-\d+):", re.IGNORECASE)

# 看板状态 -> ledger 状态
# review 也映射为 completed（待人工审批的工作对外显示为已完成），保持现状，待产品确认
_STATUS_MAP: dict[str, LedgerStatus] = {
    "planning": LedgerStatus.PLANNED,
    "done": LedgerStatus.COMPLETED,
    "completed": LedgerStatus.COMPLETED,
    "review": LedgerStatus.COMPLETED,
    "cancelled": LedgerStatus.CANCELED,
    "blocked": LedgerStatus.IN_PROGRESS,
}


def map_kanban_status(kanban_status: str) -> LedgerStatus:
    """看板状态映射为 ledger 状态，未知状态一律视为 in-progress"""
    return _STATUS_MAP.get(kanban_status, LedgerStatus.IN_PROGRESS)


def from_explicit_field(initiative_id: str | None) -> str | None:
    return initiative_id.upper() if initiative_id else None


def from_task_id(task_id: str) -> str | None:
    match = _TASK_ID_PATTERN.match(task_id)
    return match.group(1).upper() if match else None


def from_title(title: str) -> str | None:
    match = _TITLE_PATTERN.match(title)
    return match.group(1).upper() if match else None


def candidate_initiative_ids(
    task_id: str,
    title: str,
    initiative_id: str | None = None,
) -> list[str]:
    """按优先级返回去重后的候选 initiative id

    ledger 中不存在的候选由调用方跳过，继续尝试下一个。
    """
    primary = from_explicit_field(initiative_id) or from_task_id(task_id)
    candidates: list[str] = []
    for candidate in (primary, from_title(title)):
        if candidate and candidate not in candidates:
            candidates.append(candidate)
    return candidates


def resolve_initiative_id(
    task_id: str,
    title: str,
    initiative_id: str | None = None,
) -> str | None:
    """返回优先级最高的 initiative id；无法解析时返回 None"""
    candidates = candidate_initiative_ids(task_id, title, initiative_id)
    return candidates[0] if candidates else None
