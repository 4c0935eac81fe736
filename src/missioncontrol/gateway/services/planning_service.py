"""PlanningService -- planning 子流程：记录问答与“锁定 spec”

问答记录逐条原子追加；锁定后任务强制进入 inbox，状态变更经由 TransitionService.apply_changes，
与其他状态变化一样产生事件并触发 ledger 回写。
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from missioncontrol.core.exceptions import ValidationError
from missioncontrol.core.ledger import LedgerSync
from missioncontrol.core.models import (
    ActivityType,
    PlanningMessage,
    Task,
    TaskActivity,
    TaskStatus,
)
from missioncontrol.core.store import StoreGroup
from ulid import ULID

from .task_service import TaskService
from .transition_service import TransitionService

log = structlog.get_logger()

LOCKED_ACTIVITY_MESSAGE = "Planning complete - spec locked and moved to inbox"


def render_spec_markdown(
    task: Task,
    messages: list[dict[str, Any]],
    locked_at: datetime,
) -> str:
    """将 planning 问答记录渲染为 spec 文档

    assistant 消息渲染为 **Q:**，user 消息渲染为引用块，system 消息忽略。
    """
    lines = [f"# {task.title}", "", "**Status:** SPEC LOCKED", ""]
    if task.description:
        lines += ["## Original Request", task.description, ""]

    lines += ["## Planning Discussion", ""]
    for msg in messages:
        role = msg.get("role")
        content = msg.get("content", "")
        if role == "assistant":
            lines.append(f"**Q:** {content}")
        elif role == "user":
            lines += [f"> {content}", ""]

    lines += ["---", f"*Spec locked at {locked_at.isoformat().replace('+00:00', 'Z')}*"]
    return "\n".join(lines)


class PlanningService:
    """planning 流程服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        sse_hub=None,
        ledger: LedgerSync | None = None,
    ) -> None:
        self._stores = store_group
        self._sse_hub = sse_hub
        self._transition = TransitionService(store_group, sse_hub=sse_hub, ledger=ledger)

    async def record_message(self, task_id: str, message: PlanningMessage) -> list[dict[str, Any]]:
        """追加一条 planning 问答消息

        Returns:
            追加后的完整问答记录

        Raises:
            NotFoundError: 任务不存在
            ValidationError: spec 已锁定
        """
        task_service = TaskService(self._stores)
        task = await task_service.require_task(task_id)
        if task.planning_complete:
            raise ValidationError("Spec already locked")

        appended = await self._stores.task_store.append_planning_message(
            task_id, message.model_dump(), datetime.now(UTC).isoformat()
        )
        await self._stores.conn.commit()
        if not appended:
            raise ValidationError("Spec already locked")

        log.info("planning_message_recorded", task_id=task_id, role=message.role)
        updated = await task_service.require_task(task_id)
        if self._sse_hub:
            await self._sse_hub.broadcast("task_updated", updated.to_api_dict())
        return updated.planning_messages or []

    async def lock_spec(self, task_id: str) -> str:
        """锁定 spec 并将任务移入 inbox

        已有 planning_spec 时直接使用，否则由 planning_messages 生成。

        Returns:
            锁定后的 spec markdown

        Raises:
            NotFoundError: 任务不存在
            ValidationError: 已锁定，或既无 spec 也无问答记录
        """
        task = await TaskService(self._stores).require_task(task_id)
        if task.planning_complete:
            raise ValidationError("Spec already locked")

        now = datetime.now(UTC)
        if task.planning_spec:
            spec_markdown = task.planning_spec
        elif task.planning_messages:
            spec_markdown = render_spec_markdown(task, task.planning_messages, now)
        else:
            raise ValidationError("No planning spec or messages found - nothing to approve")

        # 与状态变更同一事务提交
        await self._stores.task_store.insert_planning_spec(
            str(ULID()), task_id, spec_markdown, now.isoformat()
        )
        await self._stores.activity_store.add_activity(
            TaskActivity(
                id=str(ULID()),
                task_id=task_id,
                activity_type=ActivityType.STATUS_CHANGED,
                message=LOCKED_ACTIVITY_MESSAGE,
                created_at=now,
            )
        )
        await self._transition.apply_changes(
            task,
            {
                "planning_complete": True,
                "planning_spec": spec_markdown,
                "status": TaskStatus.INBOX,
                "description": spec_markdown,
            },
            event_metadata={"planning_complete": True},
            now=now,
        )
        log.info("planning_spec_locked", task_id=task_id, previous_status=task.status.value)
        return spec_markdown
