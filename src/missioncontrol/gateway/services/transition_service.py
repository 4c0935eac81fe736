"""TransitionService -- 任务字段更新与状态流转副作用

看板允许几乎任意的状态流转，不维护合法流转表；以下流转带有强制副作用：
- 分配 agent 变化，或进入 assigned 且已有 agent -> 自动派发（提交后执行，失败仅记日志）
- 进入 done -> task_completed 事件；其他状态变化 -> task_status_changed 事件
- review -> done 由具名 agent 发起时，该 agent 必须是 master
- 状态变化且能解析到 initiative -> ledger 回写（尽力而为）

apply_changes 是字段写入与流转副作用的公共原语，planning 锁定等内部流程也经由它落库。
"""

from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from missioncontrol.core.exceptions import (
    AuthorizationError,
    MissionControlError,
    ValidationError,
)
from missioncontrol.core.ledger import LedgerSync
from missioncontrol.core.models import (
    Agent,
    EventType,
    Task,
    TaskStatus,
    TaskUpdate,
    parse_task_type_config,
)
from missioncontrol.core.models.task_types import dump_task_type_config
from missioncontrol.core.store import StoreGroup

from .dispatch_service import DispatchService
from .task_service import TaskService, build_event, integrity_error_to_domain

log = structlog.get_logger()

_NON_NULLABLE_FIELDS = ("title", "status", "priority", "source")
_PLANNING_FIELDS = {"planning_messages", "planning_spec"}


class TransitionService:
    """状态流转控制器"""

    def __init__(
        self,
        store_group: StoreGroup,
        sse_hub=None,
        ledger: LedgerSync | None = None,
        dispatch_service: DispatchService | None = None,
    ) -> None:
        self._stores = store_group
        self._sse_hub = sse_hub
        self._ledger = ledger
        self._dispatch = dispatch_service

    async def update_task(self, task_id: str, data: TaskUpdate) -> Task:
        """应用 PATCH 更新

        Returns:
            更新后的任务（若触发了自动派发，为派发之后的状态）

        Raises:
            NotFoundError: 任务不存在
            ValidationError: 无可更新字段、引用无效、嵌套超限、task_type config 不合法、
                spec 已锁定后修改 planning 字段
            AuthorizationError: 非 master agent 尝试 review -> done
        """
        task_service = TaskService(self._stores)
        existing = await task_service.require_task(task_id)

        changes = data.changes()
        if not changes:
            raise ValidationError("No updates provided")
        for field in _NON_NULLABLE_FIELDS:
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be null")

        new_status: TaskStatus | None = changes.get("status")
        if (
            new_status == TaskStatus.DONE
            and existing.status == TaskStatus.REVIEW
            and data.updated_by_agent_id
        ):
            approver = await self._stores.agent_store.get_agent(data.updated_by_agent_id)
            if approver is None or not approver.is_master:
                log.warning(
                    "task_approval_forbidden",
                    task_id=task_id,
                    agent_id=data.updated_by_agent_id,
                )
                raise AuthorizationError("Forbidden: only the master agent can approve tasks")

        if existing.planning_complete and changes.keys() & _PLANNING_FIELDS:
            raise ValidationError("Spec already locked")

        if changes.get("parent_task_id"):
            await task_service.check_parent(changes["parent_task_id"], task_id=task_id)

        if "task_type" in changes or "task_type_config" in changes:
            self._apply_task_type(existing, changes)

        new_agent = None
        if changes.get("assigned_agent_id"):
            new_agent = await self._stores.agent_store.get_agent(changes["assigned_agent_id"])
            if new_agent is None:
                raise ValidationError("Assigned agent not found")

        agent_changed = (
            "assigned_agent_id" in changes
            and changes["assigned_agent_id"] != existing.assigned_agent_id
        )
        effective_agent_id = (
            changes["assigned_agent_id"] if "assigned_agent_id" in changes
            else existing.assigned_agent_id
        )
        should_dispatch = (agent_changed and new_agent is not None) or (
            new_status == TaskStatus.ASSIGNED and effective_agent_id is not None
        )

        updated = await self.apply_changes(
            existing,
            changes,
            actor_agent_id=data.updated_by_agent_id,
            assigned_agent=new_agent if agent_changed else None,
        )

        if should_dispatch and self._dispatch is not None:
            try:
                await self._dispatch.dispatch(task_id)
            except MissionControlError as e:
                log.warning(
                    "auto_dispatch_failed",
                    task_id=task_id,
                    error=e.message,
                    error_code=e.code,
                )
            else:
                updated = await TaskService(self._stores).require_task(task_id)

        return updated

    async def apply_changes(
        self,
        existing: Task,
        changes: dict[str, Any],
        *,
        actor_agent_id: str | None = None,
        assigned_agent: Agent | None = None,
        event_metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Task:
        """写入已校验的字段变更并执行流转副作用

        状态变化 -> 事件 + ledger 回写；assigned_agent 非空 -> task_assigned 事件。
        调用方在同一连接上预先写入的行随本次提交一并落库。不触发自动派发。

        Returns:
            更新后的任务
        """
        now = now or datetime.now(UTC)
        task_id = existing.id
        new_status: TaskStatus | None = changes.get("status")
        status_changed = new_status is not None and new_status != existing.status

        try:
            await self._stores.task_store.update_fields(task_id, changes, now.isoformat())
        except aiosqlite.IntegrityError as e:
            raise integrity_error_to_domain(e) from e

        if status_changed:
            event_type = (
                EventType.TASK_COMPLETED
                if new_status == TaskStatus.DONE
                else EventType.TASK_STATUS_CHANGED
            )
            await self._stores.event_store.append_event(
                build_event(
                    event_type,
                    f'Task "{existing.title}" moved to {new_status.value}',
                    task_id=task_id,
                    agent_id=actor_agent_id,
                    metadata={
                        "previous_status": existing.status.value,
                        "next_status": new_status.value,
                        **(event_metadata or {}),
                    },
                    now=now,
                )
            )
        if assigned_agent is not None:
            await self._stores.event_store.append_event(
                build_event(
                    EventType.TASK_ASSIGNED,
                    f'"{existing.title}" assigned to {assigned_agent.name}',
                    task_id=task_id,
                    agent_id=assigned_agent.id,
                    now=now,
                )
            )
        await self._stores.conn.commit()

        log.info(
            "task_updated",
            task_id=task_id,
            fields=sorted(changes),
            status_changed=status_changed,
        )

        if status_changed and self._ledger is not None:
            self._ledger.writeback_status(
                task_id,
                existing.title,
                new_status.value,
                changes.get("initiative_id") or existing.initiative_id,
            )

        updated = await TaskService(self._stores).require_task(task_id)
        if self._sse_hub:
            await self._sse_hub.broadcast("task_updated", updated.to_api_dict())
        return updated

    @staticmethod
    def _apply_task_type(existing: Task, changes: dict[str, Any]) -> None:
        """校验 task_type / task_type_config 变更并就地替换为入库形态

        只改类型不带 config 时，沿用原 config（类型未变）或使用新类型的默认 config。
        """
        task_type = changes.get("task_type") or existing.task_type
        if "task_type_config" in changes:
            raw_config = changes["task_type_config"]
        elif task_type == existing.task_type:
            raw_config = existing.task_type_config
        else:
            raw_config = None

        config = parse_task_type_config(task_type, raw_config)
        changes["task_type"] = config.task_type
        changes["task_type_config"] = dump_task_type_config(config)
