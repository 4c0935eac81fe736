"""TaskService -- 任务创建（幂等守卫）/ 查询 / 删除业务逻辑

任务创建流程：
1. 校验（字段、枚举、task_type config），失败直接 400，不写库
2. 按 (source, external_request_id) 查重，命中则原样返回
3. 插入 tasks；并发下唯一索引拒绝后到者，捕获该冲突后回查并返回胜者
4. 写入 task_created 等审计事件，提交
5. 关联 initiative 时补齐 ledger 中的 planned 条目（尽力而为）
"""

from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from missioncontrol.core.config import DEFAULT_SOURCE, get_ledger_default_lead
from missioncontrol.core.exceptions import ConflictError, NotFoundError, ValidationError
from missioncontrol.core.ledger import LedgerSync
from missioncontrol.core.models import (
    Event,
    EventType,
    Task,
    TaskCreate,
    TaskPriority,
    TaskStatus,
    parse_task_type_config,
)
from missioncontrol.core.models.task_types import dump_task_type_config
from missioncontrol.core.store import IDEMPOTENCY_INDEX_NAME, StoreGroup
from ulid import ULID

log = structlog.get_logger()

DEPTH_LIMIT_MESSAGE = "Subtask depth limit exceeded: only one level of nesting allowed"


def build_event(
    event_type: EventType,
    message: str,
    task_id: str | None = None,
    agent_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Event:
    """构建一条审计事件"""
    return Event(
        id=str(ULID()),
        type=event_type,
        agent_id=agent_id,
        task_id=task_id,
        message=message,
        metadata=metadata or {},
        created_at=now or datetime.now(UTC),
    )


def is_idempotency_conflict(error: Exception) -> bool:
    """判断 IntegrityError 是否来自幂等键唯一索引"""
    if not isinstance(error, aiosqlite.IntegrityError):
        return False
    text = str(error)
    return (
        IDEMPOTENCY_INDEX_NAME in text
        or "tasks.source, tasks.external_request_id" in text
    )


def integrity_error_to_domain(error: aiosqlite.IntegrityError) -> Exception:
    """将非幂等的 IntegrityError 翻译为领域异常"""
    text = str(error)
    if "FOREIGN KEY" in text:
        return ValidationError("Invalid reference: related agent, workspace or task not found")
    if is_idempotency_conflict(error):
        return ConflictError("Duplicate external_request_id for this source")
    return ConflictError(f"Constraint violation: {text}")


class TaskService:
    """任务业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        sse_hub=None,
        ledger: LedgerSync | None = None,
    ) -> None:
        self._stores = store_group
        self._sse_hub = sse_hub
        self._ledger = ledger

    async def create_task(
        self,
        data: TaskCreate,
        event_message: str | None = None,
        event_metadata: dict[str, Any] | None = None,
    ) -> tuple[Task, bool]:
        """创建任务（幂等）

        Args:
            data: 已通过模型校验的请求体
            event_message: 覆盖 task_created 事件的描述
            event_metadata: 合并进 task_created 事件的元数据

        Returns:
            (task, created) -- created=False 表示幂等命中，返回的是已存在的行
        """
        config = parse_task_type_config(data.task_type, data.task_type_config)
        source = data.source or DEFAULT_SOURCE

        if data.external_request_id:
            existing = await self._stores.task_store.get_by_external_request_id(
                source, data.external_request_id
            )
            if existing is not None:
                log.info(
                    "task_idempotent_hit",
                    task_id=existing.id,
                    source=source,
                    external_request_id=data.external_request_id,
                )
                return existing, False

        workspace_id = await self._resolve_workspace_id(data.workspace_id)
        if data.parent_task_id:
            await self.check_parent(data.parent_task_id)

        now = datetime.now(UTC)
        task = Task(
            id=str(ULID()),
            title=data.title,
            description=data.description,
            status=data.status or TaskStatus.INBOX,
            priority=data.priority or TaskPriority.NORMAL,
            assigned_agent_id=data.assigned_agent_id,
            created_by_agent_id=data.created_by_agent_id,
            workspace_id=workspace_id,
            initiative_id=data.initiative_id,
            external_request_id=data.external_request_id,
            source=source,
            task_type=config.task_type,
            task_type_config=dump_task_type_config(config),
            parent_task_id=data.parent_task_id,
            due_date=data.due_date,
            created_at=now,
            updated_at=now,
        )

        try:
            await self._stores.task_store.create_task(task)
        except aiosqlite.IntegrityError as e:
            if is_idempotency_conflict(e):
                # 并发重复请求：唯一索引拒绝了本次插入，回查胜者
                winner = await self._stores.task_store.get_by_external_request_id(
                    source, data.external_request_id
                )
                if winner is not None:
                    log.info(
                        "task_idempotent_race_resolved",
                        task_id=winner.id,
                        source=source,
                        external_request_id=data.external_request_id,
                    )
                    return winner, False
            raise integrity_error_to_domain(e) from e

        events = [await self._created_event(task, event_message, event_metadata)]
        if task.initiative_id:
            events.append(
                build_event(
                    EventType.TASK_STATUS_CHANGED,
                    f"Initiative {task.initiative_id} planned",
                    task_id=task.id,
                    metadata={
                        "initiative_id": task.initiative_id,
                        "source": source,
                        "external_request_id": task.external_request_id,
                        "initiative_status": "planned",
                    },
                    now=now,
                )
            )
        for event in events:
            await self._stores.event_store.append_event(event)
        await self._stores.conn.commit()

        log.info(
            "task_created",
            task_id=task.id,
            source=source,
            external_request_id=task.external_request_id,
            initiative_id=task.initiative_id,
        )

        if task.initiative_id and self._ledger is not None:
            self._ledger.ensure_planned_entry(
                task.initiative_id,
                task.title,
                lead=task.assigned_agent_id or get_ledger_default_lead(),
                external_request_id=task.external_request_id,
            )

        if self._sse_hub:
            await self._sse_hub.broadcast("task_created", task.to_api_dict())

        return task, True

    async def _created_event(
        self,
        task: Task,
        message: str | None = None,
        extra_metadata: dict[str, Any] | None = None,
    ) -> Event:
        if message is None:
            message = await self._default_created_message(task)
        metadata = {
            "source": task.source,
            "external_request_id": task.external_request_id,
            "initiative_id": task.initiative_id,
            "task_type": task.task_type,
            **(extra_metadata or {}),
        }
        return build_event(
            EventType.TASK_CREATED,
            message,
            task_id=task.id,
            agent_id=task.created_by_agent_id,
            metadata=metadata,
            now=task.created_at,
        )

    async def _default_created_message(self, task: Task) -> str:
        message = f"New task: {task.title}"
        if task.created_by_agent_id:
            creator = await self._stores.agent_store.get_agent(task.created_by_agent_id)
            if creator is not None:
                message = f"{creator.name} created task: {task.title}"
        return message

    async def _resolve_workspace_id(self, workspace_id: str | None) -> str:
        if workspace_id:
            workspace = await self._stores.agent_store.get_workspace(workspace_id)
            if workspace is None:
                raise ValidationError(f"Workspace {workspace_id} not found")
            return workspace.id
        workspace = await self._stores.agent_store.get_default_workspace()
        if workspace is None:
            raise ValidationError("No workspace available for task")
        return workspace.id

    async def check_parent(self, parent_task_id: str, task_id: str | None = None) -> Task:
        """校验父任务存在且自身不是子任务（嵌套深度 <= 1）

        Args:
            parent_task_id: 目标父任务
            task_id: 被修改的任务（更新场景），用于拒绝自引用与“有子任务的任务再挂到别人下面”
        """
        if task_id is not None and parent_task_id == task_id:
            raise ValidationError("A task cannot be its own parent")

        parent = await self._stores.task_store.get_task(parent_task_id)
        if parent is None:
            raise ValidationError("Parent task not found")
        if parent.parent_task_id is not None:
            raise ValidationError(DEPTH_LIMIT_MESSAGE)

        if task_id is not None and await self._stores.task_store.list_subtasks(task_id):
            raise ValidationError(DEPTH_LIMIT_MESSAGE)
        return parent

    async def get_task(self, task_id: str) -> Task | None:
        """查询任务"""
        return await self._stores.task_store.get_task(task_id)

    async def require_task(self, task_id: str) -> Task:
        """查询任务，不存在时抛出 NotFoundError"""
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
        return task

    async def get_task_detail(self, task_id: str) -> dict[str, Any]:
        """任务详情（含子任务）"""
        task = await self.require_task(task_id)
        subtasks = await self._stores.task_store.list_subtasks(task_id)
        data = task.to_api_dict()
        data["subtasks"] = [s.to_api_dict() for s in subtasks]
        return data

    async def list_tasks(
        self,
        status: str | None = None,
        workspace_id: str | None = None,
        assigned_agent_id: str | None = None,
        initiative_id: str | None = None,
        parent_task_id: str | None = None,
    ) -> list[Task]:
        """查询任务列表

        status 支持逗号分隔多值；parent_task_id="none" 表示仅顶层任务。
        """
        statuses = [s.strip() for s in status.split(",") if s.strip()] if status else None
        return await self._stores.task_store.list_tasks(
            statuses=statuses,
            workspace_id=workspace_id,
            assigned_agent_id=assigned_agent_id,
            initiative_id=initiative_id,
            parent_task_id=parent_task_id if parent_task_id != "none" else None,
            top_level_only=parent_task_id == "none",
        )

    async def delete_task(self, task_id: str) -> None:
        """删除任务（会话、事件一并删除，活动与交付物级联删除）"""
        await self.require_task(task_id)
        await self._stores.task_store.delete_task(task_id)
        await self._stores.conn.commit()
        log.info("task_deleted", task_id=task_id)

        if self._sse_hub:
            await self._sse_hub.broadcast("task_deleted", {"id": task_id})
