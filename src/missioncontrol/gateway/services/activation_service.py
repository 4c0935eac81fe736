"""ActivationService -- 面板“激活 workspace”入口

组合幂等任务创建、initiative 解析、批量推进与尽力派发：
任务与 initiative 记账成功即返回 200；派发失败仅降级为 warning 字段。
同一 (source, external_request_id) 的重复调用返回 idempotent=true，且不再派发。
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from missioncontrol.core.config import DEFAULT_SOURCE
from missioncontrol.core.exceptions import (
    GatewayUnavailableError,
    MissionControlError,
    NotFoundError,
    ValidationError,
)
from missioncontrol.core.ledger import LedgerSync
from missioncontrol.core.models import (
    ActivationRequest,
    Agent,
    EventType,
    LedgerStatus,
    TaskCreate,
    TaskPriority,
    TaskStatus,
    Workspace,
)
from missioncontrol.core.store import StoreGroup
from ulid import ULID

from .dispatch_service import DispatchService
from .task_service import TaskService, build_event

log = structlog.get_logger()

CONNECT_WARNING = "Task created but could not connect to OpenClaw Gateway for spawn trigger"
DISPATCH_WARNING = "Task created but dispatch endpoint returned an error"


def generate_initiative_id(now: datetime) -> str:
    """按时间生成 INIT-HHMMSS"""
    return f"INIT-{now.strftime('%H%M%S')}"


def build_spawn_instruction(
    workspace_slug: str,
    agent_id: str | None,
    initiative_id: str | None,
    external_request_id: str,
) -> str:
    """激活消息：指示 agent 在该 workspace 中 spawn 并执行 initiative"""
    lines = [
        "Mission Control activation request",
        f"source: {DEFAULT_SOURCE}",
        f"external_request_id: {external_request_id}",
    ]
    if initiative_id:
        lines.append(f"initiative_id: {initiative_id}")
    lines += [
        f"workspace: {workspace_slug}",
        f"agent_id: {agent_id}",
        "",
        f"Use sessions_spawn to {agent_id} and execute this initiative "
        f"in workspace {workspace_slug}.",
        "If initiative_id is present, link to that initiative and avoid duplicates.",
        "Update initiative/state before final report.",
    ]
    return "\n".join(lines)


class ActivationService:
    """workspace 激活编排"""

    def __init__(
        self,
        store_group: StoreGroup,
        dispatch_service: DispatchService,
        sse_hub=None,
        ledger: LedgerSync | None = None,
    ) -> None:
        self._stores = store_group
        self._dispatch = dispatch_service
        self._sse_hub = sse_hub
        self._ledger = ledger

    async def activate(self, request: ActivationRequest) -> dict[str, Any]:
        """激活 workspace

        Raises:
            ValidationError: workspace 为空
            NotFoundError: workspace 不存在
        """
        slug = request.workspace.strip().lower()
        if not slug:
            raise ValidationError("workspace is required")

        workspace = await self._stores.agent_store.find_workspace(slug)
        if workspace is None:
            raise NotFoundError("Workspace not found", code="WORKSPACE_NOT_FOUND")

        source = request.source or DEFAULT_SOURCE
        external_request_id = request.external_request_id or str(ULID())
        now = datetime.now(UTC)

        initiative_id = (
            request.initiative_id
            or await self._stores.task_store.latest_planning_initiative(workspace.id, source)
            or generate_initiative_id(now)
        )
        agent = await self._resolve_agent(workspace, request.agent_id)
        agent_id = agent.id if agent else None
        event_metadata = {
            "source": source,
            "workspace": workspace.slug,
            "agent_id": agent_id,
            "initiative_id": initiative_id,
            "external_request_id": external_request_id,
        }

        task_service = TaskService(self._stores, self._sse_hub, self._ledger)
        task, created = await task_service.create_task(
            TaskCreate(
                title=f"Activate Workspace ({workspace.slug})",
                description=f"Activation request from panel for workspace {workspace.slug}",
                status=TaskStatus.PLANNING,
                priority=TaskPriority.HIGH,
                assigned_agent_id=agent_id,
                workspace_id=workspace.id,
                initiative_id=initiative_id,
                external_request_id=external_request_id,
                source=source,
            ),
            event_message=f"Workspace {workspace.slug} activated from panel",
            event_metadata=event_metadata,
        )
        if not created:
            log.info(
                "workspace_activation_idempotent",
                workspace=workspace.slug,
                task_id=task.id,
                external_request_id=external_request_id,
            )
            return {
                "success": True,
                "idempotent": True,
                "task_id": task.id,
                "workspace": workspace.slug,
                "initiative_id": task.initiative_id,
            }

        promoted = await self._stores.task_store.promote_initiative_tasks(
            initiative_id,
            workspace.id,
            TaskStatus.PLANNING.value,
            TaskStatus.IN_PROGRESS.value,
            now.isoformat(),
        )
        await self._stores.event_store.append_event(
            build_event(
                EventType.TASK_STATUS_CHANGED,
                f"Workspace {workspace.slug} activation moved initiative "
                f"{initiative_id} to in_progress",
                task_id=task.id,
                metadata={**event_metadata, "next_status": TaskStatus.IN_PROGRESS.value},
                now=now,
            )
        )
        await self._stores.conn.commit()
        log.info(
            "initiative_tasks_promoted",
            initiative_id=initiative_id,
            workspace=workspace.slug,
            promoted=promoted,
        )

        if self._ledger is not None:
            self._ledger.append_status(
                initiative_id,
                LedgerStatus.IN_PROGRESS,
                f"Activated from Mission Control panel for workspace {workspace.slug}",
                actor=source,
                external_request_id=external_request_id,
            )

        if self._sse_hub:
            promoted_task = await self._stores.task_store.get_task(task.id)
            if promoted_task is not None:
                await self._sse_hub.broadcast("task_updated", promoted_task.to_api_dict())

        gateway_triggered = False
        warning = None
        try:
            await self._dispatch.dispatch(
                task.id,
                override_message=build_spawn_instruction(
                    workspace.slug, agent_id, initiative_id, external_request_id
                ),
                external_request_id=external_request_id,
            )
            gateway_triggered = True
        except GatewayUnavailableError as e:
            warning = CONNECT_WARNING
            log.warning("activation_dispatch_unavailable", task_id=task.id, error=e.message)
        except MissionControlError as e:
            warning = DISPATCH_WARNING
            log.warning(
                "activation_dispatch_failed",
                task_id=task.id,
                error=e.message,
                error_code=e.code,
            )

        log.info(
            "workspace_activated",
            workspace=workspace.slug,
            task_id=task.id,
            initiative_id=initiative_id,
            gateway_triggered=gateway_triggered,
        )
        response: dict[str, Any] = {
            "success": True,
            "task_id": task.id,
            "workspace": workspace.slug,
            "agent_id": agent_id,
            "source": source,
            "external_request_id": external_request_id,
            "initiative_id": initiative_id,
            "gateway_triggered": gateway_triggered,
        }
        if warning:
            response["warning"] = warning
        return response

    async def _resolve_agent(self, workspace: Workspace, requested: str | None) -> Agent | None:
        """指定 agent 属于该 workspace 时使用之，否则取 workspace 的默认 agent"""
        if requested:
            agent = await self._stores.agent_store.get_workspace_agent(requested, workspace.id)
            if agent is not None:
                return agent
        return await self._stores.agent_store.get_preferred_agent(workspace.id)
