"""DispatchService -- 将任务派发给 agent

流程：
1. 校验任务与被分配 agent，检查编排者冲突
2. 构建派发消息（或使用 override_message）
3. 惰性连接 gateway；连接失败 -> 503，不改动任务
4. 复用或创建该 agent 的 active 会话
5. chat.send；调用失败 -> 500，不改动任务
6. 成功后任务进入 in_progress，记录 task_dispatched 事件，回写 ledger
"""

from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from missioncontrol.core.exceptions import (
    DispatchCallError,
    GatewayUnavailableError,
    NotFoundError,
    OrchestratorConflictError,
    ValidationError,
)
from missioncontrol.core.ledger import LedgerSync
from missioncontrol.core.models import (
    AgentStatus,
    EventType,
    Session,
    SessionStatus,
    Task,
    TaskStatus,
)
from missioncontrol.core.store import StoreGroup
from missioncontrol.transport import GatewayClient, GatewayConnectError, TransportError
from ulid import ULID

from .message_builder import InitiativeContext, build_dispatch_message
from .task_service import build_event

log = structlog.get_logger()

CHAT_SEND_METHOD = "chat.send"


def session_key_for(agent_id: str) -> str:
    return f"dm:{agent_id}"


def dispatch_idempotency_key(task: Task, external_request_id: str | None = None) -> str:
    """transport 层去重键：dispatch-<external_request_id | task.id>"""
    return f"dispatch-{external_request_id or task.external_request_id or task.id}"


class DispatchService:
    """任务派发服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        gateway_client: GatewayClient,
        sse_hub=None,
        ledger: LedgerSync | None = None,
    ) -> None:
        self._stores = store_group
        self._client = gateway_client
        self._sse_hub = sse_hub
        self._ledger = ledger

    async def dispatch(
        self,
        task_id: str,
        override_message: str | None = None,
        external_request_id: str | None = None,
    ) -> dict[str, Any]:
        """派发任务

        Args:
            task_id: 任务 ID
            override_message: 直接发送的消息文本（跳过按类型构建）
            external_request_id: 调用方的幂等键，优先于任务自身的 external_request_id

        Returns:
            {"success", "task_id", "agent_id", "session_id", "message"}

        Raises:
            NotFoundError: 任务或 agent 不存在
            ValidationError: 任务未分配 agent，或任务类型不支持派发
            OrchestratorConflictError: 同 workspace 有其他在线 master agent
            GatewayUnavailableError: 无法连接 gateway
            DispatchCallError: chat.send 调用失败
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
        if not task.assigned_agent_id:
            raise ValidationError("Task has no assigned agent")

        agent = await self._stores.agent_store.get_agent(task.assigned_agent_id)
        if agent is None:
            raise NotFoundError("Assigned agent not found", code="AGENT_NOT_FOUND")

        if agent.is_master:
            others = await self._stores.agent_store.list_other_online_masters(
                agent.id, task.workspace_id
            )
            if others:
                log.warning(
                    "dispatch_orchestrator_conflict",
                    task_id=task.id,
                    agent_id=agent.id,
                    other_orchestrators=[a.id for a in others],
                )
                raise OrchestratorConflictError(
                    agent.id,
                    [
                        {"id": a.id, "name": a.name, "role": a.role, "status": a.status.value}
                        for a in others
                    ],
                )

        if override_message:
            message = override_message
        else:
            message = build_dispatch_message(task, await self._initiative_context(task))

        if not self._client.is_connected():
            try:
                await self._client.connect()
            except TransportError as e:
                log.error("gateway_connect_failed", task_id=task.id, error=str(e))
                raise GatewayUnavailableError("Failed to connect to OpenClaw Gateway") from e

        session = await self._get_or_create_session(agent.id)
        idempotency_key = dispatch_idempotency_key(task, external_request_id)

        try:
            result = await self._client.call(
                CHAT_SEND_METHOD,
                {
                    "sessionKey": session.session_key,
                    "message": message,
                    "idempotencyKey": idempotency_key,
                },
            )
        except TransportError as e:
            log.error(
                "dispatch_call_failed",
                task_id=task.id,
                agent_id=agent.id,
                error=str(e),
                recoverable=e.recoverable,
                connect_error=isinstance(e, GatewayConnectError),
            )
            raise DispatchCallError(f"Failed to send task to agent: {e}") from e

        now = datetime.now(UTC)
        previous_status = task.status
        await self._stores.task_store.update_task_status(
            task.id, TaskStatus.IN_PROGRESS.value, now.isoformat()
        )
        await self._stores.session_store.attach_task(session.id, task.id, now.isoformat())
        if agent.status == AgentStatus.STANDBY:
            await self._stores.agent_store.update_agent_status(agent.id, AgentStatus.WORKING.value)
        await self._stores.event_store.append_event(
            build_event(
                EventType.TASK_DISPATCHED,
                f'Task "{task.title}" dispatched to {agent.name}',
                task_id=task.id,
                agent_id=agent.id,
                metadata={
                    "session_id": session.id,
                    "session_key": session.session_key,
                    "idempotency_key": idempotency_key,
                    "previous_status": previous_status.value,
                },
                now=now,
            )
        )
        await self._stores.conn.commit()

        log.info(
            "task_dispatched",
            task_id=task.id,
            agent_id=agent.id,
            session_id=session.id,
            idempotency_key=idempotency_key,
        )

        updated = await self._stores.task_store.get_task(task.id)
        if self._sse_hub and updated is not None:
            await self._sse_hub.broadcast("task_updated", updated.to_api_dict())
        if self._ledger is not None and previous_status != TaskStatus.IN_PROGRESS:
            self._ledger.writeback_status(
                task.id, task.title, TaskStatus.IN_PROGRESS.value, task.initiative_id
            )

        return {
            "success": True,
            "task_id": task.id,
            "agent_id": agent.id,
            "session_id": session.id,
            "session_key": session.session_key,
            "message": "Task dispatched to agent",
            "result": result,
        }

    async def _get_or_create_session(self, agent_id: str) -> Session:
        """复用 agent 的 active 会话，没有则创建

        并发创建由 (agent_id) WHERE status='active' 唯一索引兜底，失败方回查胜者。
        """
        existing = await self._stores.session_store.get_active_session(agent_id)
        if existing is not None:
            return existing

        now = datetime.now(UTC)
        session = Session(
            id=str(ULID()),
            agent_id=agent_id,
            session_key=session_key_for(agent_id),
            session_type="persistent",
            status=SessionStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        try:
            await self._stores.session_store.create_session(session)
        except aiosqlite.IntegrityError:
            winner = await self._stores.session_store.get_active_session(agent_id)
            if winner is None:
                raise
            return winner
        await self._stores.conn.commit()
        log.info("dispatch_session_created", agent_id=agent_id, session_id=session.id)
        return session

    async def _initiative_context(self, task: Task) -> InitiativeContext | None:
        """任务关联 initiative 时，组装消息中的 initiative 摘要"""
        if not task.initiative_id:
            return None
        task_count, _ = await self._stores.task_store.count_initiative_tasks(task.initiative_id)
        entry = None
        if self._ledger is not None:
            target = task.initiative_id.upper()
            entry = next(
                (e for e in self._ledger.list_entries() if e.id.upper() == target), None
            )
        return InitiativeContext(
            title=entry.title if entry else task.initiative_id,
            status=entry.status if entry else "unknown",
            task_count=task_count,
        )
