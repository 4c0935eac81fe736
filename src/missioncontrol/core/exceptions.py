"""Mission Control 异常体系

每个异常携带 HTTP 状态码与错误码，由 gateway 统一渲染为
{"error": {"code": ..., "message": ...}} 结构。
"""

from typing import Any


class MissionControlError(Exception):
    """Mission Control 基础异常"""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        """
        Args:
            message: 错误描述
            code: 覆盖默认错误码
        """
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        """渲染为 error 响应体"""
        return {"code": self.code, "message": self.message}


class ValidationError(MissionControlError):
    """请求校验失败（写入前拒绝，无任何副作用）"""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.details:
            data["details"] = self.details
        return data


class NotFoundError(MissionControlError):
    """任务 / agent / workspace 不存在"""

    status_code = 404
    code = "NOT_FOUND"


class AuthorizationError(MissionControlError):
    """非 master agent 尝试 review -> done"""

    status_code = 403
    code = "FORBIDDEN"


class ConflictError(MissionControlError):
    """唯一约束冲突（非幂等键）"""

    status_code = 409
    code = "CONFLICT"


class OrchestratorConflictError(ConflictError):
    """同一 workspace 内已有其他在线 master agent

    携带冲突 agent 列表，调用方据此决定是否先将其下线。
    """

    code = "ORCHESTRATOR_CONFLICT"

    def __init__(self, agent_id: str, other_orchestrators: list[dict[str, Any]]) -> None:
        """
        Args:
            agent_id: 目标 master agent
            other_orchestrators: 同 workspace 中其他非 offline 的 master agent
        """
        super().__init__(
            f"Other orchestrator agents are available in this workspace; "
            f"dispatch to {agent_id} refused"
        )
        self.agent_id = agent_id
        self.other_orchestrators = other_orchestrators

    @property
    def warning(self) -> str:
        names = ", ".join(a.get("name") or a["id"] for a in self.other_orchestrators)
        return f"Another orchestrator is already active in this workspace: {names}"


class GatewayUnavailableError(MissionControlError):
    """无法连接 agent gateway（未产生任何任务变更）"""

    status_code = 503
    code = "GATEWAY_UNAVAILABLE"


class DispatchCallError(MissionControlError):
    """已连接 gateway 但 chat.send 调用失败（未产生任何任务变更）"""

    status_code = 500
    code = "DISPATCH_FAILED"
