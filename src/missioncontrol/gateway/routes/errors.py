"""错误响应渲染 -- 统一的 {"error": {...}} 结构"""

from missioncontrol.core.exceptions import MissionControlError, OrchestratorConflictError
from starlette.responses import JSONResponse


def error_response(exc: MissionControlError) -> JSONResponse:
    """将领域异常渲染为 JSON 错误响应

    编排者冲突额外携带 warning 与 other_orchestrators，供调用方决定是否先下线其他 master。
    """
    content: dict = {"error": exc.to_dict()}
    if isinstance(exc, OrchestratorConflictError):
        content["warning"] = exc.warning
        content["other_orchestrators"] = exc.other_orchestrators
    return JSONResponse(status_code=exc.status_code, content=content)
