"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + ledger + agent gateway 客户端 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from missioncontrol.core.config import get_db_path, get_ledger_path
from missioncontrol.core.exceptions import MissionControlError
from missioncontrol.core.ledger import LedgerSync
from missioncontrol.core.store import create_store_group
from missioncontrol.transport import create_gateway_client, load_transport_config
from starlette.responses import JSONResponse

from .middleware.auth_mw import AuthMiddleware
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import (
    activate,
    activities,
    dispatch,
    health,
    initiatives,
    planning,
    stream,
    task_types,
    tasks,
)
from .routes.errors import error_response
from .services.sse_hub import SSEHub

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB / ledger / gateway 客户端，关闭时清理连接"""
    # 启动：初始化 Store
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    # 初始化 SSEHub
    app.state.sse_hub = SSEHub()

    # ledger 只记录路径，读写都在回写时按需进行
    ledger = LedgerSync(get_ledger_path())
    app.state.ledger = ledger

    # agent gateway 客户端（惰性连接，首次派发时 connect）
    transport_config = load_transport_config()
    app.state.transport_config = transport_config
    app.state.gateway_client = create_gateway_client(transport_config)
    log.info(
        "mission_control_started",
        db_path=store_group.db_path,
        ledger_path=str(ledger.path),
        gateway_mode=transport_config.mode,
        gateway_url=transport_config.gateway_url,
    )

    yield

    # 关闭：gateway 客户端与数据库连接
    await app.state.gateway_client.close()
    await store_group.close()


async def mission_control_error_handler(request: Request, exc: MissionControlError):
    """领域异常 -> {"error": {...}}"""
    return error_response(exc)


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """请求体校验失败统一返回 400（写入前拒绝）"""
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Validation failed",
                "details": [
                    {"loc": [str(p) for p in err["loc"]], "msg": err["msg"]}
                    for err in exc.errors()
                ],
            }
        },
    )


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Mission Control",
        version="0.1.0",
        description="Mission Control 任务生命周期与派发 API",
        lifespan=lifespan,
    )

    app.add_exception_handler(MissionControlError, mission_control_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    # 注册中间件（后注册的在外层：Logging -> Trace -> Auth）
    app.add_middleware(AuthMiddleware)
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(dispatch.router, tags=["dispatch"])
    app.include_router(activities.router, tags=["activities"])
    app.include_router(planning.router, tags=["planning"])
    app.include_router(activate.router, tags=["workspaces"])
    app.include_router(task_types.router, tags=["task-types"])
    app.include_router(initiatives.router, tags=["initiatives"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
