"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / Hub / Ledger / Gateway 客户端

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from missioncontrol.core.ledger import LedgerSync
from missioncontrol.core.store import StoreGroup
from missioncontrol.transport import GatewayClient

from .services.dispatch_service import DispatchService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request):
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_ledger(request: Request) -> LedgerSync:
    """从 app.state 获取 LedgerSync 实例"""
    return request.app.state.ledger


def get_gateway_client(request: Request) -> GatewayClient:
    """从 app.state 获取 agent gateway 客户端"""
    return request.app.state.gateway_client


def get_dispatch_service(request: Request) -> DispatchService:
    """按当前 app.state 组装 DispatchService"""
    state = request.app.state
    return DispatchService(
        state.store_group,
        state.gateway_client,
        sse_hub=state.sse_hub,
        ledger=state.ledger,
    )
