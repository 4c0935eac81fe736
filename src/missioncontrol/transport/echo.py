"""EchoGatewayClient -- 离线回声模式

不连接任何 gateway，记录每次调用并回显参数。
本地开发与无 gateway 部署时使用。
"""

from typing import Any

import structlog

log = structlog.get_logger()


class EchoGatewayClient:
    """gateway 客户端的离线实现"""

    def __init__(self) -> None:
        self._connected = False
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """记录调用并返回回声结果"""
        self.calls.append((method, params))
        log.info(
            "gateway_echo_call",
            method=method,
            session_key=params.get("sessionKey"),
            idempotency_key=params.get("idempotencyKey"),
        )
        return {"success": True, "echo": {"method": method, "params": params}}

    async def close(self) -> None:
        self._connected = False
