"""HttpGatewayClient -- agent gateway RPC 调用封装

gateway 暴露 is_connected()/connect()/call() 三个能力；
此处通过 httpx.AsyncClient 以 JSON-RPC 风格 POST {url}/rpc 实现。
"""

from typing import Any, Protocol

import httpx
import structlog

from .exceptions import GatewayCallError, GatewayConnectError

log = structlog.get_logger()

# 连接探测超时（硬编码，探测应快速响应）
CONNECT_TIMEOUT_S = 5

# 连接类异常类型集合（翻译为 GatewayConnectError）
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    httpx.ConnectError,
    httpx.ConnectTimeout,
)


def _is_connection_error(e: Exception) -> bool:
    """判断异常是否为连接类错误（gateway 不可达）"""
    return isinstance(e, _CONNECTION_ERROR_TYPES)


class GatewayClient(Protocol):
    """agent gateway 客户端接口"""

    def is_connected(self) -> bool:
        """当前是否已建立连接"""
        ...

    async def connect(self) -> None:
        """建立连接；失败抛出 GatewayConnectError"""
        ...

    async def call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """发起 RPC 调用；失败抛出 GatewayConnectError / GatewayCallError"""
        ...

    async def close(self) -> None:
        """释放连接"""
        ...


class HttpGatewayClient:
    """基于 httpx 的 agent gateway 客户端"""

    def __init__(
        self,
        gateway_url: str = "http://127.0.0.1:18789",
        gateway_token: str = "",
        timeout_s: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化 gateway 客户端

        Args:
            gateway_url: gateway 基础 URL
            gateway_token: 访问令牌（Bearer）
            timeout_s: RPC 调用超时（秒）
            transport: 可选的 httpx transport（测试注入 MockTransport）
        """
        self._gateway_url = gateway_url.rstrip("/")
        self._gateway_token = gateway_token
        self._timeout_s = timeout_s
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._connected = False

    @property
    def gateway_url(self) -> str:
        return self._gateway_url

    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """探测 GET {gateway_url}/health，成功后标记为已连接

        Raises:
            GatewayConnectError: gateway 不可达或健康检查非 2xx
        """
        headers = {}
        if self._gateway_token:
            headers["Authorization"] = f"Bearer {self._gateway_token}"

        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._gateway_url,
                headers=headers,
                timeout=self._timeout_s,
                transport=self._transport,
            )

        try:
            resp = await self._http.get("/health", timeout=CONNECT_TIMEOUT_S)
        except (httpx.HTTPError, OSError) as e:
            self._connected = False
            log.warning("gateway_connect_failed", url=self._gateway_url, error=str(e))
            raise GatewayConnectError(self._gateway_url, e) from e

        if not resp.is_success:
            self._connected = False
            log.warning(
                "gateway_connect_failed",
                url=self._gateway_url,
                status_code=resp.status_code,
            )
            raise GatewayConnectError(self._gateway_url, f"HTTP {resp.status_code}")

        self._connected = True
        log.info("gateway_connected", url=self._gateway_url)

    async def call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """发起 RPC 调用

        Args:
            method: RPC 方法名，如 chat.send
            params: 方法参数

        Returns:
            gateway 返回的 result 字段

        Raises:
            GatewayConnectError: 连接中断
            GatewayCallError: 调用超时、HTTP 错误或 gateway 返回 error
        """
        if self._http is None or not self._connected:
            raise GatewayConnectError(self._gateway_url, "not connected")

        try:
            resp = await self._http.post("/rpc", json={"method": method, "params": params})
            resp.raise_for_status()
            body = resp.json()
        except Exception as e:
            log.error(
                "gateway_call_failed",
                method=method,
                error=str(e),
                error_type=type(e).__name__,
            )
            if _is_connection_error(e):
                self._connected = False
                raise GatewayConnectError(self._gateway_url, e) from e
            raise GatewayCallError(method, str(e)) from e

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            log.error("gateway_call_rejected", method=method, error=message)
            raise GatewayCallError(method, message)

        log.info("gateway_call_completed", method=method)
        if isinstance(body, dict):
            return body.get("result", body)
        return {"result": body}

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        self._connected = False
