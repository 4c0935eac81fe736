"""Mission Control Transport -- agent gateway 客户端

公共 API 导出：GatewayClient 接口、HTTP 与 Echo 两种实现、配置与异常。
"""

from .client import GatewayClient, HttpGatewayClient
from .config import TransportConfig, load_transport_config
from .echo import EchoGatewayClient
from .exceptions import GatewayCallError, GatewayConnectError, TransportError


def create_gateway_client(config: TransportConfig) -> GatewayClient:
    """按配置模式创建 gateway 客户端"""
    if config.mode == "echo":
        return EchoGatewayClient()
    return HttpGatewayClient(
        gateway_url=config.gateway_url,
        gateway_token=config.gateway_token.get_secret_value(),
        timeout_s=config.timeout_s,
    )


__all__ = [
    # 客户端
    "GatewayClient",
    "HttpGatewayClient",
    "EchoGatewayClient",
    "create_gateway_client",
    # 配置
    "TransportConfig",
    "load_transport_config",
    # 异常
    "TransportError",
    "GatewayConnectError",
    "GatewayCallError",
]
