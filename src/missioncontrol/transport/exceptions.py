"""Transport 异常体系

gateway 客户端只抛出这两类异常，由 DispatchService 翻译为 503 / 500。
"""


class TransportError(Exception):
    """Transport 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class GatewayConnectError(TransportError):
    """agent gateway 不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, gateway_url: str, original_error: Exception | str) -> None:
        """
        Args:
            gateway_url: 尝试连接的 gateway 地址
            original_error: 原始异常或描述
        """
        super().__init__(
            f"Failed to connect to agent gateway: {gateway_url} -- {original_error}",
            recoverable=True,
        )
        self.gateway_url = gateway_url
        self.original_error = original_error


class GatewayCallError(TransportError):
    """已连接 gateway，但 RPC 调用失败或返回错误"""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"Gateway call '{method}' failed: {message}", recoverable=True)
        self.method = method
