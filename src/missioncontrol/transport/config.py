"""TransportConfig -- agent gateway 连接配置加载

从环境变量加载配置。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class TransportConfig(BaseModel):
    """agent gateway 连接配置 -- 从环境变量加载

    环境变量:
        MC_GATEWAY_URL: gateway 地址（默认 http://127.0.0.1:18789）
        MC_GATEWAY_TOKEN: gateway 访问令牌
        MC_GATEWAY_MODE: 运行模式（http/echo）
        MC_GATEWAY_TIMEOUT_S: 调用超时（秒，默认 30）
    """

    gateway_url: str = Field(
        default="http://127.0.0.1:18789",
        description="agent gateway 基础 URL",
    )
    gateway_token: SecretStr = Field(
        default=SecretStr(""),
        description="gateway 访问令牌",
    )
    mode: Literal["http", "echo"] = Field(
        default="http",
        description="运行模式：http / echo（离线回声）",
    )
    timeout_s: int = Field(
        default=30,
        ge=1,
        description="RPC 调用超时（秒）",
    )


def load_transport_config() -> TransportConfig:
    """从环境变量加载 Transport 配置

    非法的超时值记录 warning 并使用默认值，不阻塞启动。
    """
    kwargs: dict = {}

    if val := os.environ.get("MC_GATEWAY_URL"):
        kwargs["gateway_url"] = val

    if val := os.environ.get("MC_GATEWAY_TOKEN"):
        kwargs["gateway_token"] = SecretStr(val)

    if val := os.environ.get("MC_GATEWAY_MODE"):
        if val in ("http", "echo"):
            kwargs["mode"] = val
        else:
            log.warning(
                "invalid_gateway_mode_config",
                env_var="MC_GATEWAY_MODE",
                value=val,
                fallback="http",
            )

    if val := os.environ.get("MC_GATEWAY_TIMEOUT_S"):
        try:
            timeout_s = int(val)
            if timeout_s < 1:
                raise ValueError(val)
            kwargs["timeout_s"] = timeout_s
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="MC_GATEWAY_TIMEOUT_S",
                value=val,
                fallback=30,
            )

    return TransportConfig(**kwargs)
