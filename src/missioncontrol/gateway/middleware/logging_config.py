"""structlog 配置

MC_LOG_FORMAT=json 输出结构化 JSON（生产），默认 dev 控制台渲染。
标准库 logging（uvicorn、aiosqlite 等）经 ProcessorFormatter 走同一条处理链。
"""

import logging
import os

import structlog

# 请求日志由 LoggingMiddleware 负责，uvicorn 自带的 access 日志降级
_QUIET_LOGGERS = ("uvicorn.access", "aiosqlite", "httpx", "httpcore")


def setup_logging() -> None:
    """初始化 structlog 与标准库 logging

    环境变量:
        MC_LOG_FORMAT: json / dev（默认）
        MC_LOG_LEVEL: 日志级别（默认 INFO）
    """
    json_output = os.environ.get("MC_LOG_FORMAT", "dev") == "json"
    level = getattr(logging, os.environ.get("MC_LOG_LEVEL", "INFO").upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        # JSON 模式下异常栈渲染为字符串字段
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def setup_logfire(app=None) -> None:
    """可选接入 Logfire APM（LOGFIRE_SEND_TO_LOGFIRE=true 时）

    同时为 FastAPI 与 httpx（gateway 调用）打点；初始化失败只记录 warning。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return

    try:
        import logfire

        logfire.configure(service_name="mission-control")
        if app is not None:
            logfire.instrument_fastapi(app)
        logfire.instrument_httpx()
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
