"""LoggingMiddleware -- 请求级 request_id 与耗时日志

调用方可通过 X-Request-ID 传入自己的 request_id（如面板重试同一激活请求时），
否则生成 ULID。request_id 绑定到 structlog contextvars 并回写到响应头。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

# 探针请求只记 debug，避免刷屏
_PROBE_PATHS = {"/health", "/ready"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(ULID())
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )
        log = structlog.get_logger()
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            await log.aexception(
                "request_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 1)
        if path in _PROBE_PATHS:
            await log.adebug("request_completed", status_code=response.status_code)
        elif response.status_code >= 500:
            await log.awarning(
                "request_completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )
        else:
            await log.ainfo(
                "request_completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Request-ID"] = request_id
        return response
