"""AuthMiddleware -- /api/* 的 Bearer Token 鉴权与只读演示模式

MC_API_TOKEN 未设置时鉴权关闭（本地开发模式）。
同源浏览器请求（Origin / Referer 与 Host 一致）直接放行。
SSE 流 /api/events/stream 额外接受 ?token= 查询参数。
"""

import secrets
from urllib.parse import urlsplit

import structlog
from missioncontrol.core.config import get_api_token, is_demo_mode
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

log = structlog.get_logger()

_READ_METHODS = {"GET", "HEAD", "OPTIONS"}
_SSE_PATH = "/api/events/stream"


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def _token_matches(candidate: str, token: str) -> bool:
    # header 按 latin-1 解码，compare_digest 不接受非 ASCII 的 str，统一按字节比较
    return secrets.compare_digest(candidate.encode(), token.encode())


def is_same_origin(request: Request) -> bool:
    """Origin 或 Referer 的 host 与 Host 头一致时视为同源"""
    host = request.headers.get("host")
    if not host:
        return False
    for header in ("origin", "referer"):
        value = request.headers.get(header)
        if value and urlsplit(value).netloc == host:
            return True
    return False


class AuthMiddleware(BaseHTTPMiddleware):
    """API 鉴权中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if not path.startswith("/api/"):
            return await call_next(request)

        if is_demo_mode() and request.method.upper() not in _READ_METHODS:
            return _error(403, "DEMO_MODE", "Demo mode: this is a read-only instance")

        token = get_api_token()
        if token is None or is_same_origin(request):
            return await call_next(request)

        if path == _SSE_PATH:
            query_token = request.query_params.get("token")
            if query_token and _token_matches(query_token, token):
                return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        scheme, _, credentials = auth_header.partition(" ")
        if scheme.lower() == "bearer" and _token_matches(credentials.strip(), token):
            return await call_next(request)

        log.warning("api_auth_rejected", path=path, method=request.method)
        return _error(401, "UNAUTHORIZED", "Unauthorized")
