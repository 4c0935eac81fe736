"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、ledger 目录可写性、gateway 连接状态。
"""

import os

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性（失败时 503）
    2. ledger_dir: ledger 所在目录可写，或尚不存在（首次写入时创建）
    3. gateway: agent gateway 当前是否已连接（仅报告，不影响就绪状态）
    """
    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("ready_sqlite_failed", error=str(e))
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    # 2. ledger 目录检查
    ledger_dir = request.app.state.ledger.path.parent
    if not ledger_dir.exists():
        checks["ledger_dir"] = "absent"
    elif os.access(ledger_dir, os.W_OK):
        checks["ledger_dir"] = "ok"
    else:
        checks["ledger_dir"] = "error: not writable"

    # 3. gateway 连接状态
    gateway_client = request.app.state.gateway_client
    checks["gateway"] = "connected" if gateway_client.is_connected() else "disconnected"

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
