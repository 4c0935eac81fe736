"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、ledger 文件路径、项目输出目录、Mission Control 回调地址等可配置项。
所有 getter 在调用时读取环境变量，便于测试在 create_app() 之前注入。
"""

import os
from pathlib import Path

import structlog

log = structlog.get_logger()

# ledger 文件名（与外部读取进程约定，不可修改）
LEDGER_FILENAME = "INITIATIVES.json"

# 写入 ledger history 的默认操作者
LEDGER_ACTOR = "mission-control"

# 任务默认来源
DEFAULT_SOURCE = "mission-control"


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("MC_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "MC_DB_PATH",
        str(_get_base_dir() / "sqlite" / "mission-control.db"),
    )


def get_ledger_path() -> Path:
    """获取 ledger（INITIATIVES.json）文件路径

    MC_LEDGER_PATH 直接指定文件；否则取 SQUAD_STATUS_PATH 目录下的 INITIATIVES.json。
    """
    if val := os.environ.get("MC_LEDGER_PATH"):
        return Path(val)
    squad_status_dir = os.environ.get(
        "SQUAD_STATUS_PATH",
        str(_get_base_dir() / "status"),
    )
    return Path(squad_status_dir) / LEDGER_FILENAME


def get_projects_path() -> str:
    """获取 agent 交付物输出根目录"""
    return os.environ.get("MC_PROJECTS_PATH", str(Path.home() / "projects"))


def get_mission_control_url() -> str:
    """获取 agent 回调 Mission Control 的基础 URL"""
    return os.environ.get("MC_URL", "http://localhost:4000").rstrip("/")


def get_api_token() -> str | None:
    """获取 API Bearer Token；未设置时鉴权关闭"""
    return os.environ.get("MC_API_TOKEN") or None


def is_demo_mode() -> bool:
    """是否为只读演示模式"""
    return os.environ.get("MC_DEMO_MODE", "false").lower() == "true"


# SSE 默认心跳间隔（秒）
DEFAULT_SSE_HEARTBEAT_INTERVAL = 15


def get_sse_heartbeat_interval() -> int:
    """获取 SSE 心跳间隔（秒）；非法值记录 warning 并使用默认值"""
    val = os.environ.get("MC_SSE_HEARTBEAT_INTERVAL")
    if not val:
        return DEFAULT_SSE_HEARTBEAT_INTERVAL
    try:
        interval = int(val)
        if interval < 1:
            raise ValueError(val)
    except ValueError:
        log.warning(
            "invalid_sse_heartbeat_config",
            env_var="MC_SSE_HEARTBEAT_INTERVAL",
            value=val,
            fallback=DEFAULT_SSE_HEARTBEAT_INTERVAL,
        )
        return DEFAULT_SSE_HEARTBEAT_INTERVAL
    return interval


def get_ledger_default_lead() -> str:
    """新建 ledger 条目在未分配 agent 时使用的 lead"""
    return os.environ.get("MC_LEDGER_LEAD", "main")
