"""任务类型目录路由

GET /api/task-types: 列出任务类型及其 config JSON schema。
"""

from fastapi import APIRouter, Query
from missioncontrol.core.models import TASK_TYPE_REGISTRY

router = APIRouter()


@router.get("/api/task-types")
async def list_task_types(
    implemented_only: bool = Query(default=False, description="仅返回已实现的类型"),
    include_config_schema: bool = Query(default=True, description="是否附带 config schema"),
):
    types = [
        meta.to_dict(include_config_schema=include_config_schema)
        for meta in TASK_TYPE_REGISTRY
        if meta.is_implemented or not implemented_only
    ]
    return {"types": types}
