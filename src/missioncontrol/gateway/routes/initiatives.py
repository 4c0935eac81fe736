"""initiative 只读路由 -- 直接读取 ledger 文档

GET /api/initiatives?status=: 全部条目，附带任务计数
GET /api/initiatives/{initiative_id}: 单个条目（大小写不敏感）及其任务
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from missioncontrol.core.models import LedgerEntry
from starlette.responses import JSONResponse

from ..deps import get_ledger, get_store_group

router = APIRouter()


async def _annotate(entry: LedgerEntry, store_group) -> dict[str, Any]:
    total, done = await store_group.task_store.count_initiative_tasks(entry.id)
    data = entry.model_dump(mode="json", exclude_unset=True)
    data["task_count"] = total
    data["completed_task_count"] = done
    return data


@router.get("/api/initiatives")
async def list_initiatives(
    status: str | None = Query(default=None, description="按 ledger 状态筛选"),
    store_group=Depends(get_store_group),
    ledger=Depends(get_ledger),
):
    entries = ledger.list_entries()
    if status:
        entries = [e for e in entries if e.status == status]
    return {"initiatives": [await _annotate(e, store_group) for e in entries]}


@router.get("/api/initiatives/{initiative_id}")
async def get_initiative(
    initiative_id: str,
    store_group=Depends(get_store_group),
    ledger=Depends(get_ledger),
):
    target = initiative_id.upper()
    entry = next((e for e in ledger.list_entries() if e.id.upper() == target), None)
    if entry is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "INITIATIVE_NOT_FOUND",
                    "message": f"Initiative {initiative_id} not found",
                }
            },
        )

    data = await _annotate(entry, store_group)
    tasks = await store_group.task_store.list_tasks(initiative_id=entry.id)
    data["tasks"] = [t.to_api_dict() for t in tasks]
    return data
