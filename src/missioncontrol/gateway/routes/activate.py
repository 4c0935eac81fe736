"""workspace 激活路由

POST /api/workspaces/activate: 记账成功即 200（派发失败降级为 warning）；
workspace 为空 400，不存在 404。
"""

from fastapi import APIRouter, Depends
from missioncontrol.core.models import ActivationRequest

from ..deps import get_dispatch_service, get_ledger, get_sse_hub, get_store_group
from ..services.activation_service import ActivationService

router = APIRouter()


@router.post("/api/workspaces/activate")
async def activate_workspace(
    body: ActivationRequest,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
    ledger=Depends(get_ledger),
    dispatch_service=Depends(get_dispatch_service),
):
    """激活 workspace：幂等创建激活任务，推进 initiative，并尽力触发 agent"""
    service = ActivationService(
        store_group,
        dispatch_service,
        sse_hub=sse_hub,
        ledger=ledger,
    )
    return await service.activate(body)
