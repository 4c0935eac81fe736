"""SSE 看板变更流路由

GET /api/events/stream: 推送 task_created / task_updated / task_deleted 等消息，心跳保活。
"""

import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Depends
from missioncontrol.core.config import get_sse_heartbeat_interval
from sse_starlette.sse import EventSourceResponse

from ..deps import get_sse_hub

router = APIRouter()


async def board_event_generator(
    sse_hub,
    heartbeat_interval: float | None = None,
) -> AsyncGenerator[dict[str, Any], None]:
    """订阅 SSEHub 并逐条产出 SSE 事件，生成器关闭时自动退订"""
    if heartbeat_interval is None:
        heartbeat_interval = get_sse_heartbeat_interval()
    queue = await sse_hub.subscribe()
    try:
        yield {"event": "connected", "data": json.dumps({"type": "connected"})}
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=heartbeat_interval)
                yield {
                    "event": message["type"],
                    "data": json.dumps(message, ensure_ascii=False),
                }
            except TimeoutError:
                # 心跳保活
                yield {"comment": "heartbeat"}
    finally:
        await sse_hub.unsubscribe(queue)


@router.get("/api/events/stream")
async def stream_board_events(sse_hub=Depends(get_sse_hub)):
    """SSE 事件流端点，事件名即消息类型"""
    return EventSourceResponse(board_event_generator(sse_hub))
