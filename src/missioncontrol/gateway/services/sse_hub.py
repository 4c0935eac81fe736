"""SSEHub -- 内存中看板变更广播器

每个订阅者持有一个 asyncio.Queue，支持 subscribe/unsubscribe/broadcast。
消息形如 {"type": "task_updated", "payload": {...}}。
"""

import asyncio
from typing import Any


class SSEHub:
    """SSE 广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        self._subscribers: set[asyncio.Queue] = set()
        self._queue_maxsize = queue_maxsize

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self) -> asyncio.Queue:
        """订阅看板变更流

        Returns:
            asyncio.Queue 实例，新消息会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        """取消订阅"""
        self._subscribers.discard(queue)

    async def broadcast(self, message_type: str, payload: dict[str, Any]) -> None:
        """向所有订阅者广播

        Args:
            message_type: 消息类型，如 task_created / task_updated / task_deleted
            payload: 消息内容
        """
        message = {"type": message_type, "payload": payload}
        dead_queues = []
        for queue in self._subscribers:
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列（消费过慢的订阅者）
        for q in dead_queues:
            self._subscribers.discard(q)
