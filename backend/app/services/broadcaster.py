"""
事件广播器 (Event Broadcaster)

基于内存队列实现的发布-订阅，用于向仪表盘 WebSocket 客户端实时推送探测结果和告警通知。
独立模块，由应用生命周期创建后注入探测器和分发器，避免与路由之间的循环导入。
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, List

logger = logging.getLogger(__name__)

# 事件名 (Event names)
METRICS_UPDATE = "metrics-update"
ALERT_NOTIFICATION = "alert-notification"


class EventBroadcaster:
    """
    每个订阅者一个有界队列。某个订阅者的队列满时只丢弃发给它的消息，
    不影响其他订阅者，也不阻塞发布方。
    """

    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._subscribers: List[asyncio.Queue] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def publish(self, event: str, data: Any):
        message = {
            "event": event,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.debug(f"Subscriber queue full, dropping {event} event")
