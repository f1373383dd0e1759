"""LiveHub -- 内存中的实时连接中心

每条实时连接持有一个 asyncio.Queue，SSE 路由负责消费队列。
同一承包商可以同时有多条连接（多设备），按 contractor_id 分组。
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog
from fieldops.core.config import LIVE_QUEUE_MAXSIZE
from ulid import ULID

log = structlog.get_logger()

# 慢消费者被摘除时放入其队列，SSE 生成器读到后结束本条流
CLOSE_STREAM = object()


@dataclass
class LiveEvent:
    """推送到实时连接的单个事件"""

    event: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(ULID()))
    ts: datetime = field(default_factory=lambda: datetime.now(UTC))


class LiveHub:
    """实时连接中心 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = LIVE_QUEUE_MAXSIZE) -> None:
        # contractor_id -> set of asyncio.Queue
        self._connections: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    def connect(self, contractor_id: str) -> asyncio.Queue:
        """为承包商建立一条新连接

        Args:
            contractor_id: 承包商 ID

        Returns:
            asyncio.Queue 实例，推送给该连接的事件会进入此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._connections[contractor_id].add(queue)
        log.info(
            "live_connection_opened",
            contractor_id=contractor_id,
            connections=len(self._connections[contractor_id]),
        )
        return queue

    def disconnect(self, contractor_id: str, queue: asyncio.Queue) -> bool:
        """断开一条连接

        Returns:
            该承包商是否仍有其他存活连接
        """
        queues = self._connections.get(contractor_id)
        if queues is None:
            return False
        queues.discard(queue)
        if not queues:
            del self._connections[contractor_id]
            log.info("live_contractor_offline", contractor_id=contractor_id)
            return False
        return True

    def send_to_connection(
        self,
        contractor_id: str,
        event: str,
        payload: dict[str, Any],
    ) -> int:
        """向某承包商的全部连接推送事件

        Returns:
            成功入队的连接数
        """
        queues = self._connections.get(contractor_id)
        if not queues:
            return 0
        return self._push(contractor_id, queues, LiveEvent(event=event, payload=payload))

    def broadcast_to_all(
        self,
        event: str,
        payload: dict[str, Any],
        exclude: str | None = None,
    ) -> int:
        """向所有在线连接推送事件

        Args:
            event: 事件名
            payload: 事件内容
            exclude: 不推送的承包商

        Returns:
            成功入队的连接数
        """
        live_event = LiveEvent(event=event, payload=payload)
        reached = 0
        for contractor_id in list(self._connections):
            if contractor_id == exclude:
                continue
            reached += self._push(
                contractor_id, self._connections[contractor_id], live_event
            )
        return reached

    def connected_contractors(self) -> list[str]:
        return list(self._connections)

    def is_connected(self, contractor_id: str) -> bool:
        return contractor_id in self._connections

    def connection_count(self) -> int:
        return sum(len(queues) for queues in self._connections.values())

    def _push(
        self,
        contractor_id: str,
        queues: set[asyncio.Queue],
        live_event: LiveEvent,
    ) -> int:
        reached = 0
        dead_queues = []
        for queue in queues:
            try:
                queue.put_nowait(live_event)
                reached += 1
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 摘除已满的队列，并通知其消费者断开重连
        for q in dead_queues:
            queues.discard(q)
            q.get_nowait()
            q.put_nowait(CLOSE_STREAM)
            log.warning(
                "live_queue_full_dropped",
                contractor_id=contractor_id,
                live_event=live_event.event,
            )
        if not queues:
            self._connections.pop(contractor_id, None)
        return reached
