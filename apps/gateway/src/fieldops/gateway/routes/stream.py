"""SSE 实时通道路由

GET  /api/stream: 承包商的实时事件流（connect/disconnect 钩子维护定向索引）
POST /api/stream/location: 更新在线承包商位置
GET  /api/stream/stats: 在线连接统计

首条连接建立时按目录中的技能登记到 RoomResolver，
最后一条连接断开时注销。心跳间隔见 SSE_HEARTBEAT_INTERVAL。
"""

import asyncio
import json
from collections.abc import AsyncIterator
from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, Query
from fieldops.core.config import SSE_HEARTBEAT_INTERVAL
from fieldops.core.models import LiveEventType
from fieldops.core.store import StoreGroup
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from ..deps import (
    get_broadcaster,
    get_contractor_id,
    get_ledger,
    get_live_hub,
    get_room_resolver,
    get_store_group,
)
from ..responses import error_response
from ..services.broadcaster import RealtimeBroadcaster
from ..services.live_hub import CLOSE_STREAM, LiveEvent, LiveHub
from ..services.notification_service import NotificationLedger
from ..services.room_resolver import RoomResolver

log = structlog.get_logger()

router = APIRouter()


class LocationUpdate(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


def _to_sse(live_event: LiveEvent) -> dict:
    """LiveEvent -> SSE 帧"""
    return {
        "id": live_event.event_id,
        "event": live_event.event,
        "data": json.dumps(live_event.payload, ensure_ascii=False, default=str),
    }


async def live_events(
    contractor_id: str,
    hub: LiveHub,
    resolver: RoomResolver,
    store_group: StoreGroup,
    ledger: NotificationLedger,
    position: tuple[float, float] | None = None,
    heartbeat_interval: float = SSE_HEARTBEAT_INTERVAL,
) -> AsyncIterator[dict]:
    """单条实时连接的事件生成器

    1. 在 LiveHub 建立连接；首条连接时登记到 RoomResolver
    2. 推送 connection:established（含未送达通知数）
    3. 循环推送队列事件，超时发送心跳；队列被摘除（慢消费者）时结束流
    4. 断开时清理；最后一条连接断开则注销
    """
    queue = hub.connect(contractor_id)
    try:
        if not resolver.is_connected(contractor_id):
            contractor = await store_group.contractor_store.get_contractor(contractor_id)
            resolver.register(
                contractor_id,
                skills=contractor.skills if contractor else [],
                position=position,
            )
        elif position is not None:
            resolver.update_position(contractor_id, *position)

        undelivered = await ledger.list_undelivered(contractor_id)
        yield _to_sse(
            LiveEvent(
                event=LiveEventType.CONNECTION_ESTABLISHED,
                payload={
                    "contractor_id": contractor_id,
                    "undelivered": len(undelivered),
                    "timestamp": datetime.now(UTC).isoformat(),
                },
            )
        )

        while True:
            try:
                live_event = await asyncio.wait_for(
                    queue.get(), timeout=heartbeat_interval
                )
            except TimeoutError:
                yield {"comment": "heartbeat"}
                continue

            if live_event is CLOSE_STREAM:
                # 已被 LiveHub 摘除，结束流让客户端重连并回放未送达通知
                log.warning("live_stream_evicted", contractor_id=contractor_id)
                return
            yield _to_sse(live_event)
    finally:
        if not hub.disconnect(contractor_id, queue):
            resolver.unregister(contractor_id)


@router.get("/api/stream")
async def stream_live_events(
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    contractor_id: str = Depends(get_contractor_id),
    hub: LiveHub = Depends(get_live_hub),
    resolver: RoomResolver = Depends(get_room_resolver),
    store_group: StoreGroup = Depends(get_store_group),
    ledger: NotificationLedger = Depends(get_ledger),
):
    """SSE 实时事件流"""
    position = (lat, lng) if lat is not None and lng is not None else None
    return EventSourceResponse(
        live_events(contractor_id, hub, resolver, store_group, ledger, position)
    )


@router.post("/api/stream/location")
async def update_location(
    body: LocationUpdate,
    contractor_id: str = Depends(get_contractor_id),
    resolver: RoomResolver = Depends(get_room_resolver),
):
    """更新位置；未建立实时连接时返回 404"""
    if not resolver.update_position(contractor_id, body.lat, body.lng):
        return error_response(
            404,
            "NOT_CONNECTED",
            f"Contractor {contractor_id} has no live connection",
        )
    log.info("contractor_location_updated", contractor_id=contractor_id)
    return {"contractor_id": contractor_id, "lat": body.lat, "lng": body.lng}


@router.get("/api/stream/stats")
async def connection_stats(
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    return broadcaster.connection_stats()
