"""通知路由

接收者身份来自 X-Contractor-ID，所有查询与标记都限定在本人的通知内。
POST /api/notifications/system 为管理端入口，不要求承包商身份。
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from fieldops.core.config import (
    DEFAULT_PAGE_LIMIT,
    NOTIFICATION_MESSAGE_MAX,
    NOTIFICATION_TITLE_MAX,
    UNDELIVERED_REPLAY_CAP,
)
from fieldops.core.models import (
    Notification,
    NotificationFilters,
    NotificationPage,
    NotificationPriority,
    NotificationStats,
    NotificationType,
)
from pydantic import BaseModel, Field

from ..deps import get_broadcaster, get_contractor_id, get_ledger
from ..responses import error_response
from ..services.broadcaster import RealtimeBroadcaster
from ..services.notification_service import NotificationLedger

router = APIRouter()


class MarkManyReadRequest(BaseModel):
    notification_ids: list[str] = Field(min_length=1)


class SystemNotificationRequest(BaseModel):
    """系统通知请求：target_contractor / target_skills 都为空时全局推送"""

    title: str = Field(min_length=1, max_length=NOTIFICATION_TITLE_MAX)
    message: str = Field(min_length=1, max_length=NOTIFICATION_MESSAGE_MAX)
    priority: NotificationPriority = NotificationPriority.NORMAL
    data: dict[str, Any] | None = None
    target_contractor: str | None = None
    target_skills: list[str] | None = None
    expires_in_hours: float | None = Field(default=None, gt=0)


def _not_found(notification_id: str):
    return error_response(
        404,
        "NOTIFICATION_NOT_FOUND",
        f"Notification with id {notification_id} does not exist",
    )


@router.get("/api/notifications", response_model=NotificationPage)
async def list_notifications(
    type: NotificationType | None = Query(default=None),
    priority: NotificationPriority | None = Query(default=None),
    read: bool | None = Query(default=None),
    delivered: bool | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=100),
    contractor_id: str = Depends(get_contractor_id),
    ledger: NotificationLedger = Depends(get_ledger),
):
    """本人通知，优先级降序、创建时间降序"""
    filters = NotificationFilters(
        contractor_id=contractor_id,
        type=type,
        priority=priority,
        read=read,
        delivered=delivered,
        page=page,
        limit=limit,
    )
    return await ledger.list_notifications(filters)


@router.get("/api/notifications/stats", response_model=NotificationStats)
async def notification_stats(
    contractor_id: str = Depends(get_contractor_id),
    ledger: NotificationLedger = Depends(get_ledger),
):
    return await ledger.stats(contractor_id)


@router.get("/api/notifications/undelivered", response_model=list[Notification])
async def list_undelivered(
    cap: int = Query(default=UNDELIVERED_REPLAY_CAP, ge=1, le=UNDELIVERED_REPLAY_CAP),
    contractor_id: str = Depends(get_contractor_id),
    ledger: NotificationLedger = Depends(get_ledger),
):
    """重连后拉取错过的通知"""
    return await ledger.list_undelivered(contractor_id, cap)


@router.post("/api/notifications/read")
async def mark_many_read(
    body: MarkManyReadRequest,
    contractor_id: str = Depends(get_contractor_id),
    ledger: NotificationLedger = Depends(get_ledger),
):
    matched = await ledger.mark_many_read(body.notification_ids, contractor_id)
    return {"matched": matched}


@router.post("/api/notifications/system")
async def send_system_notification(
    body: SystemNotificationRequest,
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    """系统通知；定向时返回持久化的接收者"""
    recipients = await broadcaster.broadcast_system_notification(
        title=body.title,
        message=body.message,
        priority=body.priority,
        data=body.data,
        target_contractor=body.target_contractor,
        target_skills=body.target_skills,
        expires_in_hours=body.expires_in_hours,
    )
    return {"recipients": recipients}


@router.post("/api/notifications/{notification_id}/delivered")
async def mark_delivered(
    notification_id: str,
    contractor_id: str = Depends(get_contractor_id),
    ledger: NotificationLedger = Depends(get_ledger),
):
    if not await ledger.mark_delivered(notification_id, contractor_id):
        return _not_found(notification_id)
    return {"notification_id": notification_id, "delivered": True}


@router.post("/api/notifications/{notification_id}/read")
async def mark_read(
    notification_id: str,
    contractor_id: str = Depends(get_contractor_id),
    ledger: NotificationLedger = Depends(get_ledger),
):
    if not await ledger.mark_read(notification_id, contractor_id):
        return _not_found(notification_id)
    return {"notification_id": notification_id, "read": True}


@router.delete("/api/notifications/{notification_id}")
async def delete_notification(
    notification_id: str,
    contractor_id: str = Depends(get_contractor_id),
    ledger: NotificationLedger = Depends(get_ledger),
):
    if not await ledger.delete(notification_id, contractor_id):
        return _not_found(notification_id)
    return {"notification_id": notification_id, "deleted": True}
