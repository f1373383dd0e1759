"""Notification Domain Model

每条通知只属于一个接收者。
delivered_at / read_at 只在首次 false -> true 时写入。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..config import NOTIFICATION_MESSAGE_MAX, NOTIFICATION_TITLE_MAX
from .enums import NotificationPriority, NotificationType


class NotificationTemplate(BaseModel):
    """不含接收者的通知内容，用于单发和批量创建"""

    type: NotificationType
    priority: NotificationPriority = NotificationPriority.NORMAL
    title: str = Field(min_length=1, max_length=NOTIFICATION_TITLE_MAX)
    message: str = Field(min_length=1, max_length=NOTIFICATION_MESSAGE_MAX)
    data: dict[str, Any] | None = None
    expires_in_hours: float | None = Field(default=None, gt=0)


class Notification(BaseModel):
    """Notification 数据模型"""

    notification_id: str = Field(description="唯一标识，ULID 格式")
    contractor_id: str = Field(description="接收者")
    type: NotificationType
    priority: NotificationPriority = NotificationPriority.NORMAL
    title: str = Field(max_length=NOTIFICATION_TITLE_MAX)
    message: str = Field(max_length=NOTIFICATION_MESSAGE_MAX)
    data: dict[str, Any] | None = None
    delivered: bool = False
    delivered_at: datetime | None = None
    read: bool = False
    read_at: datetime | None = None
    created_at: datetime
    expires_at: datetime | None = None


class NotificationFilters(BaseModel):
    """通知查询条件"""

    contractor_id: str | None = None
    type: NotificationType | None = None
    priority: NotificationPriority | None = None
    read: bool | None = None
    delivered: bool | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class NotificationPage(BaseModel):
    """分页通知结果"""

    notifications: list[Notification] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0


class NotificationStats(BaseModel):
    """单个接收者的通知统计"""

    total: int = 0
    unread: int = 0
    undelivered: int = 0
    by_type: dict[str, int] = Field(
        default_factory=lambda: {t.value: 0 for t in NotificationType}
    )
    by_priority: dict[str, int] = Field(
        default_factory=lambda: {p.value: 0 for p in NotificationPriority}
    )
