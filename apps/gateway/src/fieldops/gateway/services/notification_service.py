"""NotificationLedger -- 持久化通知账本

实时推送的兜底：每条通知只属于一个接收者，记录送达与已读状态。
重连客户端通过 list_undelivered 拉取错过的通知。
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite
import structlog
from fieldops.core.config import NOTIFICATION_RETENTION_DAYS, UNDELIVERED_REPLAY_CAP
from fieldops.core.exceptions import NotificationStoreError, NotificationValidationError
from fieldops.core.models import (
    Notification,
    NotificationFilters,
    NotificationPage,
    NotificationPriority,
    NotificationStats,
    NotificationTemplate,
    NotificationType,
)
from fieldops.core.store import StoreGroup, insert_notifications_atomically
from pydantic import ValidationError
from ulid import ULID

log = structlog.get_logger()


class NotificationLedger:
    """通知账本

    所有写操作直接提交到 SQLite，不做内存缓存。
    """

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def create(
        self,
        contractor_id: str,
        type: NotificationType | str,
        priority: NotificationPriority | str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        expires_in_hours: float | None = None,
    ) -> Notification:
        """为单个接收者创建通知

        Raises:
            NotificationValidationError: 标题/正文超长或类型/优先级非法
            NotificationStoreError: 写入失败
        """
        template = self._build_template(
            type=type,
            priority=priority,
            title=title,
            message=message,
            data=data,
            expires_in_hours=expires_in_hours,
        )
        notification = self._materialize(contractor_id, template, datetime.now(UTC))
        try:
            await insert_notifications_atomically(
                self._stores.conn,
                self._stores.notification_store,
                [notification],
            )
        except aiosqlite.Error as e:
            log.error(
                "notification_create_failed",
                contractor_id=contractor_id,
                error=str(e),
            )
            raise NotificationStoreError("create notification", e) from e

        log.debug(
            "notification_created",
            notification_id=notification.notification_id,
            contractor_id=contractor_id,
            type=notification.type,
        )
        return notification

    async def create_bulk(
        self,
        contractor_ids: list[str],
        template: NotificationTemplate,
    ) -> list[Notification]:
        """同一内容发给多个接收者，单事务全有或全无

        Raises:
            NotificationStoreError: 写入失败（整批已回滚）
        """
        if not contractor_ids:
            return []

        now = datetime.now(UTC)
        notifications = [
            self._materialize(contractor_id, template, now)
            for contractor_id in contractor_ids
        ]
        try:
            await insert_notifications_atomically(
                self._stores.conn,
                self._stores.notification_store,
                notifications,
            )
        except aiosqlite.Error as e:
            log.error(
                "notification_bulk_create_failed",
                recipients=len(contractor_ids),
                error=str(e),
            )
            raise NotificationStoreError("create bulk notifications", e) from e

        log.info(
            "notifications_bulk_created",
            recipients=len(notifications),
            type=template.type,
        )
        return notifications

    async def mark_delivered(
        self,
        notification_id: str,
        contractor_id: str | None = None,
    ) -> bool:
        """标记送达（幂等）；给定 contractor_id 时只匹配该接收者"""
        return await self._stores.notification_store.mark_delivered(
            notification_id, contractor_id, datetime.now(UTC)
        )

    async def mark_read(self, notification_id: str, contractor_id: str) -> bool:
        """标记已读（幂等）"""
        matched = await self._stores.notification_store.mark_read(
            [notification_id], contractor_id, datetime.now(UTC)
        )
        return matched > 0

    async def mark_many_read(
        self,
        notification_ids: list[str],
        contractor_id: str,
    ) -> int:
        """批量标记已读，返回匹配到的记录数"""
        return await self._stores.notification_store.mark_read(
            notification_ids, contractor_id, datetime.now(UTC)
        )

    async def list_undelivered(
        self,
        contractor_id: str,
        cap: int = UNDELIVERED_REPLAY_CAP,
    ) -> list[Notification]:
        return await self._stores.notification_store.list_undelivered(
            contractor_id, datetime.now(UTC), cap
        )

    async def stats(self, contractor_id: str) -> NotificationStats:
        return await self._stores.notification_store.get_stats(
            contractor_id, datetime.now(UTC)
        )

    async def delete(self, notification_id: str, contractor_id: str) -> bool:
        """删除接收者自己的通知"""
        return await self._stores.notification_store.delete_notification(
            notification_id, contractor_id
        )

    async def cleanup(self, older_than_days: int = NOTIFICATION_RETENTION_DAYS) -> int:
        """删除 older_than_days 天前创建的已读通知"""
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        deleted = await self._stores.notification_store.delete_read_before(cutoff)
        log.info(
            "notifications_cleaned_up",
            deleted=deleted,
            older_than_days=older_than_days,
        )
        return deleted

    async def purge_expired(self) -> int:
        deleted = await self._stores.notification_store.delete_expired(datetime.now(UTC))
        log.info("notifications_expired_purged", deleted=deleted)
        return deleted

    async def list_notifications(self, filters: NotificationFilters) -> NotificationPage:
        """分页查询，优先级降序、创建时间降序，排除已过期记录"""
        return await self._stores.notification_store.list_notifications(
            filters, datetime.now(UTC)
        )

    @staticmethod
    def _build_template(**fields: Any) -> NotificationTemplate:
        try:
            return NotificationTemplate(**fields)
        except ValidationError as e:
            raise NotificationValidationError(str(e)) from e

    @staticmethod
    def _materialize(
        contractor_id: str,
        template: NotificationTemplate,
        now: datetime,
    ) -> Notification:
        expires_at = None
        if template.expires_in_hours is not None:
            expires_at = now + timedelta(hours=template.expires_in_hours)
        return Notification(
            notification_id=str(ULID()),
            contractor_id=contractor_id,
            type=template.type,
            priority=template.priority,
            title=template.title,
            message=template.message,
            data=template.data,
            created_at=now,
            expires_at=expires_at,
        )

    list = list_notifications
