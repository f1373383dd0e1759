"""RealtimeBroadcaster -- 实时事件分发 + 通知持久化

解析目标 -> LiveHub 推送 -> 为每个具体接收者写一条通知。
实时推送是尽力而为的旁路：语义方法自行记录并吞掉失败，
任务状态早已独立提交，不受影响。
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from fieldops.core.config import (
    NEW_TASK_BROADCAST_RADIUS_KM,
    NEW_TASK_NOTIFICATION_TTL_HOURS,
)
from fieldops.core.models import (
    LiveEventType,
    Notification,
    NotificationEventPayload,
    NotificationPriority,
    NotificationTemplate,
    NotificationType,
    Task,
    TaskCancelledPayload,
    TaskClaimedPayload,
    TaskCompletedPayload,
    TaskEventPayload,
    TaskPriority,
    TaskStatus,
    TaskUpdatedPayload,
)
from pydantic import BaseModel, Field

from .live_hub import LiveHub
from .notification_service import NotificationLedger
from .room_resolver import RoomResolver

log = structlog.get_logger()

# 状态 -> (通知标题, 正文模板, 优先级)
_STATUS_NOTIFICATIONS: dict[TaskStatus, tuple[str, str, NotificationPriority]] = {
    TaskStatus.IN_PROGRESS: (
        "Task Started",
        "You have started working on: {description}",
        NotificationPriority.NORMAL,
    ),
    TaskStatus.COMPLETED: (
        "Task Completed",
        "You have completed: {description}",
        NotificationPriority.HIGH,
    ),
    TaskStatus.CANCELLED: (
        "Task Cancelled",
        "Task has been cancelled: {description}",
        NotificationPriority.HIGH,
    ),
}


class LocationTarget(BaseModel):
    """按地理位置定向"""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    radius_km: float = Field(gt=0)


class Targeting(BaseModel):
    """广播定向条件

    解析顺序：target_contractor > location（有 skills 时取交集）> skills > 全局。
    exclude_contractor 对所有解析结果生效。
    """

    target_contractor: str | None = None
    exclude_contractor: str | None = None
    location: LocationTarget | None = None
    skills: list[str] | None = None


def _truncate(text: str, limit: int = 100) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _task_data(task: Task, **extra: Any) -> dict[str, Any]:
    """通知 data 字段的公共部分"""
    data: dict[str, Any] = {
        "task_id": task.task_id,
        "order_id": task.order_id,
        "task_type": task.type.value,
    }
    data.update(extra)
    return data


class RealtimeBroadcaster:
    """实时广播器"""

    def __init__(
        self,
        hub: LiveHub,
        resolver: RoomResolver,
        ledger: NotificationLedger,
    ) -> None:
        self._hub = hub
        self._resolver = resolver
        self._ledger = ledger

    async def broadcast_event(
        self,
        event_name: str,
        payload: dict[str, Any],
        targeting: Targeting | None = None,
        notification: NotificationTemplate | None = None,
    ) -> list[str]:
        """推送事件并为具体接收者持久化通知

        Args:
            event_name: 事件名（如 task:new）
            payload: 事件内容
            targeting: 定向条件，None 表示全局
            notification: 通知模板；仅在解析出具体接收者时写入

        Returns:
            具体接收者列表（全局广播返回空列表）

        Raises:
            NotificationStoreError: 通知写入失败（实时推送已完成）
        """
        targeting = targeting or Targeting()
        stamped = {**payload, "timestamp": datetime.now(UTC).isoformat()}
        recipients = self.resolve_recipients(targeting)

        if recipients is None:
            reached = self._hub.broadcast_to_all(
                event_name, stamped, exclude=targeting.exclude_contractor
            )
            log.info(
                "live_event_broadcast_global", live_event=event_name, reached=reached
            )
            return []

        reached = 0
        for contractor_id in recipients:
            reached += self._hub.send_to_connection(contractor_id, event_name, stamped)
        log.info(
            "live_event_broadcast_targeted",
            live_event=event_name,
            recipients=len(recipients),
            reached=reached,
        )

        if notification is not None and recipients:
            await self._persist(recipients, notification)
        return recipients

    def resolve_recipients(self, targeting: Targeting) -> list[str] | None:
        """解析具体接收者；None 表示全局广播"""
        if targeting.target_contractor:
            candidates = [targeting.target_contractor]
        elif targeting.location is not None:
            loc = targeting.location
            candidates = self._resolver.contractors_in_location(
                loc.lat, loc.lng, loc.radius_km
            )
            if targeting.skills:
                skilled = set(self._resolver.contractors_with_skills(targeting.skills))
                candidates = [c for c in candidates if c in skilled]
        elif targeting.skills:
            candidates = self._resolver.contractors_with_skills(targeting.skills)
        else:
            return None

        return [c for c in candidates if c != targeting.exclude_contractor]

    async def _persist(
        self,
        recipients: list[str],
        template: NotificationTemplate,
    ) -> list[Notification]:
        if len(recipients) == 1:
            notification = await self._ledger.create(
                contractor_id=recipients[0],
                type=template.type,
                priority=template.priority,
                title=template.title,
                message=template.message,
                data=template.data,
                expires_in_hours=template.expires_in_hours,
            )
            return [notification]
        return await self._ledger.create_bulk(recipients, template)

    # ---- 语义事件 ----

    async def broadcast_new_task(self, task: Task) -> None:
        """新任务：按地点 + 任务类型技能定向"""
        try:
            location = None
            if task.location is not None:
                location = LocationTarget(
                    lat=task.location.lat,
                    lng=task.location.lng,
                    radius_km=NEW_TASK_BROADCAST_RADIUS_KM,
                )
            template = NotificationTemplate(
                type=NotificationType.TASK,
                priority=(
                    NotificationPriority.HIGH
                    if task.priority == TaskPriority.HIGH
                    else NotificationPriority.NORMAL
                ),
                title=f"New {task.type.value} Task Available",
                message=_truncate(task.description) or task.title or task.order_id,
                data=_task_data(
                    task,
                    location=(
                        task.location.model_dump() if task.location else None
                    ),
                    address=task.address,
                ),
                expires_in_hours=NEW_TASK_NOTIFICATION_TTL_HOURS,
            )
            recipients = await self.broadcast_event(
                LiveEventType.TASK_NEW,
                TaskEventPayload.from_task(task).model_dump(mode="json"),
                Targeting(location=location, skills=[task.type.value]),
                notification=template,
            )
            log.info(
                "new_task_broadcast",
                task_id=task.task_id,
                recipients=len(recipients),
            )
        except Exception as e:
            log.error("new_task_broadcast_failed", task_id=task.task_id, error=str(e))

    async def broadcast_task_assigned(self, task: Task, contractor_id: str) -> None:
        try:
            await self.broadcast_event(
                LiveEventType.TASK_ASSIGNED,
                TaskEventPayload.from_task(task).model_dump(mode="json"),
                Targeting(target_contractor=contractor_id),
                notification=NotificationTemplate(
                    type=NotificationType.TASK,
                    priority=NotificationPriority.HIGH,
                    title=f"Task Assigned: {task.type.value}",
                    message=f"You have been assigned to: {task.description}"[:1000],
                    data=_task_data(
                        task,
                        scheduled_at=task.scheduled_at.isoformat(),
                        address=task.address,
                    ),
                ),
            )
        except Exception as e:
            log.error(
                "task_assigned_broadcast_failed",
                task_id=task.task_id,
                contractor_id=contractor_id,
                error=str(e),
            )

    async def broadcast_task_claimed(self, task: Task, contractor_id: str) -> None:
        """认领成功：其他人收到 task:claimed，认领者收到 task:assigned"""
        try:
            claimed = TaskClaimedPayload(
                task_id=task.task_id,
                order_id=task.order_id,
                type=task.type,
                description=task.description,
                claimed_by=contractor_id,
                claimed_at=datetime.now(UTC),
            )
            await self.broadcast_event(
                LiveEventType.TASK_CLAIMED,
                claimed.model_dump(mode="json"),
                Targeting(exclude_contractor=contractor_id),
            )
            await self.broadcast_event(
                LiveEventType.TASK_ASSIGNED,
                TaskEventPayload.from_task(task).model_dump(mode="json"),
                Targeting(target_contractor=contractor_id),
                notification=NotificationTemplate(
                    type=NotificationType.TASK,
                    priority=NotificationPriority.HIGH,
                    title="Task Claimed Successfully",
                    message=f"You have successfully claimed: {task.description}"[:1000],
                    data=_task_data(
                        task,
                        scheduled_at=task.scheduled_at.isoformat(),
                        address=task.address,
                    ),
                ),
            )
        except Exception as e:
            log.error(
                "task_claimed_broadcast_failed",
                task_id=task.task_id,
                contractor_id=contractor_id,
                error=str(e),
            )

    async def broadcast_task_status_update(
        self,
        task: Task,
        previous_status: TaskStatus,
        contractor_id: str,
    ) -> None:
        try:
            title, template, priority = _STATUS_NOTIFICATIONS.get(
                task.status,
                (
                    "Task Status Updated",
                    f"Task status changed to {task.status.value}: {{description}}",
                    NotificationPriority.NORMAL,
                ),
            )
            payload = TaskUpdatedPayload(
                task_id=task.task_id,
                order_id=task.order_id,
                type=task.type,
                description=task.description,
                status=task.status,
                previous_status=previous_status,
                updated_by=contractor_id,
                updated_at=datetime.now(UTC),
            )
            await self.broadcast_event(
                LiveEventType.TASK_UPDATED,
                payload.model_dump(mode="json"),
                Targeting(target_contractor=contractor_id),
                notification=NotificationTemplate(
                    type=NotificationType.TASK,
                    priority=priority,
                    title=title,
                    message=template.format(description=task.description)[:1000],
                    data=_task_data(
                        task,
                        status=task.status.value,
                        previous_status=previous_status.value,
                        address=task.address,
                    ),
                ),
            )
        except Exception as e:
            log.error(
                "task_status_broadcast_failed",
                task_id=task.task_id,
                contractor_id=contractor_id,
                error=str(e),
            )

    async def broadcast_task_completed(self, task: Task, contractor_id: str) -> None:
        try:
            payload = TaskCompletedPayload(
                task_id=task.task_id,
                order_id=task.order_id,
                type=task.type,
                description=task.description,
                status=task.status,
                completed_at=task.completed_at,
                completed_by=contractor_id,
                completion_photos=task.completion_photos,
                completion_notes=task.completion_notes,
            )
            message = (
                f"Congratulations! You have completed: {task.description}. "
                "Task completion has been recorded."
            )
            await self.broadcast_event(
                LiveEventType.TASK_COMPLETED,
                payload.model_dump(mode="json"),
                Targeting(target_contractor=contractor_id),
                notification=NotificationTemplate(
                    type=NotificationType.TASK,
                    priority=NotificationPriority.HIGH,
                    title="Task Completed Successfully",
                    message=message[:1000],
                    data=_task_data(
                        task,
                        completed_at=(
                            task.completed_at.isoformat() if task.completed_at else None
                        ),
                        completion_photos=task.completion_photos,
                    ),
                ),
            )
        except Exception as e:
            log.error(
                "task_completed_broadcast_failed",
                task_id=task.task_id,
                contractor_id=contractor_id,
                error=str(e),
            )

    async def broadcast_task_cancelled(
        self,
        task: Task,
        reason: str,
        contractor_ids: list[str],
    ) -> None:
        """逐个通知受影响的承包商（每人一条事件 + 一条通知）"""
        try:
            for contractor_id in contractor_ids:
                cancelled_at = datetime.now(UTC)
                payload = TaskCancelledPayload(
                    task_id=task.task_id,
                    order_id=task.order_id,
                    type=task.type,
                    description=task.description,
                    reason=reason,
                    cancelled_at=cancelled_at,
                )
                await self.broadcast_event(
                    LiveEventType.TASK_CANCELLED,
                    payload.model_dump(mode="json"),
                    Targeting(target_contractor=contractor_id),
                    notification=NotificationTemplate(
                        type=NotificationType.TASK,
                        priority=NotificationPriority.HIGH,
                        title="Task Cancelled",
                        message=(
                            f"Task has been cancelled: {task.description}. "
                            f"Reason: {reason}"
                        )[:1000],
                        data=_task_data(
                            task,
                            reason=reason,
                            cancelled_at=cancelled_at.isoformat(),
                        ),
                    ),
                )
            log.info(
                "task_cancelled_broadcast",
                task_id=task.task_id,
                affected=len(contractor_ids),
            )
        except Exception as e:
            log.error(
                "task_cancelled_broadcast_failed",
                task_id=task.task_id,
                error=str(e),
            )

    async def broadcast_system_notification(
        self,
        title: str,
        message: str,
        priority: NotificationPriority | str = NotificationPriority.NORMAL,
        data: dict[str, Any] | None = None,
        target_contractor: str | None = None,
        target_skills: list[str] | None = None,
        expires_in_hours: float | None = None,
    ) -> list[str]:
        """系统通知：定向时逐人持久化，全局时仅实时推送

        Returns:
            持久化的接收者列表；失败时返回空列表
        """
        try:
            template = NotificationTemplate(
                type=NotificationType.SYSTEM,
                priority=priority,
                title=title,
                message=message,
                data=data,
                expires_in_hours=expires_in_hours,
            )
            payload = NotificationEventPayload(
                type=NotificationType.SYSTEM.value,
                title=template.title,
                message=template.message,
                priority=template.priority,
                data=data,
            )
            return await self.broadcast_event(
                LiveEventType.NOTIFICATION_SYSTEM,
                payload.model_dump(mode="json"),
                Targeting(target_contractor=target_contractor, skills=target_skills),
                notification=template,
            )
        except Exception as e:
            log.error("system_notification_failed", title=title, error=str(e))
            return []

    async def send_personal_notification(
        self,
        contractor_id: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        priority: NotificationPriority | str = NotificationPriority.NORMAL,
    ) -> None:
        try:
            template = NotificationTemplate(
                type=NotificationType.PERSONAL,
                priority=priority,
                title=title,
                message=message,
                data=data,
            )
            payload = NotificationEventPayload(
                type=NotificationType.PERSONAL.value,
                title=template.title,
                message=template.message,
                priority=template.priority,
                data=data,
            )
            await self.broadcast_event(
                LiveEventType.NOTIFICATION_PERSONAL,
                payload.model_dump(mode="json"),
                Targeting(target_contractor=contractor_id),
                notification=template,
            )
        except Exception as e:
            log.error(
                "personal_notification_failed",
                contractor_id=contractor_id,
                error=str(e),
            )

    def connection_stats(self) -> dict[str, Any]:
        """在线连接统计"""
        return {
            "connections": self._hub.connection_count(),
            "contractors": len(self._hub.connected_contractors()),
            "resolver": self._resolver.stats(),
        }
