"""实时事件 Payload 子类型

所有任务事件都携带 task_id 和 order_id，客户端据此对账。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import NotificationPriority, TaskPriority, TaskStatus, TaskType
from .task import GeoPoint, Task


class TaskEventPayload(BaseModel):
    """task:new / task:assigned 事件 payload"""

    task_id: str
    order_id: str
    type: TaskType
    title: str = ""
    description: str
    priority: TaskPriority
    scheduled_at: datetime
    location: GeoPoint | None = None
    address: str = ""
    status: TaskStatus

    @classmethod
    def from_task(cls, task: Task) -> "TaskEventPayload":
        return cls(
            task_id=task.task_id,
            order_id=task.order_id,
            type=task.type,
            title=task.title,
            description=task.description,
            priority=task.priority,
            scheduled_at=task.scheduled_at,
            location=task.location,
            address=task.address,
            status=task.status,
        )


class TaskClaimedPayload(BaseModel):
    """task:claimed 事件 payload（发给认领者以外的所有人）"""

    task_id: str
    order_id: str
    type: TaskType
    description: str
    claimed_by: str
    claimed_at: datetime


class TaskUpdatedPayload(BaseModel):
    """task:updated 事件 payload"""

    task_id: str
    order_id: str
    type: TaskType
    description: str
    status: TaskStatus
    previous_status: TaskStatus
    updated_by: str
    updated_at: datetime


class TaskCompletedPayload(BaseModel):
    """task:completed 事件 payload"""

    task_id: str
    order_id: str
    type: TaskType
    description: str
    status: TaskStatus
    completed_at: datetime | None
    completed_by: str
    completion_photos: list[str] = Field(default_factory=list)
    completion_notes: str | None = None


class TaskCancelledPayload(BaseModel):
    """task:cancelled 事件 payload"""

    task_id: str
    order_id: str
    type: TaskType
    description: str
    reason: str
    cancelled_at: datetime


class NotificationEventPayload(BaseModel):
    """notification:system / notification:personal 事件 payload"""

    type: str
    title: str
    message: str
    priority: NotificationPriority
    data: dict[str, Any] | None = None
