"""Store Protocol 接口定义

定义 TaskStore、NotificationStore、ContractorDirectory 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

import asyncio
from datetime import datetime
from typing import Protocol

from ..models.contractor import Contractor
from ..models.enums import TaskStatus, TaskType
from ..models.notification import (
    Notification,
    NotificationFilters,
    NotificationPage,
    NotificationStats,
)
from ..models.task import Task, TaskPage


class TaskStore(Protocol):
    """Task 存储接口

    claim_task 必须是单条条件写入：只有一个并发调用能成功。
    """

    write_lock: asyncio.Lock

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def save_task(self, task: Task) -> None:
        """整行覆盖写入（非条件写）"""
        ...

    async def claim_task(
        self,
        task_id: str,
        contractor_id: str,
        claimed_at: datetime,
    ) -> Task | None:
        """原子认领，条件不满足时返回 None"""
        ...

    async def list_available_near(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        task_types: list[TaskType] | None,
        exclude_contractor: str | None,
        page: int,
        limit: int,
    ) -> TaskPage:
        """按距离升序的地理查询"""
        ...

    async def list_pending_unassigned(
        self,
        task_types: list[TaskType] | None,
        page: int,
        limit: int,
    ) -> TaskPage:
        """无指派人的 Pending 任务"""
        ...

    async def list_for_contractor(
        self,
        contractor_id: str,
        statuses: list[TaskStatus] | None,
        page: int,
        limit: int,
    ) -> TaskPage:
        """指派给某承包商的任务"""
        ...


class NotificationStore(Protocol):
    """Notification 存储接口"""

    write_lock: asyncio.Lock

    async def insert_notification(self, notification: Notification) -> None:
        """插入一条通知"""
        ...

    async def get_notification(self, notification_id: str) -> Notification | None:
        """根据 notification_id 查询"""
        ...

    async def list_notifications(
        self,
        filters: NotificationFilters,
        now: datetime,
    ) -> NotificationPage:
        """分页查询"""
        ...

    async def list_undelivered(
        self,
        contractor_id: str,
        now: datetime,
        cap: int,
    ) -> list[Notification]:
        """未送达通知"""
        ...

    async def mark_delivered(
        self,
        notification_id: str,
        contractor_id: str | None,
        now: datetime,
    ) -> bool:
        """标记送达（幂等）"""
        ...

    async def mark_read(
        self,
        notification_ids: list[str],
        contractor_id: str,
        now: datetime,
    ) -> int:
        """标记已读（幂等），返回匹配数"""
        ...

    async def delete_notification(
        self,
        notification_id: str,
        contractor_id: str,
    ) -> bool:
        """删除一条通知"""
        ...

    async def get_stats(self, contractor_id: str, now: datetime) -> NotificationStats:
        """通知统计"""
        ...

    async def delete_read_before(self, cutoff: datetime) -> int:
        """清理已读旧通知"""
        ...

    async def delete_expired(self, now: datetime) -> int:
        """清理过期通知"""
        ...


class ContractorDirectory(Protocol):
    """承包商目录接口（外部协作方）"""

    async def get_contractor(self, contractor_id: str) -> Contractor | None:
        """根据 contractor_id 查询"""
        ...

    async def upsert_contractor(self, contractor: Contractor) -> None:
        """同步外部目录的一条记录"""
        ...
