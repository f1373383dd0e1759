"""多行写入的原子事务封装

批量通知要么全部落库，要么全部回滚。
事务期间持有 store 的 write_lock，共享连接上的其他写操作不会插入提交。
"""

import aiosqlite

from ..models.notification import Notification
from ..models.task import Task
from .notification_store import SqliteNotificationStore
from .task_store import SqliteTaskStore


async def insert_notifications_atomically(
    conn: aiosqlite.Connection,
    notification_store: SqliteNotificationStore,
    notifications: list[Notification],
) -> None:
    """在同一事务内写入一批通知

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        notification_store: NotificationStore 实例
        notifications: 待写入的通知

    Raises:
        Exception: 任一条写入失败时整批回滚后重新抛出
    """
    async with notification_store.write_lock:
        try:
            for notification in notifications:
                await notification_store.insert_notification(notification)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise


async def save_task_and_commit(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    task: Task,
    *,
    create: bool = False,
) -> None:
    """写入单个任务并提交

    Args:
        conn: 数据库连接
        task_store: TaskStore 实例
        task: 待写入的任务
        create: True 为新建，False 为整行覆盖
    """
    async with task_store.write_lock:
        try:
            if create:
                await task_store.create_task(task)
            else:
                await task_store.save_task(task)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
