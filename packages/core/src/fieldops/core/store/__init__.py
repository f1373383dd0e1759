"""FieldOps Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from pathlib import Path

import aiosqlite

from .contractor_store import SqliteContractorStore
from .notification_store import SqliteNotificationStore
from .protocols import ContractorDirectory, NotificationStore, TaskStore
from .sqlite_init import init_db
from .task_store import SqliteTaskStore
from .transaction import insert_notifications_atomically, save_task_and_commit


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        # commit/rollback 作用于整个连接，所有写事务在这把锁上串行
        self.write_lock = asyncio.Lock()
        self.task_store: TaskStore = SqliteTaskStore(conn, self.write_lock)
        self.notification_store: NotificationStore = SqliteNotificationStore(
            conn, self.write_lock
        )
        self.contractor_store: ContractorDirectory = SqliteContractorStore(
            conn, self.write_lock
        )


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteNotificationStore",
    "SqliteContractorStore",
    "init_db",
    "insert_notifications_atomically",
    "save_task_and_commit",
]
