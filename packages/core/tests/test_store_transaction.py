"""事务一致性单元测试

测试内容：
1. 批量通知整批提交
2. 任一条失败时整批回滚
3. 共享连接上的并发提交不会拆开失败批次
"""

import asyncio
from datetime import UTC, datetime

import aiosqlite
import pytest
from fieldops.core.models import Notification, NotificationType, TaskStatus
from fieldops.core.store.transaction import (
    insert_notifications_atomically,
    save_task_and_commit,
)
from ulid import ULID


def _notification(contractor_id: str, notification_id: str | None = None) -> Notification:
    return Notification(
        notification_id=notification_id or str(ULID()),
        contractor_id=contractor_id,
        type=NotificationType.SYSTEM,
        title="Maintenance window",
        message="The dispatch system restarts at 02:00",
        created_at=datetime.now(UTC),
    )


async def _count_notifications(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) FROM notifications")
    row = await cursor.fetchone()
    return row[0]


class TestTransactionAtomicity:
    """事务一致性测试"""

    async def test_bulk_insert_commits_all(self, store_group):
        batch = [_notification(f"c-{i}") for i in range(3)]
        await insert_notifications_atomically(
            store_group.conn, store_group.notification_store, batch
        )
        assert await _count_notifications(store_group.conn) == 3

    async def test_bulk_insert_rolls_back_on_failure(self, store_group):
        """主键冲突导致整批回滚"""
        duplicate_id = str(ULID())
        batch = [
            _notification("c-1", duplicate_id),
            _notification("c-2"),
            _notification("c-3", duplicate_id),
        ]
        with pytest.raises(aiosqlite.IntegrityError):
            await insert_notifications_atomically(
                store_group.conn, store_group.notification_store, batch
            )
        assert await _count_notifications(store_group.conn) == 0

    async def test_save_task_and_commit_creates(self, store_group, make_task):
        task = make_task()
        await save_task_and_commit(
            store_group.conn, store_group.task_store, task, create=True
        )
        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded is not None
        assert loaded.status == TaskStatus.PENDING

    async def test_duplicate_create_rolls_back(self, store_group, make_task):
        task = make_task()
        await save_task_and_commit(
            store_group.conn, store_group.task_store, task, create=True
        )
        with pytest.raises(aiosqlite.IntegrityError):
            await save_task_and_commit(
                store_group.conn, store_group.task_store, task, create=True
            )
        cursor = await store_group.conn.execute("SELECT COUNT(*) FROM tasks")
        row = await cursor.fetchone()
        assert row[0] == 1

    async def test_concurrent_writer_waits_for_batch(self, store_group, make_contractor):
        """同连接上的并发提交排在批量事务之后，失败批次不会部分落库"""
        duplicate_id = str(ULID())
        batch = [
            _notification("c-1", duplicate_id),
            _notification("c-2"),
            _notification("c-3", duplicate_id),
            _notification("c-4"),
        ]
        results = await asyncio.gather(
            insert_notifications_atomically(
                store_group.conn, store_group.notification_store, batch
            ),
            store_group.contractor_store.upsert_contractor(make_contractor("c-9")),
            store_group.notification_store.delete_expired(datetime.now(UTC)),
            return_exceptions=True,
        )

        assert isinstance(results[0], aiosqlite.IntegrityError)
        assert results[1] is None
        assert await _count_notifications(store_group.conn) == 0
        assert await store_group.contractor_store.get_contractor("c-9") is not None

    async def test_stores_share_group_lock(self, store_group):
        lock = store_group.write_lock
        assert store_group.task_store.write_lock is lock
        assert store_group.notification_store.write_lock is lock
        assert store_group.contractor_store.write_lock is lock
