"""NotificationStore SQLite 实现

送达/已读标记使用 COALESCE 保留首次时间戳，重复调用幂等。
列表查询默认排除已过期记录。
"""

import asyncio
import json
import math
from datetime import datetime

import aiosqlite

from ..models.enums import (
    NOTIFICATION_PRIORITY_RANK,
    NotificationPriority,
    NotificationType,
)
from ..models.notification import (
    Notification,
    NotificationFilters,
    NotificationPage,
    NotificationStats,
)

_NOT_EXPIRED_SQL = "(expires_at IS NULL OR expires_at > ?)"


class SqliteNotificationStore:
    """NotificationStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        self._conn = conn
        # 同一连接上的写事务共用一把锁
        self.write_lock = write_lock or asyncio.Lock()

    async def insert_notification(self, notification: Notification) -> None:
        """插入一条通知（调用方负责 commit）"""
        await self._conn.execute(
            """
            INSERT INTO notifications (
                notification_id, contractor_id, type, priority, priority_rank,
                title, message, data, delivered, delivered_at, read, read_at,
                created_at, expires_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            self._notification_to_params(notification),
        )

    async def get_notification(self, notification_id: str) -> Notification | None:
        """根据 notification_id 查询"""
        cursor = await self._conn.execute(
            "SELECT * FROM notifications WHERE notification_id = ?",
            (notification_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_notification(row)

    async def list_notifications(
        self,
        filters: NotificationFilters,
        now: datetime,
    ) -> NotificationPage:
        """按过滤条件分页查询，优先级降序、创建时间降序"""
        clauses = [_NOT_EXPIRED_SQL]
        params: list = [now.isoformat()]

        if filters.contractor_id is not None:
            clauses.append("contractor_id = ?")
            params.append(filters.contractor_id)
        if filters.type is not None:
            clauses.append("type = ?")
            params.append(filters.type.value)
        if filters.priority is not None:
            clauses.append("priority = ?")
            params.append(filters.priority.value)
        if filters.read is not None:
            clauses.append("read = ?")
            params.append(int(filters.read))
        if filters.delivered is not None:
            clauses.append("delivered = ?")
            params.append(int(filters.delivered))

        where = " AND ".join(clauses)
        cursor = await self._conn.execute(
            f"SELECT COUNT(*) FROM notifications WHERE {where}",
            params,
        )
        row = await cursor.fetchone()
        total = row[0] if row else 0

        cursor = await self._conn.execute(
            f"SELECT * FROM notifications WHERE {where} "
            "ORDER BY priority_rank DESC, created_at DESC LIMIT ? OFFSET ?",
            (*params, filters.limit, (filters.page - 1) * filters.limit),
        )
        rows = await cursor.fetchall()
        return NotificationPage(
            notifications=[self._row_to_notification(r) for r in rows],
            total=total,
            page=filters.page,
            total_pages=math.ceil(total / filters.limit),
        )

    async def list_undelivered(
        self,
        contractor_id: str,
        now: datetime,
        cap: int,
    ) -> list[Notification]:
        """未送达且未过期的通知，优先级降序、创建时间降序，最多 cap 条"""
        cursor = await self._conn.execute(
            f"""
            SELECT * FROM notifications
            WHERE contractor_id = ? AND delivered = 0 AND {_NOT_EXPIRED_SQL}
            ORDER BY priority_rank DESC, created_at DESC
            LIMIT ?
            """,
            (contractor_id, now.isoformat(), cap),
        )
        rows = await cursor.fetchall()
        return [self._row_to_notification(r) for r in rows]

    async def mark_delivered(
        self,
        notification_id: str,
        contractor_id: str | None,
        now: datetime,
    ) -> bool:
        """标记送达；返回是否匹配到记录（重复调用仍返回 True）"""
        sql = (
            "UPDATE notifications "
            "SET delivered = 1, delivered_at = COALESCE(delivered_at, ?) "
            "WHERE notification_id = ?"
        )
        params: list = [now.isoformat(), notification_id]
        if contractor_id is not None:
            sql += " AND contractor_id = ?"
            params.append(contractor_id)
        async with self.write_lock:
            cursor = await self._conn.execute(sql, params)
            await self._conn.commit()
        return cursor.rowcount > 0

    async def mark_read(
        self,
        notification_ids: list[str],
        contractor_id: str,
        now: datetime,
    ) -> int:
        """标记已读；返回匹配到的记录数（含已是已读的记录）"""
        if not notification_ids:
            return 0
        placeholders = ", ".join("?" for _ in notification_ids)
        async with self.write_lock:
            cursor = await self._conn.execute(
                f"""
                UPDATE notifications
                SET read = 1, read_at = COALESCE(read_at, ?)
                WHERE contractor_id = ? AND notification_id IN ({placeholders})
                """,
                (now.isoformat(), contractor_id, *notification_ids),
            )
            await self._conn.commit()
        return cursor.rowcount

    async def delete_notification(
        self,
        notification_id: str,
        contractor_id: str,
    ) -> bool:
        """删除接收者自己的一条通知"""
        async with self.write_lock:
            cursor = await self._conn.execute(
                "DELETE FROM notifications WHERE notification_id = ? AND contractor_id = ?",
                (notification_id, contractor_id),
            )
            await self._conn.commit()
        return cursor.rowcount > 0

    async def get_stats(self, contractor_id: str, now: datetime) -> NotificationStats:
        """单个接收者的通知统计（不含已过期记录）"""
        cursor = await self._conn.execute(
            f"""
            SELECT COUNT(*),
                   COALESCE(SUM(CASE WHEN read = 0 THEN 1 ELSE 0 END), 0),
                   COALESCE(SUM(CASE WHEN delivered = 0 THEN 1 ELSE 0 END), 0)
            FROM notifications
            WHERE contractor_id = ? AND {_NOT_EXPIRED_SQL}
            """,
            (contractor_id, now.isoformat()),
        )
        row = await cursor.fetchone()
        stats = NotificationStats(total=row[0], unread=row[1], undelivered=row[2])

        for column, target in (("type", stats.by_type), ("priority", stats.by_priority)):
            cursor = await self._conn.execute(
                f"""
                SELECT {column}, COUNT(*) FROM notifications
                WHERE contractor_id = ? AND {_NOT_EXPIRED_SQL}
                GROUP BY {column}
                """,
                (contractor_id, now.isoformat()),
            )
            for key, count in await cursor.fetchall():
                target[key] = count

        return stats

    async def delete_read_before(self, cutoff: datetime) -> int:
        """删除 cutoff 之前创建的已读通知；未读通知不受影响"""
        async with self.write_lock:
            cursor = await self._conn.execute(
                "DELETE FROM notifications WHERE read = 1 AND created_at < ?",
                (cutoff.isoformat(),),
            )
            await self._conn.commit()
        return cursor.rowcount

    async def delete_expired(self, now: datetime) -> int:
        """删除已过期的通知"""
        async with self.write_lock:
            cursor = await self._conn.execute(
                "DELETE FROM notifications WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (now.isoformat(),),
            )
            await self._conn.commit()
        return cursor.rowcount

    @staticmethod
    def _notification_to_params(n: Notification) -> tuple:
        return (
            n.notification_id,
            n.contractor_id,
            n.type.value,
            n.priority.value,
            NOTIFICATION_PRIORITY_RANK[n.priority],
            n.title,
            n.message,
            json.dumps(n.data) if n.data is not None else None,
            int(n.delivered),
            n.delivered_at.isoformat() if n.delivered_at else None,
            int(n.read),
            n.read_at.isoformat() if n.read_at else None,
            n.created_at.isoformat(),
            n.expires_at.isoformat() if n.expires_at else None,
        )

    @staticmethod
    def _row_to_notification(row: aiosqlite.Row) -> Notification:
        """将数据库行转换为 Notification 模型"""
        return Notification(
            notification_id=row["notification_id"],
            contractor_id=row["contractor_id"],
            type=NotificationType(row["type"]),
            priority=NotificationPriority(row["priority"]),
            title=row["title"],
            message=row["message"],
            data=json.loads(row["data"]) if row["data"] else None,
            delivered=bool(row["delivered"]),
            delivered_at=(
                datetime.fromisoformat(row["delivered_at"])
                if row["delivered_at"]
                else None
            ),
            read=bool(row["read"]),
            read_at=datetime.fromisoformat(row["read_at"]) if row["read_at"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=(
                datetime.fromisoformat(row["expires_at"]) if row["expires_at"] else None
            ),
        )
