"""TaskStore SQLite 实现

认领走单条条件 UPDATE（compare-and-set），并发认领只有一个能命中。
其余状态写入为普通整行覆盖，调用方负责先做流转校验。
"""

import asyncio
import json
import math
from datetime import datetime

import aiosqlite

from ..models.enums import TASK_PRIORITY_RANK, TaskStatus, TaskType
from ..models.task import GeoPoint, Task, TaskPage

# 优先级降序排序表达式（High > Medium > Low）
_PRIORITY_ORDER_SQL = (
    "CASE priority "
    + " ".join(
        f"WHEN '{priority.value}' THEN {rank}"
        for priority, rank in TASK_PRIORITY_RANK.items()
    )
    + " ELSE 0 END"
)

_TASK_COLUMNS = (
    "task_id, order_id, type, title, description, priority, status, "
    "assigned_contractors, assigned_to, lng, lat, address, scheduled_at, "
    "completed_at, completion_notes, completion_photos, created_at, updated_at"
)


def _total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        self._conn = conn
        # 同一连接上的写事务共用一把锁
        self.write_lock = write_lock or asyncio.Lock()

    async def create_task(self, task: Task) -> None:
        """创建任务记录（调用方负责 commit）"""
        await self._conn.execute(
            f"INSERT INTO tasks ({_TASK_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._task_to_params(task),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def save_task(self, task: Task) -> None:
        """整行覆盖写入（非条件写，调用方负责 commit）"""
        await self._conn.execute(
            """
            UPDATE tasks
            SET status = ?, assigned_contractors = ?, assigned_to = ?,
                completed_at = ?, completion_notes = ?, completion_photos = ?,
                updated_at = ?
            WHERE task_id = ?
            """,
            (
                task.status.value,
                json.dumps(task.assigned_contractors),
                task.assigned_to,
                task.completed_at.isoformat() if task.completed_at else None,
                task.completion_notes,
                json.dumps(task.completion_photos),
                task.updated_at.isoformat(),
                task.task_id,
            ),
        )

    async def claim_task(
        self,
        task_id: str,
        contractor_id: str,
        claimed_at: datetime,
    ) -> Task | None:
        """原子认领：仅当任务仍为 Pending 且未包含该承包商时写入

        Args:
            task_id: 任务 ID
            contractor_id: 认领者
            claimed_at: 认领时间

        Returns:
            认领后的任务；条件不满足（已被抢先认领）时返回 None
        """
        async with self.write_lock:
            try:
                cursor = await self._conn.execute(
                    """
                    UPDATE tasks
                    SET status = ?,
                        assigned_contractors = json_insert(assigned_contractors, '$[#]', ?),
                        assigned_to = ?,
                        updated_at = ?
                    WHERE task_id = ?
                      AND status = ?
                      AND NOT EXISTS (
                          SELECT 1 FROM json_each(tasks.assigned_contractors)
                          WHERE value = ?
                      )
                    """,
                    (
                        TaskStatus.ASSIGNED.value,
                        contractor_id,
                        contractor_id,
                        claimed_at.isoformat(),
                        task_id,
                        TaskStatus.PENDING.value,
                        contractor_id,
                    ),
                )
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise

        if cursor.rowcount == 0:
            return None
        return await self.get_task(task_id)

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
        """按距离升序列出半径内的可接任务

        Args:
            lat: 查询中心纬度
            lng: 查询中心经度
            radius_km: 半径（公里）
            task_types: 类型过滤；None 或空列表表示不过滤
            exclude_contractor: 排除已指派给该承包商的任务
            page: 页码（从 1 开始）
            limit: 每页条数
        """
        clauses = [
            "status = ?",
            "lat IS NOT NULL",
            "lng IS NOT NULL",
            "haversine_km(?, ?, lat, lng) <= ?",
        ]
        params: list = [TaskStatus.PENDING.value, lat, lng, radius_km]

        if task_types:
            placeholders = ", ".join("?" for _ in task_types)
            clauses.append(f"type IN ({placeholders})")
            params.extend(t.value for t in task_types)

        if exclude_contractor:
            clauses.append(
                "NOT EXISTS (SELECT 1 FROM json_each(tasks.assigned_contractors) "
                "WHERE value = ?)"
            )
            clauses.append("(assigned_to IS NULL OR assigned_to != ?)")
            params.extend([exclude_contractor, exclude_contractor])

        where = " AND ".join(clauses)
        total = await self._count(where, params)

        cursor = await self._conn.execute(
            f"SELECT * FROM tasks WHERE {where} "
            "ORDER BY haversine_km(?, ?, lat, lng) ASC LIMIT ? OFFSET ?",
            (*params, lat, lng, limit, (page - 1) * limit),
        )
        rows = await cursor.fetchall()
        return TaskPage(
            tasks=[self._row_to_task(row) for row in rows],
            total=total,
            page=page,
            total_pages=_total_pages(total, limit),
        )

    async def list_pending_unassigned(
        self,
        task_types: list[TaskType] | None,
        page: int,
        limit: int,
    ) -> TaskPage:
        """列出无指派人的 Pending 任务，优先级降序、计划时间升序"""
        clauses = [
            "status = ?",
            "json_array_length(assigned_contractors) = 0",
            "assigned_to IS NULL",
        ]
        params: list = [TaskStatus.PENDING.value]

        if task_types:
            placeholders = ", ".join("?" for _ in task_types)
            clauses.append(f"type IN ({placeholders})")
            params.extend(t.value for t in task_types)

        where = " AND ".join(clauses)
        total = await self._count(where, params)

        cursor = await self._conn.execute(
            f"SELECT * FROM tasks WHERE {where} "
            f"ORDER BY {_PRIORITY_ORDER_SQL} DESC, scheduled_at ASC "
            "LIMIT ? OFFSET ?",
            (*params, limit, (page - 1) * limit),
        )
        rows = await cursor.fetchall()
        return TaskPage(
            tasks=[self._row_to_task(row) for row in rows],
            total=total,
            page=page,
            total_pages=_total_pages(total, limit),
        )

    async def list_for_contractor(
        self,
        contractor_id: str,
        statuses: list[TaskStatus] | None,
        page: int,
        limit: int,
    ) -> TaskPage:
        """列出指派给某承包商的任务，按计划时间升序"""
        clauses = [
            "(EXISTS (SELECT 1 FROM json_each(tasks.assigned_contractors) "
            "WHERE value = ?) OR assigned_to = ?)"
        ]
        params: list = [contractor_id, contractor_id]
        if statuses:
            placeholders = ", ".join("?" for _ in statuses)
            clauses.append(f"status IN ({placeholders})")
            params.extend(s.value for s in statuses)

        where = " AND ".join(clauses)
        total = await self._count(where, params)

        cursor = await self._conn.execute(
            f"SELECT * FROM tasks WHERE {where} "
            "ORDER BY scheduled_at ASC LIMIT ? OFFSET ?",
            (*params, limit, (page - 1) * limit),
        )
        rows = await cursor.fetchall()
        return TaskPage(
            tasks=[self._row_to_task(row) for row in rows],
            total=total,
            page=page,
            total_pages=_total_pages(total, limit),
        )

    async def _count(self, where: str, params: list) -> int:
        cursor = await self._conn.execute(
            f"SELECT COUNT(*) FROM tasks WHERE {where}",
            params,
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    @staticmethod
    def _task_to_params(task: Task) -> tuple:
        return (
            task.task_id,
            task.order_id,
            task.type.value,
            task.title,
            task.description,
            task.priority.value,
            task.status.value,
            json.dumps(task.assigned_contractors),
            task.assigned_to,
            task.location.lng if task.location else None,
            task.location.lat if task.location else None,
            task.address,
            task.scheduled_at.isoformat(),
            task.completed_at.isoformat() if task.completed_at else None,
            task.completion_notes,
            json.dumps(task.completion_photos),
            task.created_at.isoformat(),
            task.updated_at.isoformat(),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        location = None
        if row["lat"] is not None and row["lng"] is not None:
            location = GeoPoint(lng=row["lng"], lat=row["lat"])
        return Task(
            task_id=row["task_id"],
            order_id=row["order_id"],
            type=row["type"],
            title=row["title"],
            description=row["description"],
            priority=row["priority"],
            status=row["status"],
            assigned_contractors=json.loads(row["assigned_contractors"]),
            assigned_to=row["assigned_to"],
            location=location,
            address=row["address"],
            scheduled_at=datetime.fromisoformat(row["scheduled_at"]),
            completed_at=(
                datetime.fromisoformat(row["completed_at"])
                if row["completed_at"]
                else None
            ),
            completion_notes=row["completion_notes"],
            completion_photos=json.loads(row["completion_photos"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
