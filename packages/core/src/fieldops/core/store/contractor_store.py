"""ContractorDirectory SQLite 实现"""

import asyncio
import json
from datetime import datetime

import aiosqlite

from ..models.contractor import Contractor


class SqliteContractorStore:
    """承包商目录的本地 SQLite 镜像"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        self._conn = conn
        # 同一连接上的写事务共用一把锁
        self.write_lock = write_lock or asyncio.Lock()

    async def upsert_contractor(self, contractor: Contractor) -> None:
        """写入或覆盖承包商资料"""
        async with self.write_lock:
            await self._conn.execute(
                """
                INSERT INTO contractors (contractor_id, name, email, skills,
                                         is_active, is_verified, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(contractor_id) DO UPDATE SET
                    name = excluded.name,
                    email = excluded.email,
                    skills = excluded.skills,
                    is_active = excluded.is_active,
                    is_verified = excluded.is_verified
                """,
                (
                    contractor.contractor_id,
                    contractor.name,
                    contractor.email,
                    json.dumps(contractor.skills),
                    int(contractor.is_active),
                    int(contractor.is_verified),
                    contractor.created_at.isoformat(),
                ),
            )
            await self._conn.commit()

    async def get_contractor(self, contractor_id: str) -> Contractor | None:
        """根据 contractor_id 查询"""
        cursor = await self._conn.execute(
            "SELECT * FROM contractors WHERE contractor_id = ?",
            (contractor_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Contractor(
            contractor_id=row["contractor_id"],
            name=row["name"],
            email=row["email"],
            skills=json.loads(row["skills"]),
            is_active=bool(row["is_active"]),
            is_verified=bool(row["is_verified"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
