"""全局 pytest 配置 -- 临时 SQLite 数据库 fixture + 领域对象工厂"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from fieldops.core.models import Contractor, GeoPoint, Task, TaskPriority, TaskType
from ulid import ULID

# 旧金山市中心，测试中的默认任务地点
SF_LAT, SF_LNG = 37.7749, -122.4194


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from fieldops.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """构造 Pending 任务，字段可覆盖"""

    def _make(**overrides) -> Task:
        now = datetime.now(UTC)
        fields = {
            "task_id": str(ULID()),
            "order_id": "ORD-1001",
            "type": TaskType.DELIVERY,
            "title": "Deliver sofa",
            "description": "Deliver a three-seat sofa to the customer",
            "priority": TaskPriority.MEDIUM,
            "location": GeoPoint(lng=SF_LNG, lat=SF_LAT),
            "address": "1 Market St, San Francisco",
            "scheduled_at": now + timedelta(days=1),
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        return Task(**fields)

    return _make


@pytest.fixture
def make_contractor() -> Callable[..., Contractor]:
    """构造已激活、已认证的承包商，字段可覆盖"""

    def _make(contractor_id: str, **overrides) -> Contractor:
        fields = {
            "contractor_id": contractor_id,
            "name": f"Contractor {contractor_id}",
            "email": f"{contractor_id}@example.com",
            "skills": ["delivery"],
            "is_active": True,
            "is_verified": True,
            "created_at": datetime.now(UTC),
        }
        fields.update(overrides)
        return Contractor(**fields)

    return _make
