"""apps/gateway 测试配置 -- FastAPI app + httpx AsyncClient + 服务实例 fixture"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from fieldops.core.store import StoreGroup, create_store_group
from fieldops.core.store.transaction import save_task_and_commit
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def gateway_tmp_dir(tmp_path: Path) -> Path:
    """Gateway 临时数据目录"""
    db_dir = tmp_path / "sqlite"
    db_dir.mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest_asyncio.fixture
async def gateway_stores(gateway_tmp_dir: Path) -> AsyncGenerator[StoreGroup, None]:
    """Gateway 层共享的 StoreGroup"""
    group = await create_store_group(str(gateway_tmp_dir / "sqlite" / "test.db"))
    yield group
    await group.conn.close()


@pytest_asyncio.fixture
async def app(gateway_tmp_dir: Path, gateway_stores: StoreGroup):
    """创建测试用 FastAPI app 实例（手动装配，绕过 lifespan）"""
    os.environ["FIELDOPS_DB_PATH"] = str(gateway_tmp_dir / "sqlite" / "test.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from fieldops.gateway.main import create_app, wire_services

    application = create_app()
    wire_services(application, gateway_stores)
    yield application

    for key in ["FIELDOPS_DB_PATH", "LOGFIRE_SEND_TO_LOGFIRE"]:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def seed(gateway_stores: StoreGroup, make_task, make_contractor):
    """写入测试数据的辅助对象"""

    class _Seeder:
        async def contractor(self, contractor_id: str, **overrides):
            contractor = make_contractor(contractor_id, **overrides)
            await gateway_stores.contractor_store.upsert_contractor(contractor)
            return contractor

        async def task(self, **overrides):
            task = make_task(**overrides)
            await save_task_and_commit(
                gateway_stores.conn, gateway_stores.task_store, task, create=True
            )
            return task

    return _Seeder()
