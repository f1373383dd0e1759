"""健康检查测试

测试内容：
1. /health 永远 200
2. /ready 检查 sqlite、磁盘空间、实时连接数
3. SQLite 不可用时返回 503
"""

from httpx import AsyncClient


class TestHealth:
    async def test_liveness(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_ready(self, client: AsyncClient, app):
        app.state.live_hub.connect("c-1")
        resp = await client.get("/ready")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ready"
        assert body["checks"]["sqlite"] == "ok"
        assert body["checks"]["disk_space_mb"] > 0
        assert body["checks"]["live_connections"] == 1

    async def test_ready_sqlite_failure(self, client: AsyncClient, app, monkeypatch):
        async def _broken_execute(*args, **kwargs):
            raise RuntimeError("database disk image is malformed")

        monkeypatch.setattr(app.state.store_group.conn, "execute", _broken_execute)
        resp = await client.get("/ready")
        assert resp.status_code == 503
        body = resp.json()
        assert body["status"] == "not_ready"
        assert body["checks"]["sqlite"].startswith("error:")
