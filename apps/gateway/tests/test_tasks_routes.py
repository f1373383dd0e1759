"""任务路由测试

测试内容：
1. 身份缺失返回 401
2. 失败原因到 HTTP 状态码的映射（400/403/404/409/500）
3. 列表、详情、认领、状态推进、完成、取消
"""

import aiosqlite
from fieldops.core.models import TaskStatus, TaskType
from httpx import AsyncClient

SF_LAT, SF_LNG = 37.7749, -122.4194


def _as(contractor_id: str) -> dict[str, str]:
    return {"X-Contractor-ID": contractor_id}


class TestAuthentication:
    async def test_missing_header_returns_401(self, client: AsyncClient):
        resp = await client.get("/api/tasks/mine")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHENTICATED"

    async def test_claim_requires_identity(self, client: AsyncClient, seed):
        task = await seed.task()
        resp = await client.post(f"/api/tasks/{task.task_id}/claim")
        assert resp.status_code == 401


class TestCreateAndList:
    async def test_create_task(self, client: AsyncClient):
        resp = await client.post(
            "/api/tasks",
            json={
                "order_id": "ORD-42",
                "type": "Delivery",
                "description": "Deliver dining table",
                "priority": "High",
                "location": {"lat": SF_LAT, "lng": SF_LNG},
                "scheduled_at": "2026-11-02T09:00:00+00:00",
            },
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["success"] is True
        assert data["task"]["status"] == "Pending"
        assert data["task"]["order_id"] == "ORD-42"

    async def test_create_task_invalid_type(self, client: AsyncClient):
        resp = await client.post(
            "/api/tasks",
            json={
                "order_id": "ORD-1",
                "type": "Teleport",
                "scheduled_at": "2026-11-02T09:00:00+00:00",
            },
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_available_near(self, client: AsyncClient, seed):
        await seed.contractor("c-1", skills=[])
        near = await seed.task()
        resp = await client.get(
            "/api/tasks/available",
            params={"lat": SF_LAT, "lng": SF_LNG, "radius_km": 5},
            headers=_as("c-1"),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [t["task_id"] for t in body["tasks"]] == [near.task_id]
        assert body["total"] == 1

    async def test_available_invalid_latitude(self, client: AsyncClient):
        resp = await client.get(
            "/api/tasks/available", params={"lat": 120, "lng": 0}, headers=_as("c-1")
        )
        assert resp.status_code == 400

    async def test_available_with_skill_filter(self, client: AsyncClient, seed):
        await seed.task(type=TaskType.SETUP)
        pickup = await seed.task(type=TaskType.PICKUP)
        resp = await client.get(
            "/api/tasks/available",
            params={"skills": ["pickup"]},
            headers=_as("c-1"),
        )
        assert [t["task_id"] for t in resp.json()["tasks"]] == [pickup.task_id]

    async def test_mine_with_status_filter(self, client: AsyncClient, seed):
        active = await seed.task(
            status=TaskStatus.IN_PROGRESS, assigned_contractors=["c-1"]
        )
        await seed.task(status=TaskStatus.COMPLETED, assigned_contractors=["c-1"])
        resp = await client.get(
            "/api/tasks/mine",
            params={"status": ["In Progress"]},
            headers=_as("c-1"),
        )
        assert resp.status_code == 200
        assert [t["task_id"] for t in resp.json()["tasks"]] == [active.task_id]


class TestDetail:
    async def test_not_found(self, client: AsyncClient):
        resp = await client.get("/api/tasks/missing", headers=_as("c-1"))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TASK_NOT_FOUND"

    async def test_forbidden_for_non_assignee(self, client: AsyncClient, seed):
        await seed.contractor("c-2")
        task = await seed.task(status=TaskStatus.ASSIGNED, assigned_contractors=["c-1"])
        resp = await client.get(f"/api/tasks/{task.task_id}", headers=_as("c-2"))
        assert resp.status_code == 403

    async def test_admin_access_without_header(self, client: AsyncClient, seed):
        task = await seed.task(status=TaskStatus.ASSIGNED, assigned_contractors=["c-1"])
        resp = await client.get(f"/api/tasks/{task.task_id}")
        assert resp.status_code == 200
        assert resp.json()["task"]["task_id"] == task.task_id

    async def test_store_failure_is_server_error(
        self, client: AsyncClient, app, monkeypatch
    ):
        async def _boom(*args, **kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        monkeypatch.setattr(app.state.store_group.task_store, "get_task", _boom)
        resp = await client.get("/api/tasks/01JABC", headers=_as("c-1"))
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "SERVER_ERROR"


class TestLifecycle:
    async def test_claim_then_conflict(self, client: AsyncClient, seed):
        await seed.contractor("c-1")
        await seed.contractor("c-2")
        task = await seed.task()

        first = await client.post(f"/api/tasks/{task.task_id}/claim", headers=_as("c-1"))
        assert first.status_code == 200
        assert first.json()["task"]["status"] == "Assigned"

        second = await client.post(f"/api/tasks/{task.task_id}/claim", headers=_as("c-2"))
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "CONFLICT"

    async def test_claim_unauthorized_contractor(self, client: AsyncClient, seed):
        await seed.contractor("c-1", is_verified=False)
        task = await seed.task()
        resp = await client.post(f"/api/tasks/{task.task_id}/claim", headers=_as("c-1"))
        assert resp.status_code == 403

    async def test_claim_missing_task(self, client: AsyncClient, seed):
        await seed.contractor("c-1")
        resp = await client.post("/api/tasks/missing/claim", headers=_as("c-1"))
        assert resp.status_code == 404

    async def test_status_update_mapping(self, client: AsyncClient, seed):
        task = await seed.task(status=TaskStatus.ASSIGNED, assigned_contractors=["c-1"])
        url = f"/api/tasks/{task.task_id}/status"

        invalid = await client.put(url, json={"status": "Done"}, headers=_as("c-1"))
        assert invalid.status_code == 400

        forbidden = await client.put(
            url, json={"status": "In Progress"}, headers=_as("c-2")
        )
        assert forbidden.status_code == 403

        ok = await client.put(url, json={"status": "In Progress"}, headers=_as("c-1"))
        assert ok.status_code == 200
        assert ok.json()["task"]["status"] == "In Progress"

        backward = await client.put(url, json={"status": "Assigned"}, headers=_as("c-1"))
        assert backward.status_code == 409

    async def test_complete_photo_limit(self, client: AsyncClient, seed):
        task = await seed.task(
            status=TaskStatus.IN_PROGRESS, assigned_contractors=["c-1"]
        )
        url = f"/api/tasks/{task.task_id}/complete"

        too_many = await client.post(
            url,
            json={"photos": [f"p{i}.jpg" for i in range(6)]},
            headers=_as("c-1"),
        )
        assert too_many.status_code == 400

        ok = await client.post(
            url,
            json={"notes": "Done", "photos": ["p1.jpg"]},
            headers=_as("c-1"),
        )
        assert ok.status_code == 200
        assert ok.json()["task"]["completion_photos"] == ["p1.jpg"]

    async def test_overlong_notes_rejected(self, client: AsyncClient, seed):
        task = await seed.task(
            status=TaskStatus.IN_PROGRESS, assigned_contractors=["c-1"]
        )
        resp = await client.post(
            f"/api/tasks/{task.task_id}/complete",
            json={"notes": "n" * 2001},
            headers=_as("c-1"),
        )
        assert resp.status_code == 400
        resp = await client.get(f"/api/tasks/{task.task_id}")
        assert resp.status_code == 200
        assert resp.json()["task"]["status"] == "In Progress"

    async def test_cancel(self, client: AsyncClient, seed):
        pending = await seed.task()
        resp = await client.post(
            f"/api/tasks/{pending.task_id}/cancel", json={"reason": "Duplicate order"}
        )
        assert resp.status_code == 409

        assigned = await seed.task(
            status=TaskStatus.ASSIGNED, assigned_contractors=["c-1"]
        )
        resp = await client.post(
            f"/api/tasks/{assigned.task_id}/cancel", json={"reason": "Duplicate order"}
        )
        assert resp.status_code == 200
        assert resp.json()["task"]["status"] == "Cancelled"

        missing = await client.post(
            "/api/tasks/missing/cancel", json={"reason": "x"}
        )
        assert missing.status_code == 404

    async def test_cancel_requires_reason(self, client: AsyncClient, seed):
        task = await seed.task(status=TaskStatus.ASSIGNED, assigned_contractors=["c-1"])
        resp = await client.post(f"/api/tasks/{task.task_id}/cancel", json={})
        assert resp.status_code == 400
