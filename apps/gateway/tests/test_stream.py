"""SSE 实时通道测试

事件流是无限生成器，这里直接驱动 live_events：
建立连接 -> 推送事件 -> 心跳 -> 关闭后清理定向索引。
"""

import json

import pytest
from fieldops.gateway.routes.stream import live_events
from fieldops.gateway.services.live_hub import LiveHub
from httpx import AsyncClient


def _stream(app, contractor_id: str, **kwargs):
    return live_events(
        contractor_id,
        app.state.live_hub,
        app.state.room_resolver,
        app.state.store_group,
        app.state.ledger,
        **kwargs,
    )


class TestLiveEvents:
    async def test_connection_established_with_undelivered_count(self, app, seed):
        await seed.contractor("c-1", skills=["delivery"])
        await app.state.ledger.create("c-1", "personal", "normal", "t", "m")

        agen = _stream(app, "c-1", position=(37.7749, -122.4194))
        frame = await agen.__anext__()
        assert frame["event"] == "connection:established"
        data = json.loads(frame["data"])
        assert data["contractor_id"] == "c-1"
        assert data["undelivered"] == 1

        record = app.state.room_resolver.get_record("c-1")
        assert record.skills == ["delivery"]
        assert record.position == (37.7749, -122.4194)
        await agen.aclose()

    async def test_pushed_event_is_streamed(self, app):
        agen = _stream(app, "c-1")
        await agen.__anext__()

        app.state.live_hub.send_to_connection("c-1", "task:assigned", {"task_id": "t-1"})
        frame = await agen.__anext__()
        assert frame["event"] == "task:assigned"
        assert json.loads(frame["data"]) == {"task_id": "t-1"}
        assert frame["id"]
        await agen.aclose()

    async def test_heartbeat_on_idle(self, app):
        agen = _stream(app, "c-1", heartbeat_interval=0.01)
        await agen.__anext__()
        frame = await agen.__anext__()
        assert frame == {"comment": "heartbeat"}
        await agen.aclose()

    async def test_close_unregisters_last_connection(self, app):
        first = _stream(app, "c-1")
        second = _stream(app, "c-1")
        await first.__anext__()
        await second.__anext__()
        assert app.state.live_hub.connection_count() == 2

        await first.aclose()
        assert app.state.room_resolver.is_connected("c-1")

        await second.aclose()
        assert not app.state.room_resolver.is_connected("c-1")
        assert not app.state.live_hub.is_connected("c-1")

    async def test_second_connection_updates_position(self, app):
        first = _stream(app, "c-1")
        await first.__anext__()
        second = _stream(app, "c-1", position=(34.05, -118.24))
        await second.__anext__()

        assert app.state.room_resolver.get_record("c-1").position == (34.05, -118.24)
        await first.aclose()
        await second.aclose()

    async def test_slow_consumer_stream_ends(self, app):
        """队列溢出被摘除后流结束，客户端据此重连"""
        hub = LiveHub(queue_maxsize=1)
        resolver = app.state.room_resolver
        agen = live_events(
            "c-1", hub, resolver, app.state.store_group, app.state.ledger
        )
        await agen.__anext__()

        hub.send_to_connection("c-1", "task:new", {"n": 1})
        hub.send_to_connection("c-1", "task:new", {"n": 2})
        assert not hub.is_connected("c-1")

        with pytest.raises(StopAsyncIteration):
            await agen.__anext__()
        assert not resolver.is_connected("c-1")


class TestStreamRoutes:
    async def test_stream_requires_identity(self, client: AsyncClient):
        resp = await client.get("/api/stream")
        assert resp.status_code == 401

    async def test_location_update_requires_connection(self, client: AsyncClient):
        resp = await client.post(
            "/api/stream/location",
            json={"lat": 37.7, "lng": -122.4},
            headers={"X-Contractor-ID": "c-1"},
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_CONNECTED"

    async def test_location_update(self, client: AsyncClient, app):
        app.state.room_resolver.register("c-1")
        resp = await client.post(
            "/api/stream/location",
            json={"lat": 37.7, "lng": -122.4},
            headers={"X-Contractor-ID": "c-1"},
        )
        assert resp.status_code == 200
        assert app.state.room_resolver.get_record("c-1").position == (37.7, -122.4)

    async def test_stats(self, client: AsyncClient, app):
        app.state.live_hub.connect("c-1")
        app.state.room_resolver.register("c-1", skills=["setup"])
        resp = await client.get("/api/stream/stats")
        body = resp.json()
        assert body["connections"] == 1
        assert body["resolver"]["skills"] == {"setup": 1}
