"""事件广播器和仪表盘 WebSocket 测试。"""
import asyncio
from types import SimpleNamespace

import pytest
from fastapi import WebSocketDisconnect

from app.core.security import create_access_token, create_refresh_token
from app.routers.dashboard_ws import dashboard_ws
from app.services.broadcaster import EventBroadcaster


class TestEventBroadcaster:
    async def test_fan_out_envelope(self):
        b = EventBroadcaster()
        q1, q2 = b.subscribe(), b.subscribe()
        await b.publish("metrics-update", [{"service_id": 1}])
        for q in (q1, q2):
            msg = q.get_nowait()
            assert msg["event"] == "metrics-update"
            assert msg["data"] == [{"service_id": 1}]
            assert msg["timestamp"]

    async def test_full_queue_drops_only_for_that_subscriber(self):
        b = EventBroadcaster(queue_size=1)
        slow, fast = b.subscribe(), b.subscribe()
        await b.publish("a", 1)
        fast.get_nowait()
        await b.publish("b", 2)
        assert slow.qsize() == 1
        assert slow.get_nowait()["event"] == "a"
        assert fast.get_nowait()["event"] == "b"

    async def test_unsubscribe(self):
        b = EventBroadcaster()
        q = b.subscribe()
        b.unsubscribe(q)
        b.unsubscribe(q)
        await b.publish("x", None)
        assert q.empty()
        assert b.subscriber_count == 0


class FakeWebSocket:
    """只收一条消息后模拟客户端断开。"""

    def __init__(self, broadcaster, database):
        self.app = SimpleNamespace(state=SimpleNamespace(broadcaster=broadcaster, database=database))
        self.accepted = False
        self.close_code = None
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def close(self, code=1000):
        self.close_code = code

    async def send_json(self, data):
        self.sent.append(data)
        raise WebSocketDisconnect(code=1000)


class TestDashboardWebSocket:
    async def test_forwards_events_and_unsubscribes(self, database, admin_user):
        b = EventBroadcaster()
        ws = FakeWebSocket(b, database)
        task = asyncio.create_task(dashboard_ws(ws, token=create_access_token(str(admin_user.id))))
        while b.subscriber_count == 0:
            await asyncio.sleep(0)

        await b.publish("alert-notification", {"id": 7})
        await asyncio.wait_for(task, timeout=1)

        assert ws.accepted
        assert ws.sent[0]["event"] == "alert-notification"
        assert ws.sent[0]["data"] == {"id": 7}
        assert b.subscriber_count == 0

    @pytest.mark.parametrize("token", [None, "not-a-jwt"])
    async def test_rejects_missing_or_invalid_token(self, database, token):
        b = EventBroadcaster()
        ws = FakeWebSocket(b, database)
        await dashboard_ws(ws, token=token)
        assert not ws.accepted
        assert ws.close_code == 1008
        assert b.subscriber_count == 0

    async def test_rejects_refresh_token(self, database, admin_user):
        ws = FakeWebSocket(EventBroadcaster(), database)
        await dashboard_ws(ws, token=create_refresh_token(str(admin_user.id)))
        assert ws.close_code == 1008

    async def test_rejects_inactive_user(self, database, db_session, admin_user):
        admin_user.is_active = False
        await db_session.commit()
        ws = FakeWebSocket(EventBroadcaster(), database)
        await dashboard_ws(ws, token=create_access_token(str(admin_user.id)))
        assert ws.close_code == 1008
