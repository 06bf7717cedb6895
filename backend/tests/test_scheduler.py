"""健康检查调度测试。"""
import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select

from app.models.alert import AlertRule
from app.models.notification import Notification
from app.models.service import ServiceMetric
from app.tasks.health_check_scheduler import TICK_LOCK_KEY


async def _count(database, model) -> int:
    async with database.session_factory() as db:
        return (await db.execute(select(func.count()).select_from(model))).scalar()


async def _add_rule(db_session, service_id, **kw):
    rule = AlertRule(
        service_id=service_id,
        rule_type=kw.get("rule_type", "status"),
        threshold=kw.get("threshold"),
        comparison_operator=kw.get("op", "="),
        notification_method=kw.get("method", "push"),
        is_active=True,
        cooldown_seconds=kw.get("cooldown_seconds", 0),
    )
    db_session.add(rule)
    await db_session.commit()
    return rule


class TestRunTick:
    async def test_pipeline(self, scheduler, database, db_session, probe_targets, make_service):
        probe_targets.add("up.test", 200)
        up = await make_service("up", "http://up.test/")
        down = await make_service("down", "http://nowhere.test/")
        await _add_rule(db_session, up.id)
        await _add_rule(db_session, down.id)

        result = await scheduler.run_tick()

        assert len(result.metrics) == 2
        assert result.triggered == 1
        assert len(result.notifications) == 1
        assert result.notifications[0].message == "down is currently offline"
        assert result.notifications[0].status == "delivered"
        assert await _count(database, ServiceMetric) == 2

    async def test_online_status_rule_no_notification(self, scheduler, database, db_session, probe_targets, make_service):
        probe_targets.add("up.test", 200)
        svc = await make_service()
        await _add_rule(db_session, svc.id)
        await scheduler.run_tick()
        assert await _count(database, Notification) == 0

    async def test_condition_refires_every_tick(self, scheduler, database, db_session, make_service):
        svc = await make_service(url="http://nowhere.test/")
        await _add_rule(db_session, svc.id)
        await scheduler.run_tick()
        await scheduler.run_tick()
        assert await _count(database, Notification) == 2

    async def test_dispatch_failure_isolated(self, scheduler, db_session, make_service, monkeypatch):
        a = await make_service("a", "http://nowhere.test/a")
        b = await make_service("b", "http://nowhere.test/b")
        await _add_rule(db_session, a.id)
        rule_b = await _add_rule(db_session, b.id)
        original = scheduler.dispatcher.dispatch

        async def flaky(rule, message, severity, service_name=None):
            if rule.id == rule_b.id:
                raise RuntimeError("push failed")
            return await original(rule, message, severity, service_name=service_name)

        monkeypatch.setattr(scheduler.dispatcher, "dispatch", flaky)
        result = await scheduler.run_tick()
        assert result.triggered == 2
        assert len(result.notifications) == 1
        assert result.dispatch_failures == 1

    async def test_failed_dispatch_does_not_start_cooldown(self, scheduler, database, db_session, make_service,
                                                           fake_redis, monkeypatch):
        svc = await make_service(url="http://nowhere.test/")
        rule = await _add_rule(db_session, svc.id, cooldown_seconds=300)
        original = scheduler.dispatcher.dispatch
        calls = {"n": 0}

        async def fails_once(rule, message, severity, service_name=None):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("database unavailable")
            return await original(rule, message, severity, service_name=service_name)

        monkeypatch.setattr(scheduler.dispatcher, "dispatch", fails_once)

        first = await scheduler.run_tick()
        assert first.dispatch_failures == 1
        assert await fake_redis.get(f"alert:cooldown:{rule.id}") is None

        second = await scheduler.run_tick()
        assert second.triggered == 1
        assert len(second.notifications) == 1
        assert fake_redis.ttls[f"alert:cooldown:{rule.id}"] == 300

        third = await scheduler.run_tick()
        assert third.triggered == 0
        assert await _count(database, Notification) == 1

    async def test_releases_cluster_lock(self, scheduler, fake_redis):
        await scheduler.run_tick()
        assert await fake_redis.get(TICK_LOCK_KEY) is None


class TestOverlapGuard:
    async def test_concurrent_tick_skipped(self, scheduler, probe_targets, make_service):
        probe_targets.add("slow.test", 200, delay=0.2)
        await make_service(url="http://slow.test/")

        first = asyncio.create_task(scheduler.run_tick())
        await asyncio.sleep(0.05)
        assert scheduler.is_running
        second = await scheduler.run_tick()
        first_result = await first

        assert second is None
        assert first_result is not None
        assert not scheduler.is_running

    async def test_other_instance_holds_lock(self, scheduler, fake_redis):
        await fake_redis.set(TICK_LOCK_KEY, "someone-else")
        assert await scheduler.run_tick() is None
        assert await fake_redis.get(TICK_LOCK_KEY) == "someone-else"

    async def test_slow_tick_extends_lock(self, scheduler, fake_redis, probe_targets, make_service):
        probe_targets.add("slow.test", 200, delay=0.2)
        await make_service(url="http://slow.test/")
        scheduler.lock_ttl = 0.06

        assert await scheduler.run_tick() is not None
        assert TICK_LOCK_KEY in fake_redis.expire_calls
        assert await fake_redis.get(TICK_LOCK_KEY) is None

    async def test_lock_taken_over_is_not_extended(self, scheduler, fake_redis):
        scheduler.lock_ttl = 0.03
        await fake_redis.set(TICK_LOCK_KEY, "someone-else")
        await scheduler._keep_cluster_lock("my-token")
        assert fake_redis.expire_calls == []
        assert await fake_redis.get(TICK_LOCK_KEY) == "someone-else"

    async def test_redis_down_still_runs(self, scheduler, fake_redis, monkeypatch):
        async def broken_set(*args, **kwargs):
            raise RedisConnectionError("redis down")

        monkeypatch.setattr(fake_redis, "set", broken_set)
        assert await scheduler.run_tick() is not None


class TestRunForever:
    async def test_ticks_at_fixed_rate(self, scheduler, monkeypatch):
        calls = []

        async def fake_tick():
            calls.append(1)

        monkeypatch.setattr(scheduler, "run_tick", fake_tick)
        scheduler.interval = 0.05
        task = asyncio.create_task(scheduler.run_forever())
        await asyncio.sleep(0.18)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(calls) >= 3

    async def test_tick_error_does_not_stop_loop(self, scheduler, monkeypatch):
        calls = []

        async def failing_tick():
            calls.append(1)
            raise RuntimeError("tick exploded")

        monkeypatch.setattr(scheduler, "run_tick", failing_tick)
        scheduler.interval = 0.05
        task = asyncio.create_task(scheduler.run_forever())
        await asyncio.sleep(0.13)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(calls) >= 2
