"""探测结果存储和数据清理测试。"""
from datetime import datetime, timedelta, timezone

from app.models.service import ServiceMetric
from app.models.service_log import ServiceLog
from app.services import metric_store
from app.services.prober import ProbeOutcome
from app.tasks.metric_cleanup import prune_expired


def _ago(**kw) -> datetime:
    return datetime.now(timezone.utc) - timedelta(**kw)


async def _add_metric(db, service_id, status="online", checked_at=None, rt=100):
    m = ServiceMetric(service_id=service_id, status=status, response_time_ms=rt, checked_at=checked_at or _ago(seconds=1))
    db.add(m)
    await db.commit()
    return m


class TestRecordMetric:
    async def test_append(self, db_session, make_service):
        svc = await make_service()
        outcome = ProbeOutcome(
            service_id=svc.id, service_name=svc.name, url=svc.url, status="offline",
            response_time_ms=None, error="x" * 900,
        )
        metric = metric_store.record_metric(db_session, outcome)
        await db_session.commit()
        assert metric.id is not None
        assert len(metric.error) == 500
        assert metric.load_simulated is False


class TestQueries:
    async def test_latest_per_service(self, db_session, make_service):
        a = await make_service("a")
        b = await make_service("b")
        await _add_metric(db_session, a.id, "offline", _ago(minutes=5))
        newest_a = await _add_metric(db_session, a.id, "online", _ago(minutes=1))
        newest_b = await _add_metric(db_session, b.id, "degraded", _ago(minutes=2))

        latest = await metric_store.get_latest_metrics(db_session)
        assert latest[a.id].id == newest_a.id
        assert latest[b.id].id == newest_b.id
        assert (await metric_store.get_latest_metric(db_session, a.id)).status == "online"

    async def test_latest_tie_breaks_on_id(self, db_session, make_service):
        svc = await make_service()
        ts = _ago(minutes=1)
        await _add_metric(db_session, svc.id, "offline", ts)
        second = await _add_metric(db_session, svc.id, "online", ts)
        latest = await metric_store.get_latest_metrics(db_session)
        assert latest[svc.id].id == second.id

    async def test_no_metrics(self, db_session, make_service):
        svc = await make_service()
        assert await metric_store.get_latest_metric(db_session, svc.id) is None
        assert await metric_store.get_latest_metrics(db_session) == {}
        assert await metric_store.calc_uptime(db_session, svc.id) is None

    async def test_history_window_and_order(self, db_session, make_service):
        svc = await make_service()
        await _add_metric(db_session, svc.id, checked_at=_ago(hours=30))
        older = await _add_metric(db_session, svc.id, checked_at=_ago(hours=2))
        newer = await _add_metric(db_session, svc.id, checked_at=_ago(minutes=1))

        history = await metric_store.get_metric_history(db_session, service_id=svc.id, hours=24)
        assert [m.id for m in history] == [newer.id, older.id]
        assert len(await metric_store.get_metric_history(db_session, hours=48)) == 3
        assert len(await metric_store.get_metric_history(db_session, hours=48, limit=1)) == 1

    async def test_uptime(self, db_session, make_service):
        svc = await make_service()
        for status in ("online", "online", "online", "offline"):
            await _add_metric(db_session, svc.id, status)
        assert await metric_store.calc_uptime(db_session, svc.id) == 75.0

    async def test_uptime_by_service(self, db_session, make_service):
        a = await make_service("a")
        b = await make_service("b", "http://b.test/")
        silent = await make_service("silent", "http://silent.test/")
        for status in ("online", "online", "online", "offline"):
            await _add_metric(db_session, a.id, status)
        await _add_metric(db_session, b.id, "degraded")
        await _add_metric(db_session, b.id, "online", checked_at=_ago(hours=30))

        uptime = await metric_store.calc_uptime_by_service(db_session)
        assert uptime == {a.id: 75.0, b.id: 0.0}
        assert silent.id not in uptime


class TestPrune:
    async def test_prune_expired(self, database, db_session, make_service):
        svc = await make_service()
        await _add_metric(db_session, svc.id, checked_at=_ago(days=40))
        await _add_metric(db_session, svc.id, checked_at=_ago(days=1))
        db_session.add(ServiceLog(service_id=svc.id, level="info", message="old", created_at=_ago(days=10)))
        db_session.add(ServiceLog(service_id=svc.id, level="info", message="new"))
        await db_session.commit()

        result = await prune_expired(database.session_factory, metric_days=30, log_days=7)
        assert result == {"metrics_deleted": 1, "logs_deleted": 1}

        again = await prune_expired(database.session_factory, metric_days=30, log_days=7)
        assert again == {"metrics_deleted": 0, "logs_deleted": 0}
