"""
PulseWatch 测试基础配置

提供基于临时文件的 SQLite 异步数据库、内存版 Redis、可编程的探测目标
（httpx.MockTransport）以及挂好 app.state 的 FastAPI 测试客户端。
所有测试使用隔离的数据库，不依赖外部 PostgreSQL/Redis/网络。
"""
import asyncio
import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# 必须在导入 app 之前设置环境变量，避免真实连接和后台调度
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-pulsewatch-tests"
os.environ["SMTP_HOST"] = ""

from app.core.config import Settings
from app.core.database import Database
from app.core.security import create_access_token, hash_password
from app.models.service import Service
from app.models.user import User
from app.services.broadcaster import EventBroadcaster
from app.tasks.health_check_scheduler import HealthCheckScheduler, build_monitor


# ── Fake Redis ────────────────────────────────────────────────────────
class FakeRedis:
    """内存级 Redis 模拟，支持 set 的 nx/ex 语义（过期时间只记录不生效）。"""

    def __init__(self):
        self._store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.expire_calls: list[str] = []

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False, **kwargs):
        if nx and key in self._store:
            return None
        self._store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def setex(self, key: str, time: int, value: str) -> None:
        self._store[key] = value
        self.ttls[key] = time

    async def delete(self, *keys: str) -> int:
        removed = 0
        for k in keys:
            if self._store.pop(k, None) is not None:
                removed += 1
            self.ttls.pop(k, None)
        return removed

    async def expire(self, key: str, time: int) -> bool:
        if key not in self._store:
            return False
        self.ttls[key] = time
        self.expire_calls.append(key)
        return True

    async def exists(self, key: str) -> int:
        return 1 if key in self._store else 0

    async def incr(self, key: str) -> int:
        val = int(self._store.get(key, "0")) + 1
        self._store[key] = str(val)
        return val

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


# ── 探测目标 ──────────────────────────────────────────────────────────
class ProbeTargets:
    """按主机名配置 MockTransport 的响应：状态码、延迟或抛出的异常。"""

    def __init__(self):
        self.routes: dict[str, dict] = {}
        self.calls: list[str] = []

    def add(self, host: str, status: int = 200, delay: float = 0.0, exc: Exception | None = None):
        self.routes[host] = {"status": status, "delay": delay, "exc": exc}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request.url.host)
        route = self.routes.get(request.url.host)
        if route is None:
            raise httpx.ConnectError("Name or service not known", request=request)
        if route["delay"]:
            await asyncio.sleep(route["delay"])
        if route["exc"] is not None:
            raise route["exc"]
        headers = {"Location": "https://elsewhere.test/"} if 300 <= route["status"] < 400 else {}
        return httpx.Response(route["status"], headers=headers, text="ok")


# ── Fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        probe_timeout_seconds=0.5,
        probe_concurrency=5,
        simulated_load_enabled=False,
        scheduler_enabled=False,
        smtp_host="",
        alert_email_to="",
    )


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """每个测试一个独立的 SQLite 文件库，已打开外键约束。"""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'pulsewatch.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """提供一个干净的数据库会话。"""
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster()


@pytest.fixture
def probe_targets() -> ProbeTargets:
    return ProbeTargets()


@pytest_asyncio.fixture
async def http_client(probe_targets: ProbeTargets) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(probe_targets.handler), follow_redirects=False
    ) as c:
        yield c


@pytest.fixture
def scheduler(test_settings, database, http_client, broadcaster, fake_redis) -> HealthCheckScheduler:
    return build_monitor(test_settings, database, http_client, broadcaster, fake_redis)


@pytest_asyncio.fixture
async def client(database, fake_redis, broadcaster, scheduler, http_client) -> AsyncGenerator[AsyncClient, None]:
    """
    提供挂好 app.state 的异步 HTTP 测试客户端。

    ASGITransport 不会执行 lifespan，这里直接注入生命周期中会创建的组件。
    """
    from app.main import app

    app.state.database = database
    app.state.redis = fake_redis
    app.state.http_client = http_client
    app.state.broadcaster = broadcaster
    app.state.scheduler = scheduler
    app.state.prober = scheduler.prober
    app.state.dispatcher = scheduler.dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _make_user(db: AsyncSession, email: str, name: str, role: str) -> User:
    user = User(
        email=email,
        name=name,
        hashed_password=hash_password("secret123"),
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """创建一个管理员用户。"""
    return await _make_user(db_session, "admin@test.com", "Admin", "admin")


@pytest_asyncio.fixture
async def viewer_user(db_session: AsyncSession) -> User:
    """创建一个只读用户。"""
    return await _make_user(db_session, "viewer@test.com", "Viewer", "viewer")


@pytest.fixture
def auth_headers(admin_user: User) -> dict:
    """管理员认证头。"""
    return {"Authorization": f"Bearer {create_access_token(str(admin_user.id))}"}


@pytest.fixture
def viewer_headers(viewer_user: User) -> dict:
    """只读用户认证头。"""
    return {"Authorization": f"Bearer {create_access_token(str(viewer_user.id))}"}


@pytest_asyncio.fixture
async def make_service(db_session: AsyncSession, admin_user: User):
    """工厂 fixture：直接在库中创建服务。"""
    async def _make(name: str = "api", url: str = "http://up.test/health") -> Service:
        svc = Service(name=name, url=url, owner_id=admin_user.id)
        db_session.add(svc)
        await db_session.commit()
        await db_session.refresh(svc)
        return svc
    return _make
