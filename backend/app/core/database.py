"""
数据库连接模块 (Database Connection Module)

基于 SQLAlchemy 2.0 异步模式创建数据库引擎和会话工厂。引擎不再是模块级全局变量，
而是由 ``Database`` 对象持有，在应用生命周期内创建并注入到各组件中。

Creates the async engine and session factory on SQLAlchemy 2.0. The engine is
owned by a ``Database`` object created in the application lifespan and injected
into components, instead of living in a module-level global.
"""
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """ORM 模型基类 (ORM Model Base Class)"""
    pass


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite 默认不执行外键约束，每个连接建立时打开 (Enable FK enforcement on every SQLite connection)"""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Database:
    """
    数据库资源持有者 (Database Resource Owner)

    封装异步引擎和会话工厂，提供建表和释放连接池的方法。

    Wraps the async engine and session factory, with helpers to create tables
    and dispose of the connection pool.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        kwargs: dict = {"echo": echo}
        if url.startswith("sqlite") and ":memory:" in url:
            # 内存库必须共享同一连接，否则每个会话看到的是不同的数据库
            kwargs["poolclass"] = StaticPool
        self.engine: AsyncEngine = create_async_engine(url, **kwargs)
        if url.startswith("sqlite"):
            _enable_sqlite_foreign_keys(self.engine)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # 提交后不过期对象，便于访问已保存的数据
        )

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 依赖项：获取数据库会话 (FastAPI Dependency: Get Database Session)

    从 ``app.state.database`` 取会话工厂，请求结束后自动关闭会话。

    Yields:
        AsyncSession: 异步数据库会话实例 (Async database session instance)
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        yield session
