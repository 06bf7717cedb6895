"""
Redis 连接模块

创建和关闭 Redis 客户端。客户端由应用生命周期持有并挂在 app.state 上，
请求处理函数通过 get_redis 依赖获取。
"""
import redis.asyncio as redis
from fastapi import Request


def create_redis(url: str) -> redis.Redis:
    """创建 Redis 客户端（连接在首次命令时建立）。"""
    return redis.from_url(url, decode_responses=True)


async def close_redis(client: redis.Redis | None) -> None:
    """关闭 Redis 连接，释放资源。"""
    if client is not None:
        await client.aclose()


async def get_redis(request: Request) -> redis.Redis | None:
    """FastAPI 依赖项：返回当前应用的 Redis 客户端。"""
    return getattr(request.app.state, "redis", None)
