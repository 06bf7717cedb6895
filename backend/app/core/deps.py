"""
FastAPI 依赖项模块 (FastAPI Dependencies Module)

提供用户认证、角色检查，以及从 ``app.state`` 取出生命周期内创建的探测器、
调度器、分发器和广播器的依赖函数。

Provides authentication and role checks, plus accessors for the prober,
scheduler, dispatcher and broadcaster created in the application lifespan and
stored on ``app.state``.
"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import decode_token
from app.models.user import User

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    从 Bearer Token 中解析当前登录用户 (Resolve the current user from the Bearer token)

    令牌无效、类型不是 access、或用户不存在/已禁用时返回 401。
    """
    payload = decode_token(credentials.credentials)
    if payload is None or payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    return user


def require_role(*roles: str):
    """角色检查依赖工厂 (Role check dependency factory)"""
    async def checker(user: User = Depends(get_current_user)):
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user
    return checker


get_admin_user = require_role("admin")
get_editor_user = require_role("admin", "developer")  # 可增删改服务和告警规则


# ── 生命周期组件 (Lifespan-owned components) ──

def get_prober(request: Request):
    return request.app.state.prober


def get_scheduler(request: Request):
    return request.app.state.scheduler


def get_dispatcher(request: Request):
    return request.app.state.dispatcher


def get_broadcaster(request: Request):
    return request.app.state.broadcaster
