"""
仪表盘 WebSocket 实时推送模块 (Dashboard WebSocket Real-time Push Module)

连接建立后订阅事件广播器，把每个 tick 的 metrics-update 和每条
alert-notification 原样以 JSON 推送给客户端，断开时取消订阅。

浏览器无法给 WebSocket 握手加 Authorization 头，access token 通过
``?token=`` 查询参数传入，无效时以 1008 关闭连接。

WebSocket端点：/api/v1/ws/dashboard?token=<access_token>
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy import select

from app.core.security import decode_token
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


async def _authenticate(websocket: WebSocket, token: Optional[str]) -> Optional[User]:
    """校验 access token 并返回启用中的用户，失败返回 None。"""
    payload = decode_token(token) if token else None
    if payload is None or payload.get("type") != "access" or payload.get("sub") is None:
        return None
    async with websocket.app.state.database.session_factory() as db:
        result = await db.execute(select(User).where(User.id == int(payload["sub"])))
        user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


@router.websocket("/api/v1/ws/dashboard")
async def dashboard_ws(websocket: WebSocket, token: Optional[str] = Query(None)):
    user = await _authenticate(websocket, token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    broadcaster = websocket.app.state.broadcaster
    queue = broadcaster.subscribe()
    logger.debug(f"Dashboard subscriber {user.id} connected ({broadcaster.subscriber_count} total)")
    try:
        while True:
            message = await queue.get()
            await websocket.send_json(message)
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unsubscribe(queue)
        logger.debug(f"Dashboard subscriber {user.id} disconnected")
