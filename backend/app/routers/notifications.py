"""
通知记录路由模块 (Notification Router)

功能说明：查询告警通知记录，手动为某条告警规则发送通知
API端点：GET /notifications, GET /notifications/{id}, POST /notifications
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user, get_dispatcher, get_editor_user
from app.core.exceptions import NotFoundError
from app.models.alert import AlertRule
from app.models.notification import Notification
from app.models.service import Service
from app.models.user import User
from app.schemas.notification import NotificationCreate, NotificationResponse
from app.services.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def _with_service(notification: Notification, service_id: int, service_name: str) -> NotificationResponse:
    item = NotificationResponse.model_validate(notification)
    item.service_id = service_id
    item.service_name = service_name
    return item


def _joined_query():
    return (
        select(Notification, Service.id, Service.name)
        .join(AlertRule, AlertRule.id == Notification.alert_rule_id)
        .join(Service, Service.id == AlertRule.service_id)
    )


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    status: Optional[str] = None,
    alert_rule_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    """
    通知记录列表 (Notification List)

    按创建时间倒序，附带规则所属服务的名称，支持按状态和规则筛选。
    """
    q = _joined_query()
    if status:
        q = q.where(Notification.status == status)
    if alert_rule_id is not None:
        q = q.where(Notification.alert_rule_id == alert_rule_id)
    q = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    result = await db.execute(q)
    return [_with_service(n, sid, name) for n, sid, name in result.all()]


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    result = await db.execute(_joined_query().where(Notification.id == notification_id))
    row = result.first()
    if row is None:
        raise NotFoundError("Notification not found", detail=f"notification_id={notification_id}")
    return _with_service(*row)


@router.post("", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def send_notification(
    data: NotificationCreate,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_editor_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """手动为指定告警规则分发一条通知，走与自动触发相同的渠道和状态流转。"""
    result = await db.execute(
        select(AlertRule, Service.name)
        .join(Service, Service.id == AlertRule.service_id)
        .where(AlertRule.id == data.alert_rule_id)
    )
    row = result.first()
    if row is None:
        raise NotFoundError("Alert rule not found", detail=f"rule_id={data.alert_rule_id}")
    rule, service_name = row

    notification = await dispatcher.dispatch(rule, data.message, data.severity, service_name=service_name)
    logger.info(f"Manual notification {notification.id} sent for rule {rule.id}")
    return _with_service(notification, rule.service_id, service_name)
