"""
通知分发服务 (Notification Dispatcher)

为每次规则触发生成一条 Notification，推送给所有仪表盘订阅者，并按规则配置的
渠道投递，真实投递结果回写到通知状态：

- push：推送即投递，pending → delivered
- email：pending → delivering → delivered / failed，失败不重试

Persists one Notification per fired rule, fans it out to live subscribers and
delivers it on the rule's channel, writing the real outcome back into the row.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.alert import AlertRule
from app.models.notification import DELIVERED, DELIVERING, FAILED, PENDING, Notification
from app.models.service import Service
from app.models.user import User
from app.services.broadcaster import ALERT_NOTIFICATION, EventBroadcaster
from app.services.email_sender import DisabledEmailSender, EmailMessage

logger = logging.getLogger(__name__)


def notification_payload(notification: Notification, service_name: Optional[str] = None) -> dict:
    return {
        "id": notification.id,
        "alert_rule_id": notification.alert_rule_id,
        "service_name": service_name,
        "message": notification.message,
        "severity": notification.severity,
        "channel": notification.channel,
        "status": notification.status,
        "error": notification.error,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


def email_subject(service_name: str, severity: str) -> str:
    return f"[ALERT] {service_name} - {severity.upper()}"


class NotificationDispatcher:
    """通知分发器，由应用生命周期创建，持有会话工厂、广播器和邮件发送者。"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: Optional[EventBroadcaster] = None,
        email_sender=None,
        alert_email_to: str = "",
    ):
        self.session_factory = session_factory
        self.broadcaster = broadcaster
        self.email_sender = email_sender or DisabledEmailSender()
        self.alert_email_to = alert_email_to

    async def _lookup_service(self, db: AsyncSession, service_id: int) -> tuple[Optional[str], Optional[str]]:
        """返回 (服务名, 所有者邮箱)。"""
        result = await db.execute(
            select(Service.name, User.email)
            .join(User, User.id == Service.owner_id)
            .where(Service.id == service_id)
        )
        row = result.first()
        if row is None:
            return None, None
        return row.name, row.email

    async def dispatch(
        self,
        rule: AlertRule,
        message: str,
        severity: str,
        service_name: Optional[str] = None,
    ) -> Notification:
        async with self.session_factory() as db:
            notification = Notification(
                alert_rule_id=rule.id,
                message=message,
                severity=severity,
                channel=rule.notification_method,
                status=PENDING,
            )
            db.add(notification)
            await db.commit()
            await db.refresh(notification)

            owner_name, owner_email = await self._lookup_service(db, rule.service_id)
            service_name = service_name or owner_name or f"Service {rule.service_id}"

            if notification.channel == "email":
                await self._deliver_email(db, notification, service_name, owner_email)
            else:
                notification.advance(DELIVERED)
                await db.commit()

            # 投递结束后再推送，订阅者拿到的是最终状态
            if self.broadcaster is not None:
                await self.broadcaster.publish(
                    ALERT_NOTIFICATION, notification_payload(notification, service_name)
                )

            logger.info(
                f"Notification {notification.id} for rule {rule.id} via {notification.channel}: "
                f"{notification.status}"
            )
            return notification

    async def _deliver_email(
        self,
        db: AsyncSession,
        notification: Notification,
        service_name: str,
        owner_email: Optional[str],
    ) -> None:
        notification.advance(DELIVERING)
        await db.commit()

        recipient = self.alert_email_to or owner_email
        if not recipient:
            notification.advance(FAILED, error="No email recipient")
            await db.commit()
            return

        error = None
        try:
            ok = await self.email_sender.send(EmailMessage(
                to=recipient,
                subject=email_subject(service_name, notification.severity),
                message=notification.message,
                service_name=service_name,
                severity=notification.severity,
            ))
            if not ok:
                error = "Email sender reported failure"
        except Exception as e:
            logger.warning(f"Email delivery failed for notification {notification.id}: {e}")
            ok = False
            error = str(e) or e.__class__.__name__

        if ok:
            notification.advance(DELIVERED)
        else:
            notification.advance(FAILED, error=error)
        await db.commit()
