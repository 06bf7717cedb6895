"""
通知模型 (Notification Model)

每次告警规则触发生成一条通知记录。状态是显式状态机，真实的投递结果会回写：

    pending -> delivering -> delivered | failed
    pending -> delivered | failed

One row per fired rule. The status is an explicit state machine and the real
delivery outcome is written back into it.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.user import utcnow

PENDING = "pending"
DELIVERING = "delivering"
DELIVERED = "delivered"
FAILED = "failed"

ALLOWED_TRANSITIONS = {
    PENDING: {DELIVERING, DELIVERED, FAILED},
    DELIVERING: {DELIVERED, FAILED},
    DELIVERED: set(),
    FAILED: set(),
}


class Notification(Base):
    """通知记录表 (Notification Table)"""
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    alert_rule_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("alert_rules.id", ondelete="CASCADE"), index=True, nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # warning/error
    channel: Mapped[str] = mapped_column(String(10), nullable=False)  # email/push
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PENDING)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)  # 投递完成时间

    def advance(self, new_status: str, error: str | None = None) -> None:
        """推进状态机，非法转换抛出 ValueError (Advance the state machine; illegal moves raise)."""
        if new_status not in ALLOWED_TRANSITIONS.get(self.status, set()):
            raise ValueError(f"Illegal notification transition {self.status} -> {new_status}")
        self.status = new_status
        if new_status == DELIVERED:
            self.sent_at = utcnow()
        if error is not None:
            self.error = error[:1000]
