"""
告警规则模型 (Alert Rule Model)

用户为某个服务配置的阈值条件。cpu / memory / response_time 规则按比较运算符
与阈值比较；status 规则只看探测状态是否为 offline，其阈值（NULL）和运算符（"="）
仅用于展示。

A threshold condition bound to one service. cpu / memory / response_time rules
compare the metric against the threshold; status rules only check for an
offline probe, and their stored threshold (NULL) and operator ("=") are cosmetic.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Float, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.user import utcnow

RULE_TYPES = ("cpu", "memory", "response_time", "status")
COMPARISON_OPERATORS = (">", "<", ">=", "<=")
STATUS_RULE_OPERATOR = "="
NOTIFICATION_METHODS = ("email", "push")


class AlertRule(Base):
    """告警规则表 (Alert Rule Table)"""
    __tablename__ = "alert_rules"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    service_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("services.id", ondelete="CASCADE"), index=True, nullable=False
    )
    rule_type: Mapped[str] = mapped_column(String(20), nullable=False)  # cpu/memory/response_time/status
    threshold: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # status 规则为空
    comparison_operator: Mapped[str] = mapped_column(String(5), nullable=False, default=">")
    notification_method: Mapped[str] = mapped_column(String(10), nullable=False, default="push")  # email/push
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # 冷却期：0 表示每个 tick 只要条件成立就重复触发 (0 = re-fire on every breaching tick)
    cooldown_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    notifications = relationship("Notification", cascade="all, delete-orphan", passive_deletes=True)
