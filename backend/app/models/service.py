"""
服务模型 (Service Model)

定义被监控服务和健康探测结果的表结构。每次探测追加一条 ServiceMetric，
记录只插入、不更新，可按保留期清理。删除服务时其探测结果、告警规则和日志
通过外键 ON DELETE CASCADE 一并删除。

Defines monitored services and their probe results. Every probe appends one
ServiceMetric; rows are insert-only and pruned by age. Deleting a service
cascades to its metrics, alert rules and logs through ON DELETE CASCADE.
"""
from datetime import datetime

from sqlalchemy import String, Integer, Float, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.user import utcnow

# 探测状态 (Probe statuses)
STATUS_ONLINE = "online"
STATUS_DEGRADED = "degraded"
STATUS_OFFLINE = "offline"
PROBE_STATUSES = (STATUS_ONLINE, STATUS_DEGRADED, STATUS_OFFLINE)


class Service(Base):
    """
    服务表 (Service Table)

    存储用户注册的被监控 URL，每个服务归属一个用户。
    """
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)  # 探测目标 URL (Probe target URL)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="services")
    metrics = relationship("ServiceMetric", cascade="all, delete-orphan", passive_deletes=True)
    alert_rules = relationship("AlertRule", cascade="all, delete-orphan", passive_deletes=True)
    logs = relationship("ServiceLog", cascade="all, delete-orphan", passive_deletes=True)


class ServiceMetric(Base):
    """
    探测结果表 (Probe Result Table)

    cpu_usage / memory_usage 不是从目标服务采集的真实数据：仅在开启模拟负载时
    由响应延迟推算，此时 load_simulated 为 True。

    cpu_usage / memory_usage are never measured on the target. They are only
    filled when simulated load is enabled, derived from latency, and flagged
    with load_simulated.
    """
    __tablename__ = "service_metrics"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    service_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("services.id", ondelete="CASCADE"), index=True, nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # online/degraded/offline
    response_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 超时为空 (NULL on timeout)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cpu_usage: Mapped[float | None] = mapped_column(Float, nullable=True)
    memory_usage: Mapped[float | None] = mapped_column(Float, nullable=True)
    load_simulated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error: Mapped[str | None] = mapped_column(String(500), nullable=True)
    checked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
