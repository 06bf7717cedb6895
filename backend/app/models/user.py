"""
用户模型 (User Model)

服务的所有者和 API 的调用者。角色分为 admin / developer / viewer：
admin 与 developer 可以管理服务和告警规则，viewer 只读。

Owners of monitored services and callers of the API. Roles are admin,
developer and viewer; admin and developer may manage services and alert rules.
"""
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """用户表 (User Table)"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)  # 登录名 (Login name)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="viewer")  # admin/developer/viewer
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    services = relationship("Service", back_populates="owner", passive_deletes=True)
