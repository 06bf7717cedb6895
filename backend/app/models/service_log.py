"""
服务活动日志模型 (Service Activity Log Model)

记录探测失败、服务创建/修改/删除等事件，供仪表盘"最近活动"查询。
service_id 可为空（与具体服务无关的事件）。
"""
from datetime import datetime

from sqlalchemy import Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.user import utcnow

LOG_LEVELS = ("info", "warning", "error")


class ServiceLog(Base):
    """服务日志表 (Service Log Table)"""
    __tablename__ = "service_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=True, index=True
    )
    level: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # info/warning/error
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
