"""
数据模型包 (Data Models Package)

集中导出所有 SQLAlchemy ORM 模型：用户、服务、探测结果、告警规则、通知和服务日志。
"""
from app.models.user import User
from app.models.service import Service, ServiceMetric
from app.models.alert import AlertRule
from app.models.notification import Notification
from app.models.service_log import ServiceLog

__all__ = ["User", "Service", "ServiceMetric", "AlertRule", "Notification", "ServiceLog"]
