"""
应用配置模块 (Application Configuration Module)

使用 Pydantic Settings 管理 PulseWatch 的所有配置项，支持从 .env 文件和环境变量读取。
涵盖数据库、Redis、JWT 认证、健康探测调度、数据保留和邮件通知等配置。

Uses Pydantic Settings to manage all PulseWatch configuration items, read from
.env files and environment variables. Covers database, Redis, JWT authentication,
health-probe scheduling, data retention and email notification settings.
"""
import logging
import secrets

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    应用全局配置类 (Application Global Configuration Class)

    字段名自动映射同名环境变量（不区分大小写），支持 .env 文件加载。

    Field names map to same-named environment variables (case insensitive),
    with .env file support.
    """

    # 数据库配置 (Database Configuration)
    database_url_override: str = ""  # 完整连接串，设置后忽略 postgres_* (Full URL, overrides postgres_*)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "pulsewatch"
    postgres_user: str = "pulsewatch"
    postgres_password: str = "pulsewatch_dev_password"

    # Redis 配置 (Redis Configuration)
    redis_host: str = "localhost"
    redis_port: int = 6379

    # JWT 认证配置 (JWT Authentication Configuration)
    # ⚠️ 生产环境必须通过环境变量 JWT_SECRET_KEY 设置！
    jwt_secret_key: str = ""
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 120
    jwt_refresh_token_expire_days: int = 7

    # 健康探测配置 (Health Probe Configuration)
    probe_timeout_seconds: float = 10.0  # 单次探测超时 (Per-probe timeout)
    check_interval_seconds: int = 60  # 调度间隔 (Scheduler tick interval)
    probe_concurrency: int = 20  # 单个 tick 内最大并发探测数 (Max concurrent probes per tick)
    # 模拟负载：CPU/内存由延迟推算，并非真实测量 (Simulated load derived from latency, not measured)
    simulated_load_enabled: bool = False

    # 调度器配置 (Scheduler Configuration)
    scheduler_enabled: bool = True
    scheduler_lock_ttl_seconds: int = 120  # 多实例 tick 锁的过期时间 (Multi-instance tick lock TTL)

    # 数据保留配置 (Data Retention Configuration)
    metric_retention_days: int = 30
    log_retention_days: int = 7

    # 邮件通知配置 (Email Notification Configuration)
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_ssl: bool = True
    alert_email_to: str = ""  # 为空时发送给服务所有者 (Empty: send to the service owner)

    log_level: str = "INFO"
    environment: str = "development"

    @property
    def database_url(self) -> str:
        """
        构造异步数据库连接 URL (Build Async Database Connection URL)

        优先使用 DATABASE_URL_OVERRIDE（例如测试或本地 SQLite），
        否则根据 postgres_* 参数生成 asyncpg 连接串。
        """
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def redis_url(self) -> str:
        """构造 Redis 连接 URL (Build Redis Connection URL)"""
        return f"redis://{self.redis_host}:{self.redis_port}/0"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# 全局配置实例 (Global Configuration Instance)
settings = Settings()

# JWT 密钥安全检查：未设置时生成随机密钥并警告
if not settings.jwt_secret_key:
    settings.jwt_secret_key = secrets.token_urlsafe(64)
    logger.warning(
        "JWT_SECRET_KEY not set, using auto-generated random key. "
        "All issued tokens will be invalidated on restart."
    )
