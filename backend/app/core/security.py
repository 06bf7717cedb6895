"""
安全工具模块 (Security Tools Module)

密码使用 bcrypt 哈希（passlib），API 访问使用 JWT（python-jose）。
访问令牌和刷新令牌共用同一签名密钥，通过载荷中的 ``type`` 字段区分。

Passwords are hashed with bcrypt through passlib; API access uses JWTs signed
with python-jose. Access and refresh tokens share the signing key and are told
apart by the ``type`` claim.
"""
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def _encode(subject: str, token_type: str, expires_in: timedelta) -> str:
    payload = {
        "sub": subject,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(subject: str) -> str:
    """生成短期访问令牌 (Short-lived access token)"""
    return _encode(subject, "access", timedelta(minutes=settings.jwt_access_token_expire_minutes))


def create_refresh_token(subject: str) -> str:
    """生成长期刷新令牌 (Long-lived refresh token)"""
    return _encode(subject, "refresh", timedelta(days=settings.jwt_refresh_token_expire_days))


def decode_token(token: str) -> dict | None:
    """
    解析 JWT 令牌 (Decode a JWT)

    签名无效、格式错误或已过期时返回 None。

    Returns:
        dict | None: 载荷字典，失败返回 None (Payload dict, or None on failure)
    """
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
