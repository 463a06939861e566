"""
统一鉴权模块
校验统一认证服务签发的 JWT 令牌，提供角色检查依赖
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from .config import get_settings

settings = get_settings()

# Bearer令牌认证（缺失时交由依赖自行处理，统一返回 401）
security = HTTPBearer(auto_error=False)

# 校园角色
ROLE_ADMIN = "admin"
ROLE_FACULTY = "faculty"
ROLE_STAFF = "staff"
ROLE_STUDENT = "student"
ROLES = (ROLE_ADMIN, ROLE_FACULTY, ROLE_STAFF, ROLE_STUDENT)


class TokenData(BaseModel):
    """令牌数据"""
    user_id: int
    role: str = ROLE_STUDENT
    email: Optional[str] = None


def create_token(data: TokenData, expires_delta: Optional[timedelta] = None) -> str:
    """
    创建JWT令牌

    正式环境由统一认证服务签发，此函数供运维脚本与测试使用
    """
    to_encode = data.model_dump()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[TokenData]:
    """
    解码JWT令牌
    支持密钥轮换：先尝试新密钥，失败则尝试旧密钥
    """
    def _decode(secret: str):
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
        if payload.get("type", "access") != "access":
            raise JWTError("token type mismatch")
        return TokenData(**payload)

    try:
        return _decode(settings.jwt_secret)
    except JWTError:
        if settings.jwt_secret_old:
            try:
                return _decode(settings.jwt_secret_old)
            except JWTError:
                return None
        return None


def _unauthorized(detail: str = "无效的认证凭据") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenData:
    """获取当前用户（依赖注入用）"""
    if credentials is None:
        raise _unauthorized("请先登录")

    token_data = decode_token(credentials.credentials)
    if token_data is None:
        raise _unauthorized()

    return token_data


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenData]:
    """获取当前用户，未携带令牌时返回 None（匿名浏览）"""
    if credentials is None:
        return None

    token_data = decode_token(credentials.credentials)
    if token_data is None:
        raise _unauthorized()
    return token_data


def require_roles(*roles: str):
    """角色检查依赖工厂，管理员始终放行"""
    allowed = set(roles) | {ROLE_ADMIN}

    async def role_checker(user: TokenData = Depends(get_current_user)) -> TokenData:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="没有权限执行此操作"
            )
        return user
    return role_checker
