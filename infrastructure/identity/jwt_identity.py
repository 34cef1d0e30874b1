"""
JWT 访问令牌解析 - IdentityResolver 的实现
"""
from typing import Optional

import jwt

from application.dtos.payments import CallerIdentity
from core.config import settings
from core.exceptions import TokenExpiredException, UnauthorizedException
from core.logging_config import get_logger


logger = get_logger(__name__)


class JWTIdentityResolver:
    """校验 HS256 访问令牌，`sub` 为用户ID"""

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = algorithm or settings.ALGORITHM

    async def resolve(self, token: str) -> CallerIdentity:
        if not token:
            raise UnauthorizedException("Missing bearer token")
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpiredException()
        except jwt.PyJWTError as e:
            logger.warning("invalid_access_token", error=type(e).__name__)
            raise UnauthorizedException("Invalid token")

        if payload.get("type", "access") != "access":
            raise UnauthorizedException("Invalid token type")

        user_id = payload.get("sub")
        if not user_id:
            raise UnauthorizedException("Token missing subject")
        return CallerIdentity(user_id=str(user_id), is_superuser=bool(payload.get("is_superuser", False)))
