"""
API依赖项 - 认证、授权与服务装配（组合根）
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from application.dtos.payments import CallerIdentity
from application.ports.identity import IdentityResolver
from application.services.notification_service import NotificationService
from application.services.order_service import OrderService
from application.services.payment_config_service import PaymentConfigProvider, PaymentConfigService
from application.services.payment_status_service import PaymentStatusService
from core.exceptions import ForbiddenException
from core.settings import payment_settings
from infrastructure.external.payments import get_payment_gateway
from infrastructure.identity.jwt_identity import JWTIdentityResolver
from infrastructure.membership.activator import MappingPlanResolver, RpcMembershipActivator
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


async def get_token(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> str:
    """从 Authorization: Bearer 中提取token"""
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="未提供认证凭据",
        headers={"WWW-Authenticate": "Bearer"},
    )


@lru_cache
def get_config_provider() -> PaymentConfigProvider:
    """进程内唯一的配置读穿缓存"""
    cfg = payment_settings.alipay
    return PaymentConfigProvider(
        SQLAlchemyUnitOfWork,
        config_id=cfg.config_id,
        ttl=cfg.config_cache_ttl,
    )


async def get_identity_resolver() -> IdentityResolver:
    return JWTIdentityResolver()


async def get_order_service(
    provider: PaymentConfigProvider = Depends(get_config_provider),
    identity: IdentityResolver = Depends(get_identity_resolver),
) -> OrderService:
    return OrderService(
        uow_factory=SQLAlchemyUnitOfWork,
        config_provider=provider,
        gateway_factory=get_payment_gateway,
        identity=identity,
    )


async def get_notification_service(
    provider: PaymentConfigProvider = Depends(get_config_provider),
) -> NotificationService:
    return NotificationService(
        uow_factory=SQLAlchemyUnitOfWork,
        config_provider=provider,
        gateway_factory=get_payment_gateway,
        activator=RpcMembershipActivator(),
        plan_resolver=MappingPlanResolver(),
    )


async def get_payment_status_service() -> PaymentStatusService:
    return PaymentStatusService(uow_factory=SQLAlchemyUnitOfWork)


async def get_payment_config_service(
    provider: PaymentConfigProvider = Depends(get_config_provider),
) -> PaymentConfigService:
    return PaymentConfigService(uow_factory=SQLAlchemyUnitOfWork, provider=provider)


async def get_current_caller(
    token: str = Depends(get_token),
    identity: IdentityResolver = Depends(get_identity_resolver),
) -> CallerIdentity:
    """获取当前调用者"""
    return await identity.resolve(token)


async def get_current_superuser(
    caller: CallerIdentity = Depends(get_current_caller),
) -> CallerIdentity:
    """获取当前超级管理员"""
    if not caller.is_superuser:
        raise ForbiddenException("需要超级管理员权限")
    return caller
