"""
支付配置仓储实现
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.payment_config.entity import PaymentGatewayConfig
from domain.payment_config.repository import PaymentConfigRepository
from infrastructure.models.order import PaymentConfigModel


logger = get_logger(__name__)


class SQLAlchemyPaymentConfigRepository(PaymentConfigRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentConfigModel) -> PaymentGatewayConfig:
        return PaymentGatewayConfig(
            id=model.id,
            app_id=model.alipay_app_id,
            private_key=model.alipay_private_key,
            alipay_public_key=model.alipay_public_key,
            notify_url=model.notify_url,
            gateway_url=model.alipay_gateway_url or "",
            return_url=model.return_url,
            app_public_key=model.app_public_key,
            is_sandbox=bool(model.is_sandbox),
            updated_at=model.updated_at,
        )

    async def get(self, config_id: str) -> Optional[PaymentGatewayConfig]:
        result = await self.session.execute(
            select(PaymentConfigModel).where(PaymentConfigModel.id == config_id)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def upsert(self, config: PaymentGatewayConfig) -> PaymentGatewayConfig:
        model = await self.session.get(PaymentConfigModel, config.id)
        if model is None:
            model = PaymentConfigModel(id=config.id)
            self.session.add(model)
        model.alipay_app_id = config.app_id
        model.alipay_private_key = config.private_key
        model.alipay_public_key = config.alipay_public_key
        model.app_public_key = config.app_public_key
        model.alipay_gateway_url = config.gateway_url
        model.notify_url = config.notify_url
        model.return_url = config.return_url
        model.is_sandbox = config.is_sandbox
        model.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        await self.session.refresh(model)
        logger.info("payment_config_saved", config_id=config.id, app_id=config.app_id)
        return self._to_entity(model)
