"""
支付配置仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import PaymentGatewayConfig


class PaymentConfigRepository(ABC):

    @abstractmethod
    async def get(self, config_id: str) -> Optional[PaymentGatewayConfig]:
        """根据固定ID获取配置"""
        pass

    @abstractmethod
    async def upsert(self, config: PaymentGatewayConfig) -> PaymentGatewayConfig:
        """插入或更新（按ID覆盖）"""
        pass
