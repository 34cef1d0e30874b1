"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Order, OrderStatus


class OrderRepository(ABC):
    """订单仓储抽象接口"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单（order_number 冲突时抛出异常）"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据内部ID获取订单"""
        pass

    @abstractmethod
    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        """根据商户订单号（out_trade_no）获取订单"""
        pass

    @abstractmethod
    async def get_by_reference(self, reference: str) -> Optional[Order]:
        """根据商户订单号或支付渠道交易号获取订单"""
        pass

    @abstractmethod
    async def attach_payment_id(self, order_number: str, payment_id: str) -> bool:
        """仅当 payment_id 为空时写入，返回是否写入"""
        pass

    @abstractmethod
    async def transition_status(
        self,
        order_number: str,
        *,
        from_status: OrderStatus,
        to_status: OrderStatus,
        payment_id: Optional[str] = None,
    ) -> bool:
        """
        条件更新（compare-and-set）：仅当当前状态为 from_status 时更新。

        返回是否有行被更新；并发场景下只有一个调用方会得到 True。
        """
        pass
