"""
订单支付状态查询（只读，不根据客户端参数修改订单）
"""
from __future__ import annotations

from typing import Callable

from application.dtos.payments import CallerIdentity, OrderStatusView
from core.logging_config import get_logger
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


class PaymentStatusService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def get_status(self, caller: CallerIdentity, reference: str) -> OrderStatusView:
        """按订单号或支付渠道交易号查询；只能查看自己的订单"""
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_reference(reference)

        # 他人订单与不存在的订单返回同样的结果
        if order is None or (order.user_id != caller.user_id and not caller.is_superuser):
            raise OrderNotFoundException(reference)

        return OrderStatusView(
            order_number=order.order_number,
            status=order.status.value,
            amount=order.amount,
            product_id=order.product_id,
            payment_method=order.payment_method,
            created_at=order.created_at,
            updated_at=order.updated_at,
            paid_at=order.paid_at,
        )
