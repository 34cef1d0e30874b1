"""
Order creation use-case: persist a pending order, then ask the gateway for a
payment QR code.

Gateway adapters are bound to the config resolved for this request and are
built through the injected factory.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Callable

from application.dtos.payments import CreateOrderResult
from application.ports.identity import IdentityResolver
from application.ports.payment_gateway import GatewayFactory
from application.services.payment_config_service import PaymentConfigProvider
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, normalize_amount


logger = get_logger(__name__)


class OrderService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        config_provider: PaymentConfigProvider,
        gateway_factory: GatewayFactory,
        identity: IdentityResolver,
    ) -> None:
        self._uow_factory = uow_factory
        self._config_provider = config_provider
        self._gateway_factory = gateway_factory
        self._identity = identity

    async def create_order(
        self,
        caller_token: str,
        product_id: str,
        amount: Decimal,
        subject: str,
    ) -> CreateOrderResult:
        caller = await self._identity.resolve(caller_token)
        config = await self._config_provider.get()
        amount = normalize_amount(amount)

        # The pending row commits before the gateway call so a fast callback finds it
        order = Order.new(user_id=caller.user_id, product_id=product_id, amount=amount, subject=subject)
        async with self._uow_factory() as uow:
            order = await uow.order_repository.create(order)
        logger.info(
            "order_pending",
            order_number=order.order_number,
            user_id=caller.user_id,
            product_id=product_id,
            amount=str(amount),
        )

        gateway = self._gateway_factory(config)
        try:
            result = await gateway.precreate(
                out_trade_no=order.order_number,
                total_amount=order.amount,
                subject=subject,
            )
        except Exception as exc:
            logger.warning(
                "order_precreate_failed",
                order_number=order.order_number,
                error_type=type(exc).__name__,
            )
            raise
        finally:
            await gateway.aclose()

        await self._attach_payment_id(order.order_number, result.out_trade_no)
        logger.info("order_created", order_number=order.order_number, provider=gateway.provider)
        return CreateOrderResult(
            order_number=order.order_number,
            qr_code_url=result.qr_code,
            out_trade_no=result.out_trade_no,
        )

    async def _attach_payment_id(self, order_number: str, payment_id: str) -> None:
        try:
            async with self._uow_factory() as uow:
                await uow.order_repository.attach_payment_id(order_number, payment_id)
        except Exception:
            # The QR code is already issued; the callback still finds the order by number
            logger.error("order_payment_id_update_failed", order_number=order_number, exc_info=True)
