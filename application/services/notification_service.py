"""
Asynchronous trade notification handling.

Signature verification is a hard gate: nothing is written before the gateway
adapter has verified the callback. The pending -> paid transition and the
membership activation share one transaction; only the request whose
conditional update changed the row activates.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Callable

from application.dtos.payments import NotificationOutcome, TradeNotification
from application.ports.membership import MembershipActivator, PlanResolver
from application.ports.payment_gateway import GatewayFactory
from application.services.payment_config_service import PaymentConfigProvider
from core.logging_config import get_logger
from domain.common.exceptions import (
    AmountMismatchException,
    BusinessException,
    OrderNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from shared.codes.payment_codes import ALIPAY_TRADE_STATUS_TO_ORDER, PaymentCode


logger = get_logger(__name__)

_UNTRUSTED_CODES = {PaymentCode.SIGNATURE_INVALID, PaymentCode.MALFORMED_NOTIFICATION}


class NotificationService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        config_provider: PaymentConfigProvider,
        gateway_factory: GatewayFactory,
        activator: MembershipActivator,
        plan_resolver: PlanResolver,
    ) -> None:
        self._uow_factory = uow_factory
        self._config_provider = config_provider
        self._gateway_factory = gateway_factory
        self._activator = activator
        self._plan_resolver = plan_resolver

    async def handle(self, body: bytes) -> NotificationOutcome:
        """Process one callback body. Business failures map to REJECTED."""
        try:
            return await self._process(body)
        except BusinessException as exc:
            log = logger.warning if exc.code in _UNTRUSTED_CODES else logger.error
            log(
                "payment_notification_rejected",
                error_type=exc.error_type,
                code=int(exc.code),
                details=exc.details,
            )
            return NotificationOutcome.REJECTED

    async def _process(self, body: bytes) -> NotificationOutcome:
        config = await self._config_provider.get()
        gateway = self._gateway_factory(config)
        try:
            notification = gateway.parse_notification(body)
        finally:
            await gateway.aclose()
        logger.info(
            "payment_notification_verified",
            out_trade_no=notification.out_trade_no,
            trade_status=notification.trade_status,
            trade_no=notification.trade_no,
        )

        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_order_number(notification.out_trade_no)
        if order is None:
            raise OrderNotFoundException(notification.out_trade_no)
        self._check_amount(order, notification)

        target = ALIPAY_TRADE_STATUS_TO_ORDER.get(notification.trade_status)
        if target == OrderStatus.PAID.value:
            return await self._settle_paid(order, notification)
        if target == OrderStatus.FAILED.value:
            return await self._close(order)

        logger.info(
            "payment_notification_status_ignored",
            order_number=order.order_number,
            trade_status=notification.trade_status,
        )
        return NotificationOutcome.IGNORED

    @staticmethod
    def _check_amount(order: Order, notification: TradeNotification) -> None:
        if notification.total_amount is None:
            return
        try:
            received = Decimal(notification.total_amount)
        except InvalidOperation:
            raise AmountMismatchException(order.order_number, order.amount, notification.total_amount) from None
        if received != order.amount:
            raise AmountMismatchException(order.order_number, order.amount, notification.total_amount)

    async def _settle_paid(self, order: Order, notification: TradeNotification) -> NotificationOutcome:
        plan_id = await self._plan_resolver.resolve(order.product_id)

        async with self._uow_factory() as uow:
            changed = await uow.order_repository.transition_status(
                order.order_number,
                from_status=OrderStatus.PENDING,
                to_status=OrderStatus.PAID,
                payment_id=notification.trade_no,
            )
            if changed:
                # Raising here rolls the status back; the gateway redelivers
                await self._activator.activate(user_id=order.user_id, plan_id=plan_id, order_id=order.id)
                logger.info(
                    "payment_settled",
                    order_number=order.order_number,
                    user_id=order.user_id,
                    plan_id=plan_id,
                    trade_no=notification.trade_no,
                )
                return NotificationOutcome.PROCESSED
            current = await uow.order_repository.get_by_order_number(order.order_number)

        if current is not None and current.status == OrderStatus.PAID:
            logger.info("payment_notification_duplicate", order_number=order.order_number)
            return NotificationOutcome.DUPLICATE

        logger.error(
            "payment_success_for_closed_order",
            order_number=order.order_number,
            status=current.status.value if current else None,
            trade_no=notification.trade_no,
        )
        return NotificationOutcome.IGNORED

    async def _close(self, order: Order) -> NotificationOutcome:
        async with self._uow_factory() as uow:
            changed = await uow.order_repository.transition_status(
                order.order_number,
                from_status=OrderStatus.PENDING,
                to_status=OrderStatus.FAILED,
            )
        if changed:
            logger.info("payment_trade_closed", order_number=order.order_number)
            return NotificationOutcome.PROCESSED
        logger.info("payment_trade_closed_noop", order_number=order.order_number)
        return NotificationOutcome.DUPLICATE
