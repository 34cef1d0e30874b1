from decimal import Decimal

import pytest

from application.dtos.payments import NotificationOutcome
from application.services.notification_service import NotificationService
from domain.order.entity import OrderStatus
from infrastructure.external.payments import get_payment_gateway


@pytest.fixture
def service(uow_factory, config_provider, activator, plan_resolver):
    return NotificationService(
        uow_factory=uow_factory,
        config_provider=config_provider,
        gateway_factory=get_payment_gateway,
        activator=activator,
        plan_resolver=plan_resolver,
    )


@pytest.mark.asyncio
async def test_trade_success_marks_paid_and_activates(service, store, add_order, sign_notification, activator):
    order = add_order()
    outcome = await service.handle(sign_notification(order))

    assert outcome is NotificationOutcome.PROCESSED
    assert outcome.ack == "success"
    saved = store.orders[order.order_number]
    assert saved.status == OrderStatus.PAID
    assert saved.payment_id == "2026101922001400000000000001"
    assert saved.paid_at is not None
    assert activator.calls == [{"user_id": "user-1", "plan_id": "plan-premium-monthly", "order_id": order.id}]


@pytest.mark.asyncio
async def test_trade_finished_is_treated_as_paid(service, store, add_order, sign_notification):
    order = add_order()
    outcome = await service.handle(sign_notification(order, trade_status="TRADE_FINISHED"))
    assert outcome is NotificationOutcome.PROCESSED
    assert store.orders[order.order_number].status == OrderStatus.PAID


@pytest.mark.asyncio
async def test_redelivered_success_activates_once(service, store, add_order, sign_notification, activator):
    order = add_order()
    body = sign_notification(order)

    first = await service.handle(body)
    second = await service.handle(body)

    assert first is NotificationOutcome.PROCESSED
    assert second is NotificationOutcome.DUPLICATE
    assert second.ack == "success"
    assert len(activator.calls) == 1


@pytest.mark.asyncio
async def test_trade_closed_marks_failed(service, store, add_order, sign_notification, activator):
    order = add_order()
    outcome = await service.handle(sign_notification(order, trade_status="TRADE_CLOSED"))

    assert outcome.ack == "success"
    assert store.orders[order.order_number].status == OrderStatus.FAILED
    assert activator.calls == []


@pytest.mark.asyncio
async def test_wait_buyer_pay_is_acknowledged_without_change(service, store, add_order, sign_notification):
    order = add_order()
    outcome = await service.handle(sign_notification(order, trade_status="WAIT_BUYER_PAY"))

    assert outcome is NotificationOutcome.IGNORED
    assert outcome.ack == "success"
    assert store.orders[order.order_number].status == OrderStatus.PENDING
    assert store.commits == 0


@pytest.mark.asyncio
async def test_success_after_close_is_not_reopened(service, store, add_order, sign_notification, activator):
    order = add_order(status=OrderStatus.FAILED)
    outcome = await service.handle(sign_notification(order))

    assert outcome is NotificationOutcome.IGNORED
    assert store.orders[order.order_number].status == OrderStatus.FAILED
    assert activator.calls == []


@pytest.mark.asyncio
async def test_unknown_order_is_rejected(service, store, add_order, sign_notification):
    order = add_order()
    del store.orders[order.order_number]

    outcome = await service.handle(sign_notification(order))
    assert outcome is NotificationOutcome.REJECTED
    assert outcome.ack == "fail"
    assert store.orders == {}


@pytest.mark.asyncio
async def test_tampered_notification_writes_nothing(service, store, add_order, sign_notification, activator):
    order = add_order()
    outcome = await service.handle(sign_notification(order, tamper={"trade_status": "TRADE_SUCCESS", "total_amount": "0.01"}))

    assert outcome is NotificationOutcome.REJECTED
    assert store.orders[order.order_number].status == OrderStatus.PENDING
    assert store.commits == 0
    assert activator.calls == []


@pytest.mark.asyncio
async def test_unsigned_notification_is_rejected(service, store, add_order):
    order = add_order()
    body = f"out_trade_no={order.order_number}&trade_status=TRADE_SUCCESS".encode()
    assert await service.handle(body) is NotificationOutcome.REJECTED
    assert store.orders[order.order_number].status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_app_id_mismatch_is_rejected(service, store, add_order, sign_notification):
    order = add_order()
    outcome = await service.handle(sign_notification(order, app_id="2021999999999999"))
    assert outcome is NotificationOutcome.REJECTED
    assert store.orders[order.order_number].status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_signed_amount_mismatch_is_rejected(service, store, add_order, sign_notification, activator):
    order = add_order(amount=Decimal("99.00"))
    outcome = await service.handle(sign_notification(order, total_amount="9.90"))

    assert outcome is NotificationOutcome.REJECTED
    assert store.orders[order.order_number].status == OrderStatus.PENDING
    assert activator.calls == []


@pytest.mark.asyncio
async def test_amount_compared_numerically(service, store, add_order, sign_notification):
    order = add_order(amount=Decimal("99.00"))
    outcome = await service.handle(sign_notification(order, total_amount="99.0"))
    assert outcome is NotificationOutcome.PROCESSED


@pytest.mark.asyncio
async def test_activation_failure_rolls_back(service, store, add_order, sign_notification, activator):
    order = add_order()
    body = sign_notification(order)
    activator.fail = True

    outcome = await service.handle(body)
    assert outcome is NotificationOutcome.REJECTED
    assert store.orders[order.order_number].status == OrderStatus.PENDING
    assert store.rollbacks == 1

    # the gateway redelivers; a healthy activator settles the order
    activator.fail = False
    assert await service.handle(body) is NotificationOutcome.PROCESSED
    assert store.orders[order.order_number].status == OrderStatus.PAID
    assert len(activator.calls) == 1


@pytest.mark.asyncio
async def test_unknown_plan_is_rejected_without_writing(service, store, add_order, sign_notification):
    order = add_order(product_id="unknown_product")
    outcome = await service.handle(sign_notification(order))

    assert outcome is NotificationOutcome.REJECTED
    assert store.orders[order.order_number].status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_missing_config_is_rejected(service, store, add_order, sign_notification):
    order = add_order()
    body = sign_notification(order)
    store.configs.clear()
    assert await service.handle(body) is NotificationOutcome.REJECTED
