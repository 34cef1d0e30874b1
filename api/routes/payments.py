"""
Payments API routes.

Order creation, the gateway notification endpoint, order status lookup and
gateway config administration. Keep this thin: no gateway details here.
"""
from __future__ import annotations

import ipaddress
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError

from api.dependencies import (
    get_current_caller,
    get_current_superuser,
    get_notification_service,
    get_order_service,
    get_payment_config_service,
    get_payment_status_service,
    http_bearer,
)
from application.dtos.payments import (
    CallerIdentity,
    CreateOrderRequest,
    NotificationOutcome,
    PaymentConfigUpdate,
)
from application.services.notification_service import NotificationService
from application.services.order_service import OrderService
from application.services.payment_config_service import PaymentConfigService
from application.services.payment_status_service import PaymentStatusService
from core.exceptions import business_code_to_http_status
from core.logging_config import get_logger
from core.response import order_created_response, order_failed_response, success_response
from core.settings import payment_settings
from domain.common.exceptions import BusinessException


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


def _remote_ip_permitted(remote_ip: Optional[str]) -> bool:
    allowlist = payment_settings.webhook.ip_allowlist or []
    if not allowlist:
        return True
    if not remote_ip:
        return False
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if "/" in entry:
                if rip in ipaddress.ip_network(entry, strict=False):
                    return True
            elif rip == ipaddress.ip_address(entry):
                return True
        except ValueError:
            logger.warning("webhook_allowlist_entry_invalid", entry=entry)
    return False


@router.post("/alipay/orders", summary="Create Alipay QR order", response_model=None)
async def create_order(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    service: OrderService = Depends(get_order_service),
):
    try:
        body = await request.json()
    except ValueError:
        return order_failed_response(400, "Request body must be JSON")
    try:
        payload = CreateOrderRequest.model_validate(body)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(loc) for loc in first.get("loc", []))
        return order_failed_response(422, f"Invalid {field or 'request'}: {first.get('msg', 'validation failed')}")

    token = bearer.credentials if bearer else ""
    try:
        result = await service.create_order(
            token,
            product_id=payload.product_id,
            amount=payload.total_amount,
            subject=payload.subject,
        )
    except BusinessException as exc:
        return order_failed_response(business_code_to_http_status(exc.code), exc.message)
    except Exception:
        logger.error("order_create_unexpected_error", product_id=payload.product_id, exc_info=True)
        return order_failed_response(500, "Internal server error")

    return order_created_response(result.qr_code_url, result.order_number)


@router.post("/alipay/notify", summary="Alipay asynchronous notification", response_class=PlainTextResponse)
async def alipay_notify(
    request: Request,
    service: NotificationService = Depends(get_notification_service),
):
    remote_ip = request.client.host if request.client else None
    if not _remote_ip_permitted(remote_ip):
        logger.warning("webhook_ip_not_allowed", remote_ip=remote_ip)
        return PlainTextResponse(NotificationOutcome.REJECTED.ack, status_code=403)

    ct = (request.headers.get("content-type") or "").lower()
    if "application/x-www-form-urlencoded" not in ct:
        logger.warning("webhook_content_type_unsupported", content_type=ct)
        return PlainTextResponse(NotificationOutcome.REJECTED.ack, status_code=400)

    raw_body = await request.body()
    try:
        outcome = await service.handle(raw_body)
    except Exception:
        # Gateway redelivers on anything but "success"
        logger.error("payment_notification_failed", exc_info=True)
        return PlainTextResponse(NotificationOutcome.REJECTED.ack, status_code=500)

    status_code = 400 if outcome is NotificationOutcome.REJECTED else 200
    logger.info("payment_notification_handled", outcome=outcome.value)
    return PlainTextResponse(outcome.ack, status_code=status_code)


@router.get("/orders/{reference}", summary="Order payment status")
async def get_order_status(
    reference: str,
    caller: CallerIdentity = Depends(get_current_caller),
    service: PaymentStatusService = Depends(get_payment_status_service),
):
    view = await service.get_status(caller, reference)
    return success_response(data=view.model_dump(mode="json"), message="Order status")


@router.get("/alipay/config", summary="View Alipay gateway config")
async def get_alipay_config(
    _: CallerIdentity = Depends(get_current_superuser),
    service: PaymentConfigService = Depends(get_payment_config_service),
):
    view = await service.get_view()
    return success_response(data=view.model_dump(mode="json"), message="Payment config")


@router.put("/alipay/config", summary="Update Alipay gateway config")
async def update_alipay_config(
    payload: PaymentConfigUpdate,
    admin: CallerIdentity = Depends(get_current_superuser),
    service: PaymentConfigService = Depends(get_payment_config_service),
):
    view = await service.update(payload)
    logger.info("payment_config_updated_by", user_id=admin.user_id)
    return success_response(data=view.model_dump(mode="json"), message="Payment config updated")
