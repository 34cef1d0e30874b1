"""
Alipay adapter for the face-to-face QR flow.

Talks to the open-platform gateway directly over httpx: `alipay.trade.precreate`
for order QR codes, and RSA2 verification of the asynchronous trade
notifications. Both directions go through `signer`.
"""
from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from urllib.parse import parse_qsl
from zoneinfo import ZoneInfo

import httpx
from pydantic import ValidationError

from application.dtos.payments import GatewayErrorResponse, PrecreateSuccess, TradeNotification
from core.settings import payment_settings
from domain.payment_config.entity import PaymentGatewayConfig
from infrastructure.external.payments import signer
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    GatewayRejected,
    GatewayUnreachable,
    MalformedNotification,
    SignatureInvalid,
)
from shared.codes.payment_codes import ALIPAY_SUCCESS_CODE


PRECREATE_METHOD = "alipay.trade.precreate"
PRECREATE_RESPONSE_KEY = "alipay_trade_precreate_response"
REQUIRED_NOTIFICATION_FIELDS = ("out_trade_no", "trade_status", "sign")
SIGN_TYPE = "RSA2"


class AlipayClient(BasePaymentClient):
    provider = "alipay"

    def __init__(
        self,
        config: PaymentGatewayConfig,
        *,
        timeouts: Optional[dict[str, float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            config,
            timeouts=timeouts or payment_settings.timeouts.model_dump(),
            transport=transport,
        )

    @staticmethod
    def _to_yuan(amount: Decimal) -> str:
        # Alipay uses yuan units as string, with 2 decimals
        return f"{amount:.2f}"

    @staticmethod
    def _timestamp() -> str:
        tz = ZoneInfo(payment_settings.alipay.timezone)
        return datetime.now(tz).strftime("%Y-%m-%d %H:%M:%S")

    def build_precreate_params(self, *, out_trade_no: str, total_amount: Decimal, subject: str) -> dict[str, str]:
        """Signed form parameters for `alipay.trade.precreate`."""
        biz_content = {
            "out_trade_no": out_trade_no,
            "total_amount": self._to_yuan(total_amount),
            "subject": subject,
            "product_code": payment_settings.alipay.product_code,
        }
        params = {
            "app_id": self._config.app_id,
            "method": PRECREATE_METHOD,
            "charset": "utf-8",
            "sign_type": SIGN_TYPE,
            "timestamp": self._timestamp(),
            "version": "1.0",
            "notify_url": self._config.notify_url,
            "biz_content": json.dumps(biz_content, ensure_ascii=False, separators=(",", ":")),
        }
        params["sign"] = signer.sign_params(params, self._config.private_key)
        return params

    async def precreate(self, *, out_trade_no: str, total_amount: Decimal, subject: str) -> PrecreateSuccess:  # type: ignore[override]
        params = self.build_precreate_params(
            out_trade_no=out_trade_no, total_amount=total_amount, subject=subject
        )
        url = self._config.effective_gateway_url
        self._log("alipay_precreate_request", out_trade_no=out_trade_no, gateway=url)
        async with self.client() as http:
            try:
                resp = await http.post(url, data=params)
            except httpx.HTTPError as exc:
                raise GatewayUnreachable(type(exc).__name__) from exc
        if resp.status_code >= 300:
            raise GatewayUnreachable(f"HTTP {resp.status_code}", status_code=resp.status_code)
        result = self._parse_precreate(resp.content, expected_out_trade_no=out_trade_no)
        self._log("alipay_precreate_ok", out_trade_no=result.out_trade_no)
        return result

    def _parse_precreate(self, body: bytes, *, expected_out_trade_no: str) -> PrecreateSuccess:
        try:
            payload: Any = json.loads(body)
        except ValueError:
            raise GatewayRejected("invalid_response", "response is not JSON") from None
        envelope = payload.get(PRECREATE_RESPONSE_KEY) if isinstance(payload, dict) else None
        if not isinstance(envelope, dict):
            raise GatewayRejected("invalid_response", f"missing {PRECREATE_RESPONSE_KEY}")

        code = str(envelope.get("code") or "")
        if code != ALIPAY_SUCCESS_CODE:
            try:
                error = GatewayErrorResponse.model_validate({**envelope, "code": code or "unknown"})
            except ValidationError:
                raise GatewayRejected(code or "unknown", "unrecognised error response") from None
            raise GatewayRejected(error.code, error.reason, details={"sub_code": error.sub_code})

        try:
            result = PrecreateSuccess.model_validate(envelope)
        except ValidationError as exc:
            missing = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
            raise GatewayRejected(code, "incomplete success response", details={"fields": missing}) from None
        if result.out_trade_no != expected_out_trade_no:
            raise GatewayRejected(
                code,
                "out_trade_no mismatch",
                details={"expected": expected_out_trade_no, "received": result.out_trade_no},
            )
        return result

    def parse_notification(self, body: bytes) -> TradeNotification:  # type: ignore[override]
        # Alipay sends form-encoded payloads
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedNotification(reason="body is not valid utf-8") from None
        params = dict(parse_qsl(text, keep_blank_values=True))
        missing = [key for key in REQUIRED_NOTIFICATION_FIELDS if not params.get(key)]
        if missing:
            raise MalformedNotification(missing=missing)

        out_trade_no = params["out_trade_no"]
        sign_type = params.get("sign_type")
        if sign_type and sign_type.upper() != SIGN_TYPE:
            raise SignatureInvalid(f"unsupported sign_type {sign_type}", out_trade_no=out_trade_no)
        if not signer.verify_params(params, self._config.alipay_public_key):
            raise SignatureInvalid(out_trade_no=out_trade_no)

        app_id = params.get("app_id")
        if app_id and app_id != self._config.app_id:
            raise SignatureInvalid("app_id mismatch", out_trade_no=out_trade_no)

        return TradeNotification(
            out_trade_no=out_trade_no,
            trade_status=params["trade_status"],
            trade_no=params.get("trade_no") or None,
            total_amount=params.get("total_amount") or None,
            app_id=app_id or None,
            gmt_payment=params.get("gmt_payment") or None,
            fields={k: v for k, v in params.items() if k != "sign"},
        )
