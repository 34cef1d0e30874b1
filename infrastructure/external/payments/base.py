"""
Shared plumbing for gateway clients: one lazily created httpx client per
instance, timeout construction and provider-tagged logging.

A request is sent exactly once; retrying is left to the caller.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Optional

import httpx

from core.logging_config import get_logger
from application.dtos.payments import PrecreateSuccess, TradeNotification
from domain.payment_config.entity import PaymentGatewayConfig


logger = get_logger(__name__)

DEFAULT_TIMEOUTS = {"connect": 3.0, "read": 10.0, "write": 10.0, "total": 15.0}


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        config: PaymentGatewayConfig,
        *,
        timeouts: Optional[dict[str, float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._timeout_values = {**DEFAULT_TIMEOUTS, **(timeouts or {})}
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def config(self) -> PaymentGatewayConfig:
        return self._config

    @property
    def timeouts(self) -> httpx.Timeout:
        values = self._timeout_values
        return httpx.Timeout(
            values["total"],
            connect=values["connect"],
            read=values["read"],
            write=values["write"],
        )

    @asynccontextmanager
    async def client(self) -> AsyncIterator[httpx.AsyncClient]:
        # reused across calls until aclose()
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        yield self._http

    async def aclose(self) -> None:
        http, self._http = self._http, None
        if http is not None:
            await http.aclose()

    async def precreate(self, *, out_trade_no: str, total_amount: Decimal, subject: str) -> PrecreateSuccess:
        raise NotImplementedError

    def parse_notification(self, body: bytes) -> TradeNotification:
        raise NotImplementedError

    def _log(self, event: str, **kwargs) -> None:
        logger.info(event, provider=self.provider, app_id=self._config.app_id, **kwargs)
