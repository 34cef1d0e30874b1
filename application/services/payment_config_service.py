"""
Payment gateway configuration: per-request resolution with a short read-through
cache, plus the admin view/update use-cases.
"""
from __future__ import annotations

import time
from typing import Callable, Optional

from application.dtos.payments import PaymentConfigUpdate, PaymentConfigView
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException, PaymentConfigMissingException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment_config.entity import PaymentGatewayConfig
from infrastructure.external.payments import signer
from infrastructure.external.payments.exceptions import KeyImportError


logger = get_logger(__name__)


class PaymentConfigProvider:
    """Loads the active config record; caches it for `ttl` seconds.

    A missing record is never cached. `invalidate()` drops the cached copy so
    an admin update takes effect on the next request.
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        config_id: str,
        ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._uow_factory = uow_factory
        self._config_id = config_id
        self._ttl = ttl
        self._clock = clock
        self._cached: Optional[PaymentGatewayConfig] = None
        self._expires_at = 0.0

    @property
    def config_id(self) -> str:
        return self._config_id

    async def get(self) -> PaymentGatewayConfig:
        if self._cached is not None and self._clock() < self._expires_at:
            return self._cached

        async with self._uow_factory(readonly=True) as uow:
            config = await uow.payment_config_repository.get(self._config_id)
        if config is None:
            logger.error("payment_config_missing", config_id=self._config_id)
            raise PaymentConfigMissingException(self._config_id)

        if self._ttl > 0:
            self._cached = config
            self._expires_at = self._clock() + self._ttl
        return config

    def invalidate(self) -> None:
        self._cached = None
        self._expires_at = 0.0


def to_view(config: PaymentGatewayConfig) -> PaymentConfigView:
    return PaymentConfigView(
        app_id=config.app_id,
        gateway_url=config.effective_gateway_url,
        notify_url=config.notify_url,
        return_url=config.return_url,
        is_sandbox=config.is_sandbox,
        has_private_key=bool(config.private_key),
        alipay_public_key=config.alipay_public_key,
        updated_at=config.updated_at,
    )


class PaymentConfigService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], provider: PaymentConfigProvider) -> None:
        self._uow_factory = uow_factory
        self._provider = provider

    @staticmethod
    def _check_key(loader: Callable[[str], object], pem: str, field: str) -> None:
        try:
            loader(pem)
        except KeyImportError as exc:
            raise DomainValidationException(
                f"{field} is not a valid RSA key",
                field=field,
                details={"reason": exc.details.get("reason") if exc.details else None},
            ) from None

    async def get_view(self) -> PaymentConfigView:
        config = await self._provider.get()
        return to_view(config)

    async def update(self, data: PaymentConfigUpdate) -> PaymentConfigView:
        # Refuse to store keys the signer cannot load
        self._check_key(signer.load_private_key, data.private_key, "private_key")
        self._check_key(signer.load_public_key, data.alipay_public_key, "alipay_public_key")
        if data.app_public_key:
            self._check_key(signer.load_public_key, data.app_public_key, "app_public_key")

        config = PaymentGatewayConfig(
            id=self._provider.config_id,
            app_id=data.app_id.strip(),
            private_key=data.private_key.strip(),
            alipay_public_key=data.alipay_public_key.strip(),
            notify_url=data.notify_url.strip(),
            gateway_url=data.gateway_url.strip(),
            return_url=data.return_url,
            app_public_key=data.app_public_key,
            is_sandbox=data.is_sandbox,
        )
        async with self._uow_factory() as uow:
            saved = await uow.payment_config_repository.upsert(config)
        self._provider.invalidate()
        logger.info("payment_config_updated", config_id=saved.id, app_id=saved.app_id, is_sandbox=saved.is_sandbox)
        return to_view(saved)
