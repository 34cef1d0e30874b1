import pytest

from application.dtos.payments import PaymentConfigUpdate
from application.services.payment_config_service import PaymentConfigProvider, PaymentConfigService
from domain.common.exceptions import DomainValidationException, PaymentConfigMissingException


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _update(rsa_keys, **overrides) -> PaymentConfigUpdate:
    data = {
        "app_id": "2021000000000002",
        "private_key": rsa_keys.merchant_private,
        "alipay_public_key": rsa_keys.gateway_public,
        "notify_url": "https://pay.example.com/api/v1/payments/alipay/notify",
        "is_sandbox": False,
    }
    data.update(overrides)
    return PaymentConfigUpdate(**data)


@pytest.mark.asyncio
async def test_provider_caches_until_ttl(store, uow_factory, gateway_config):
    clock = FakeClock()
    provider = PaymentConfigProvider(uow_factory, config_id=gateway_config.id, ttl=60, clock=clock)

    first = await provider.get()
    store.configs.clear()
    assert await provider.get() is first

    clock.now = 61
    with pytest.raises(PaymentConfigMissingException):
        await provider.get()


@pytest.mark.asyncio
async def test_provider_invalidate(store, uow_factory, gateway_config):
    provider = PaymentConfigProvider(uow_factory, config_id=gateway_config.id, ttl=3600)
    await provider.get()
    store.configs.clear()
    provider.invalidate()
    with pytest.raises(PaymentConfigMissingException):
        await provider.get()


@pytest.mark.asyncio
async def test_view_never_exposes_private_key(uow_factory, config_provider, rsa_keys):
    view = await PaymentConfigService(uow_factory, config_provider).get_view()
    dumped = view.model_dump_json()

    assert view.has_private_key is True
    assert "private_key" not in view.model_dump()
    assert rsa_keys.merchant_private not in dumped
    assert view.gateway_url.startswith("https://openapi-sandbox")


@pytest.mark.asyncio
async def test_update_stores_and_invalidates_cache(store, uow_factory, gateway_config, rsa_keys):
    provider = PaymentConfigProvider(uow_factory, config_id=gateway_config.id, ttl=3600)
    service = PaymentConfigService(uow_factory, provider)
    await provider.get()

    view = await service.update(_update(rsa_keys))

    assert view.app_id == "2021000000000002"
    assert store.configs[gateway_config.id].app_id == "2021000000000002"
    assert (await provider.get()).app_id == "2021000000000002"


@pytest.mark.asyncio
async def test_update_rejects_unloadable_keys(store, uow_factory, config_provider, gateway_config, rsa_keys):
    service = PaymentConfigService(uow_factory, config_provider)
    with pytest.raises(DomainValidationException):
        await service.update(_update(rsa_keys, private_key="not a key"))
    assert store.configs[gateway_config.id].app_id == gateway_config.app_id
