"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings, and provide
in-memory fakes for the unit of work and the outbound ports.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")

import copy
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional
from urllib.parse import urlencode

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from application.dtos.payments import CallerIdentity, PrecreateSuccess
from application.services.payment_config_service import PaymentConfigProvider
from core.exceptions import UnauthorizedException
from domain.common.exceptions import DomainValidationException, MembershipActivationError
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from domain.order.repository import OrderRepository
from domain.payment_config.entity import PaymentGatewayConfig
from domain.payment_config.repository import PaymentConfigRepository
from infrastructure.external.payments import signer
from infrastructure.membership.activator import MappingPlanResolver


APP_ID = "2021000000000001"
NOTIFY_URL = "https://pay.example.com/api/v1/payments/alipay/notify"
VALID_TOKEN = "valid-token"


def _keypair() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture(scope="session")
def rsa_keys():
    merchant_private, merchant_public = _keypair()
    gateway_private, gateway_public = _keypair()
    return SimpleNamespace(
        merchant_private=merchant_private,
        merchant_public=merchant_public,
        gateway_private=gateway_private,
        gateway_public=gateway_public,
    )


@pytest.fixture
def gateway_config(rsa_keys) -> PaymentGatewayConfig:
    return PaymentGatewayConfig(
        id="alipay_config",
        app_id=APP_ID,
        private_key=rsa_keys.merchant_private,
        alipay_public_key=rsa_keys.gateway_public,
        notify_url=NOTIFY_URL,
        is_sandbox=True,
    )


# ---- in-memory persistence ----

class InMemoryStore:
    def __init__(self):
        self.orders: dict[str, Order] = {}
        self.configs: dict[str, PaymentGatewayConfig] = {}
        self.commits = 0
        self.rollbacks = 0
        self.fail_attach = False
        self.fail_create = False


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, orders: dict[str, Order], store: InMemoryStore):
        self._orders = orders
        self._store = store

    async def create(self, order: Order) -> Order:
        if self._store.fail_create:
            raise RuntimeError("database unavailable")
        if order.order_number in self._orders:
            raise DomainValidationException("订单号冲突", field="order_number")
        self._orders[order.order_number] = copy.deepcopy(order)
        return copy.deepcopy(order)

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        for order in self._orders.values():
            if order.id == order_id:
                return copy.deepcopy(order)
        return None

    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        order = self._orders.get(order_number)
        return copy.deepcopy(order) if order else None

    async def get_by_reference(self, reference: str) -> Optional[Order]:
        for order in self._orders.values():
            if reference in (order.order_number, order.payment_id):
                return copy.deepcopy(order)
        return None

    async def attach_payment_id(self, order_number: str, payment_id: str) -> bool:
        if self._store.fail_attach:
            raise RuntimeError("database unavailable")
        order = self._orders.get(order_number)
        if order is None or order.payment_id is not None:
            return False
        order.payment_id = payment_id
        return True

    async def transition_status(self, order_number, *, from_status, to_status, payment_id=None) -> bool:
        order = self._orders.get(order_number)
        if order is None or order.status != from_status:
            return False
        if to_status == OrderStatus.PAID:
            order.mark_paid(payment_id)
        else:
            order.mark_failed()
        return True


class InMemoryPaymentConfigRepository(PaymentConfigRepository):
    def __init__(self, configs: dict[str, PaymentGatewayConfig]):
        self._configs = configs

    async def get(self, config_id: str) -> Optional[PaymentGatewayConfig]:
        return self._configs.get(config_id)

    async def upsert(self, config: PaymentGatewayConfig) -> PaymentGatewayConfig:
        self._configs[config.id] = config
        return config


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Works on a copy of the store; commit publishes it, rollback drops it."""

    def __init__(self, store: InMemoryStore, *, readonly: bool = False):
        super().__init__(readonly=readonly)
        self._store = store

    async def __aenter__(self):
        self._orders = copy.deepcopy(self._store.orders)
        self._configs = dict(self._store.configs)
        self.order_repository = InMemoryOrderRepository(self._orders, self._store)
        self.payment_config_repository = InMemoryPaymentConfigRepository(self._configs)
        return self

    async def commit(self) -> None:
        if not self._readonly:
            self._store.orders = self._orders
            self._store.configs = self._configs
            self._store.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self._store.rollbacks += 1
        self._committed = False


@pytest.fixture
def store(gateway_config) -> InMemoryStore:
    s = InMemoryStore()
    s.configs[gateway_config.id] = gateway_config
    return s


@pytest.fixture
def uow_factory(store):
    def _factory(*, readonly: bool = False) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store, readonly=readonly)
    return _factory


@pytest.fixture
def config_provider(uow_factory, gateway_config) -> PaymentConfigProvider:
    return PaymentConfigProvider(uow_factory, config_id=gateway_config.id, ttl=0)


@pytest.fixture
def add_order(store):
    def _add(**overrides) -> Order:
        order = Order.new(
            user_id=overrides.pop("user_id", "user-1"),
            product_id=overrides.pop("product_id", "premium_monthly"),
            amount=overrides.pop("amount", Decimal("99.00")),
            subject=overrides.pop("subject", "Premium membership"),
        )
        for key, value in overrides.items():
            setattr(order, key, value)
        store.orders[order.order_number] = order
        return order
    return _add


# ---- outbound port stubs ----

class StubGateway:
    provider = "stub"

    def __init__(self, config: PaymentGatewayConfig, *, error: Optional[Exception] = None):
        self.config = config
        self.error = error
        self.calls: list[dict] = []
        self.closed = False

    async def precreate(self, *, out_trade_no, total_amount, subject) -> PrecreateSuccess:
        self.calls.append({"out_trade_no": out_trade_no, "total_amount": total_amount, "subject": subject})
        if self.error is not None:
            raise self.error
        return PrecreateSuccess(
            code="10000",
            msg="Success",
            out_trade_no=out_trade_no,
            qr_code=f"https://qr.alipay.com/{out_trade_no}",
        )

    def parse_notification(self, body: bytes):
        raise NotImplementedError

    async def aclose(self) -> None:
        self.closed = True


class StaticIdentityResolver:
    def __init__(self, user_id: str = "user-1", *, is_superuser: bool = False):
        self.identity = CallerIdentity(user_id=user_id, is_superuser=is_superuser)

    async def resolve(self, token: str) -> CallerIdentity:
        if token != VALID_TOKEN:
            raise UnauthorizedException("Invalid token")
        return self.identity


class RecordingActivator:
    def __init__(self):
        self.calls: list[dict] = []
        self.fail = False

    async def activate(self, *, user_id: str, plan_id: str, order_id: str) -> None:
        if self.fail:
            raise MembershipActivationError("rpc returned error status", order_id=order_id, status_code=500)
        self.calls.append({"user_id": user_id, "plan_id": plan_id, "order_id": order_id})


@pytest.fixture
def stub_gateway_factory():
    created: list[StubGateway] = []

    def _factory(config: PaymentGatewayConfig) -> StubGateway:
        gw = StubGateway(config, error=_factory.error)
        created.append(gw)
        return gw

    _factory.error = None
    _factory.created = created
    return _factory


@pytest.fixture
def identity() -> StaticIdentityResolver:
    return StaticIdentityResolver()


@pytest.fixture
def activator() -> RecordingActivator:
    return RecordingActivator()


@pytest.fixture
def plan_resolver() -> MappingPlanResolver:
    return MappingPlanResolver({"premium_monthly": "plan-premium-monthly"}, passthrough=False)


@pytest.fixture
def valid_token() -> str:
    return VALID_TOKEN


@pytest.fixture
def sign_notification(rsa_keys):
    """Build a form-encoded trade notification signed with the gateway key."""

    def _build(order: Order, *, signing_key: Optional[str] = None, tamper: Optional[dict] = None, **fields) -> bytes:
        params = {
            "notify_time": "2026-10-19 12:00:00",
            "notify_type": "trade_status_sync",
            "notify_id": "ac05099524730693a8b330c5ecf72da9786",
            "app_id": APP_ID,
            "charset": "utf-8",
            "version": "1.0",
            "trade_no": "2026101922001400000000000001",
            "out_trade_no": order.order_number,
            "trade_status": "TRADE_SUCCESS",
            "total_amount": f"{order.amount:.2f}",
            "gmt_payment": "2026-10-19 11:59:58",
        }
        params.update(fields)
        params = {k: v for k, v in params.items() if v is not None}
        params["sign"] = signer.sign_params(params, signing_key or rsa_keys.gateway_private)
        params["sign_type"] = "RSA2"
        if tamper:
            params.update(tamper)
        return urlencode(params).encode()

    return _build
