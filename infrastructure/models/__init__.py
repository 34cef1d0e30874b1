"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel, PaymentConfigModel

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "PaymentConfigModel",
]
