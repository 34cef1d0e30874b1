"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException
from domain.order.entity import Order, OrderStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        return Order(
            id=model.id,
            user_id=model.user_id,
            product_id=model.product_id,
            amount=Decimal(str(model.amount)),
            status=OrderStatus(model.status),
            order_number=model.order_number,
            subject=model.subject or "",
            payment_id=model.payment_id,
            payment_method=model.payment_method,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        return OrderModel(
            id=entity.id,
            user_id=entity.user_id,
            product_id=entity.product_id,
            subject=entity.subject,
            amount=entity.amount,
            status=entity.status.value,
            order_number=entity.order_number,
            payment_id=entity.payment_id,
            payment_method=entity.payment_method,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
        )

    async def create(self, order: Order) -> Order:
        db_order = self._to_model(order)
        self.session.add(db_order)
        try:
            await self.session.flush()
        except IntegrityError:
            logger.warning("order_create_conflict", order_number=order.order_number)
            raise DomainValidationException("订单号冲突", field="order_number")
        await self.session.refresh(db_order)
        logger.info(
            "order_created",
            order_id=db_order.id,
            order_number=db_order.order_number,
            amount=str(db_order.amount),
        )
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self.session.execute(select(OrderModel).where(OrderModel.id == order_id))
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.order_number == order_number)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_by_reference(self, reference: str) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(or_(OrderModel.order_number == reference, OrderModel.payment_id == reference))
            .order_by(OrderModel.created_at.desc())
            .limit(1)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def attach_payment_id(self, order_number: str, payment_id: str) -> bool:
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.order_number == order_number, OrderModel.payment_id.is_(None))
            .values(payment_id=payment_id, updated_at=datetime.now(timezone.utc))
        )
        return result.rowcount == 1

    async def transition_status(
        self,
        order_number: str,
        *,
        from_status: OrderStatus,
        to_status: OrderStatus,
        payment_id: Optional[str] = None,
    ) -> bool:
        if from_status != OrderStatus.PENDING or to_status == OrderStatus.PENDING:
            raise DomainValidationException(
                f"不允许的状态转换: {from_status.value} -> {to_status.value}",
                field="status",
            )
        now = datetime.now(timezone.utc)
        values: dict = {"status": to_status.value, "updated_at": now}
        if to_status == OrderStatus.PAID:
            values["paid_at"] = now
        if payment_id:
            values["payment_id"] = payment_id

        # 条件更新：并发通知中只有一个请求能命中 status = pending
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.order_number == order_number, OrderModel.status == from_status.value)
            .values(**values)
        )
        changed = result.rowcount == 1
        logger.info(
            "order_status_transition",
            order_number=order_number,
            from_status=from_status.value,
            to_status=to_status.value,
            changed=changed,
        )
        return changed
