"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from infrastructure.repositories.payment_config_repository import SQLAlchemyPaymentConfigRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    订单与支付配置仓储共享同一会话

    写模式下显式开启事务，状态条件更新与会员开通在同一事务内提交或回滚；
    只读模式不开启事务，也不提交。
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self.session = self._session_factory()
        self.order_repository = SQLAlchemyOrderRepository(self.session)
        self.payment_config_repository = SQLAlchemyPaymentConfigRepository(self.session)
        if not self._readonly:
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            # close() 会回滚仍未结束的事务并归还连接
            if self.session is not None:
                await self.session.close()
            self.session = None
            self.order_repository = None  # type: ignore[assignment]
            self.payment_config_repository = None  # type: ignore[assignment]

    async def commit(self) -> None:
        if not self._readonly and self.session is not None and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
