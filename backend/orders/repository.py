from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.db import utcnow
from .model import Order, OrderItem


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, user_id: str, address: str, total: float, items: List[OrderItem]) -> Order:
        order = Order(user_id=user_id, address=address, status="PENDING", total=total, items=items)
        self.session.add(order)
        await self.session.flush()  # assign PKs and timestamps
        return order

    async def get(self, order_id: str) -> Optional[Order]:
        return await self.session.get(Order, order_id, populate_existing=True)

    async def list_for_user(self, user_id: str) -> List[Order]:
        stmt = (
            sa.select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def list_all(self, status: Optional[str] = None) -> List[Order]:
        stmt = sa.select(Order).order_by(Order.created_at.desc(), Order.id)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def update_status(self, order_id: str, expected: str, new_status: str) -> bool:
        """Write ``new_status`` only if the order is still in ``expected``."""
        stmt = (
            sa.update(Order)
            .where(Order.id == order_id, Order.status == expected)
            .values(status=new_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        return (res.rowcount or 0) > 0
