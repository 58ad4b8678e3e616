from typing import Dict, Iterable, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from .model import Product


class ProductStore:
    """Product reads and atomic stock adjustments bound to one session.

    Stock is never written directly: debits are conditional on availability
    and credits are relative increments, both applied as single statements.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, product_id: str) -> Optional[Product]:
        return await self.session.get(Product, product_id, populate_existing=True)

    async def get_stock(self, product_id: str) -> Optional[int]:
        res = await self.session.execute(sa.select(Product.stock).where(Product.id == product_id))
        row = res.first()
        return int(row[0]) if row else None

    async def try_debit(self, product_id: str, quantity: int) -> bool:
        """Atomically decrement stock if available. Returns True on success."""
        stmt = (
            sa.update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        return (res.rowcount or 0) > 0

    async def credit(self, product_id: str, quantity: int) -> bool:
        stmt = (
            sa.update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        return (res.rowcount or 0) > 0

    async def summaries(self, product_ids: Iterable[str]) -> Dict[str, dict]:
        ids = set(product_ids)
        if not ids:
            return {}
        res = await self.session.execute(sa.select(Product).where(Product.id.in_(ids)))
        return {prod.id: prod.summary() for prod in res.scalars().all()}

    async def stock_levels(self, product_ids: Iterable[str]) -> Dict[str, int]:
        ids = set(product_ids)
        if not ids:
            return {}
        res = await self.session.execute(sa.select(Product.id, Product.stock).where(Product.id.in_(ids)))
        return {row[0]: int(row[1]) for row in res.all()}
