import asyncio
import logging
from typing import Optional

import sqlalchemy as sa

from .common.config import settings
from .common.database import Database, init_db
from .inventory.model import Product
from .users.model import Role, User

_logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {"name": "Notebook", "description": "Notebook de alta performance", "category": "Eletrônicos", "stock": 20, "price": 3000.00},
    {"name": "Mouse sem fio", "description": "Mouse óptico sem fio", "category": "Periféricos", "stock": 150, "price": 89.90},
    {"name": "Teclado mecânico", "description": "Teclado mecânico ABNT2", "category": "Periféricos", "stock": 80, "price": 500.00},
    {"name": "Hub USB-C", "description": "Hub USB-C 7 em 1", "category": "Acessórios", "stock": 120, "price": 199.90},
    {"name": "Fone com cancelamento de ruído", "description": "Fone bluetooth over-ear", "category": "Áudio", "stock": 35, "price": 1299.00},
    {"name": "Monitor 27\" 4K", "description": "Monitor IPS 27 polegadas", "category": "Eletrônicos", "stock": 25, "price": 2399.00},
    {"name": "SSD portátil 1TB", "description": "SSD externo USB 3.2", "category": "Armazenamento", "stock": 60, "price": 649.90},
    {"name": "Webcam 1080p", "description": "Webcam Full HD com microfone", "category": "Periféricos", "stock": 75, "price": 279.90},
]


async def seed_admin(database: Database) -> Optional[User]:
    async with database.session_factory() as session:
        res = await session.execute(sa.select(User).where(User.role == Role.ADMIN.value))
        existing = res.scalars().first()
        if existing:
            _logger.info("Admin already exists | email=%s", existing.email)
            return existing
        admin = User(email=settings.ADMIN_EMAIL, name=settings.ADMIN_NAME, role=Role.ADMIN.value)
        session.add(admin)
        await session.commit()
        _logger.info("Admin created | email=%s id=%s", admin.email, admin.id)
        return admin


async def seed_products(database: Database) -> int:
    async with database.session_factory() as session:
        added = 0
        for p in SAMPLE_PRODUCTS:
            # avoid duplicates by name
            res = await session.execute(sa.select(Product.id).where(Product.name == p["name"]))
            if res.first():
                continue
            session.add(Product(**p))
            added += 1
        if added:
            await session.commit()
    _logger.info("Seed complete. Added %s products.", added)
    return added


async def amain():
    logging.basicConfig(level=settings.LOG_LEVEL)
    database = await init_db()
    try:
        await seed_admin(database)
        await seed_products(database)
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(amain())
