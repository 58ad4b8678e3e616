"""Shared fixtures: a fresh SQLite database per test plus factories for users and products.

Redis and Kafka are switched off through ``settings`` so tests never need a broker.
"""
import uuid

import pytest
import pytest_asyncio
import sqlalchemy as sa

from backend.auth.identity import CallerIdentity
from backend.common.config import settings
from backend.common.database import Database
from backend.inventory.model import Product
from backend.orders.service import OrderService
from backend.users.model import Role, User


@pytest.fixture(autouse=True)
def _no_brokers(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_ENABLED", False)
    monkeypatch.setattr(settings, "KAFKA_ENABLED", False)


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await db.init()
    yield db
    await db.dispose()


@pytest.fixture
def service(database):
    return OrderService(database)


@pytest.fixture
def create_user(database):
    async def _create(role: str = Role.CLIENT.value, name: str = "Cliente Teste") -> CallerIdentity:
        async with database.session_factory() as session:
            user = User(email=f"{uuid.uuid4().hex[:12]}@email.com", name=name, role=role)
            session.add(user)
            await session.commit()
            return CallerIdentity(user_id=user.id, role=user.role)

    return _create


@pytest.fixture
def create_product(database):
    async def _create(name: str = "Notebook", stock: int = 5, price: float = 3000.0) -> str:
        async with database.session_factory() as session:
            product = Product(
                name=name,
                description=f"{name} de teste",
                price=price,
                stock=stock,
                category="Eletrônicos",
            )
            session.add(product)
            await session.commit()
            return product.id

    return _create


@pytest.fixture
def product_stock(database):
    async def _stock(product_id: str) -> int:
        async with database.session_factory() as session:
            res = await session.execute(sa.select(Product.stock).where(Product.id == product_id))
            return res.scalar_one()

    return _stock


@pytest.fixture
def set_price(database):
    async def _set(product_id: str, price: float) -> None:
        async with database.session_factory() as session:
            await session.execute(sa.update(Product).where(Product.id == product_id).values(price=price))
            await session.commit()

    return _set


@pytest.fixture
def place_order(service):
    async def _place(caller: CallerIdentity, product_id: str, quantity: int = 1, address: str = "Rua Exemplo, 123"):
        result = await service.create_order(caller, address, [{"product_id": product_id, "quantity": quantity}])
        assert result.ok, result.error
        return result.value

    return _place
