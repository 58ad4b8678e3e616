import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .db import Base
from ..inventory.store import ProductStore
from ..orders.repository import OrderRepository
from ..users.repository import UserRepository

# Imported so every table is registered on Base.metadata
from ..inventory import model as _inventory_model  # noqa: F401
from ..orders import model as _orders_model  # noqa: F401
from ..users import model as _users_model  # noqa: F401

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class UnitOfWork:
    """Stores sharing one session, and therefore one transaction."""

    session: AsyncSession
    products: ProductStore
    orders: OrderRepository
    users: UserRepository


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    def __init__(self, url: str, echo: bool = False):
        self.url = url
        connect_args = {"timeout": 15} if url.startswith("sqlite") else {}
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, connect_args=connect_args)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

    @classmethod
    def from_settings(cls) -> "Database":
        return cls(settings.DB_URL, echo=settings.DB_ECHO)

    async def init(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def with_transaction(self, fn: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        """Run ``fn`` in one all-or-nothing transaction.

        The transaction commits when ``fn`` returns and rolls back if it
        raises; the exception is re-raised to the caller.
        """
        async with self.session_factory() as session:
            async with session.begin():
                uow = UnitOfWork(
                    session=session,
                    products=ProductStore(session),
                    orders=OrderRepository(session),
                    users=UserRepository(session),
                )
                return await fn(uow)


_default: Optional[Database] = None


def get_database() -> Database:
    global _default
    if _default is None:
        _default = Database.from_settings()
        _logger.info("Database engine created | url=%s", _default.engine.url.render_as_string(hide_password=True))
    return _default


async def init_db(database: Optional[Database] = None) -> Database:
    db = database or get_database()
    await db.init()
    return db
