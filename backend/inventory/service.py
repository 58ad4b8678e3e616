from typing import Dict, List, Optional
import json
import logging

import sqlalchemy as sa

from ..common.config import settings
from ..common.database import Database
from ..common.redis_client import get_redis
from .model import Product


_logger = logging.getLogger(__name__)


def redis_stock_key(product_id: str) -> str:
    return f"product:{product_id}:stock"


def redis_product_key(product_id: str) -> str:
    return f"product:{product_id}:data"


async def fetch_products(database: Database) -> List[dict]:
    async with database.session_factory() as session:
        res = await session.execute(sa.select(Product).order_by(Product.name))
        return [prod.to_dict() for prod in res.scalars().all()]


async def fetch_product(database: Database, product_id: str) -> Optional[dict]:
    async with database.session_factory() as session:
        prod = await session.get(Product, product_id)
        return prod.to_dict() if prod else None


async def get_product(database: Database, product_id: str) -> Optional[dict]:
    """Read-through product lookup; the cache is skipped when Redis is disabled."""
    if not settings.REDIS_ENABLED:
        return await fetch_product(database, product_id)
    r = await get_redis()
    raw = await r.get(redis_product_key(product_id))
    if raw:
        try:
            obj = json.loads(raw)
            stock = await r.get(redis_stock_key(product_id))
            if stock is not None:
                obj["stock"] = int(stock)
            _logger.debug("Cache hit: product | product_id=%s", product_id)
            return obj
        except ValueError:
            _logger.warning("Discarding unreadable product cache entry | product_id=%s", product_id)
    prod = await fetch_product(database, product_id)
    _logger.info("DB get product | product_id=%s", product_id)
    if prod is not None:
        await r.set(redis_product_key(product_id), json.dumps(prod))
        await r.set(redis_stock_key(product_id), int(prod["stock"]))
    return prod


async def publish_stock_levels(levels: Dict[str, int]) -> None:
    """Refresh cached stock and announce committed stock changes.

    Runs after the database transaction has committed, so a Redis outage only
    leaves the cache stale; it never undoes or fails the order operation.
    """
    if not settings.REDIS_ENABLED or not levels:
        return
    try:
        r = await get_redis()
        for product_id, stock in levels.items():
            await r.set(redis_stock_key(product_id), stock)
            await r.publish(settings.REDIS_STOCK_CHANNEL, json.dumps({"product_id": product_id, "stock": stock}))
            _logger.info("Published stock update via Redis | product_id=%s stock=%s", product_id, stock)
    except Exception as e:
        _logger.warning("Stock cache refresh failed | products=%s err=%s", list(levels), e)
