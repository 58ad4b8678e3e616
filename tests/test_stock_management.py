import asyncio

from sqlalchemy.exc import OperationalError

from backend.common.result import INTERNAL_ERROR_MESSAGE, ErrorKind
from backend.inventory.store import ProductStore
from backend.orders.repository import OrderRepository


async def test_create_then_cancel_conserves_stock(service, create_user, create_product, product_stock, place_order):
    user = await create_user()
    product_id = await create_product(stock=10)

    for path in ([], ["CONFIRMED"], ["CONFIRMED", "SHIPPED"]):
        order = await place_order(user, product_id, quantity=3)
        for status in path + ["CANCELLED"]:
            result = await service.update_status(user, order["id"], status)
            assert result.ok, result.error
        assert await product_stock(product_id) == 10


async def test_debit_happens_at_creation_not_confirmation(service, create_user, create_product, product_stock, place_order):
    user = await create_user()
    product_id = await create_product(stock=5)

    order = await place_order(user, product_id, quantity=2)
    assert await product_stock(product_id) == 3

    await service.update_status(user, order["id"], "CONFIRMED")
    assert await product_stock(product_id) == 3


async def test_stock_is_never_oversold_under_concurrency(service, create_user, create_product, product_stock):
    user = await create_user()
    product_id = await create_product(stock=10)

    results = await asyncio.gather(
        *(service.create_order(user, "Rua A, 1", [{"product_id": product_id, "quantity": 3}]) for _ in range(8))
    )

    created = [r for r in results if r.ok]
    rejected = [r for r in results if not r.ok]
    debited = 3 * len(created)
    assert debited <= 10
    assert await product_stock(product_id) == 10 - debited
    assert all(r.kind in (ErrorKind.INSUFFICIENT_STOCK, ErrorKind.INTERNAL) for r in rejected)


async def test_concurrent_cancellations_credit_once(service, create_user, create_product, product_stock, place_order):
    user = await create_user()
    product_id = await create_product(stock=5)
    order = await place_order(user, product_id, quantity=2)

    results = await asyncio.gather(*(service.update_status(user, order["id"], "CANCELLED") for _ in range(4)))

    assert sum(1 for r in results if r.ok) == 1
    assert await product_stock(product_id) == 5


async def test_concurrent_forward_steps_apply_once(service, create_user, create_product, place_order):
    user = await create_user()
    order = await place_order(user, await create_product(stock=5))

    results = await asyncio.gather(*(service.update_status(user, order["id"], "CONFIRMED") for _ in range(4)))

    assert sum(1 for r in results if r.ok) == 1
    fetched = await service.get_order(order["id"])
    assert fetched.value["status"] == "CONFIRMED"


async def test_storage_failure_mid_cancel_rolls_back_every_credit(
    monkeypatch, service, create_user, create_product, product_stock
):
    user = await create_user()
    notebook = await create_product(name="Notebook", stock=5)
    mouse = await create_product(name="Mouse", stock=4)
    created = await service.create_order(
        user, "Rua A, 1",
        [{"product_id": notebook, "quantity": 2}, {"product_id": mouse, "quantity": 2}],
    )
    assert created.ok, created.error

    real_credit = ProductStore.credit
    calls = []

    async def flaky_credit(self, product_id, quantity):
        calls.append(product_id)
        if len(calls) == 2:
            raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))
        return await real_credit(self, product_id, quantity)

    monkeypatch.setattr(ProductStore, "credit", flaky_credit)

    result = await service.update_status(user, created.value["id"], "CANCELLED")

    assert not result.ok
    assert result.kind is ErrorKind.INTERNAL
    assert result.error.message == INTERNAL_ERROR_MESSAGE
    assert len(calls) == 2
    assert await product_stock(notebook) == 3
    assert await product_stock(mouse) == 2
    fetched = await service.get_order(created.value["id"])
    assert fetched.value["status"] == "PENDING"


async def test_storage_failure_on_insert_rolls_back_debits(
    monkeypatch, service, create_user, create_product, product_stock
):
    user = await create_user()
    notebook = await create_product(name="Notebook", stock=5)
    mouse = await create_product(name="Mouse", stock=4)

    async def failing_add(self, user_id, address, total, items):
        raise OperationalError("INSERT INTO orders", {}, Exception("database is locked"))

    monkeypatch.setattr(OrderRepository, "add", failing_add)

    result = await service.create_order(
        user, "Rua A, 1",
        [{"product_id": notebook, "quantity": 2}, {"product_id": mouse, "quantity": 1}],
    )

    assert result.kind is ErrorKind.INTERNAL
    assert result.error.message == INTERNAL_ERROR_MESSAGE
    assert await product_stock(notebook) == 5
    assert await product_stock(mouse) == 4
    assert (await service.list_orders(user)).value == []
