import logging
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ..auth.identity import CallerIdentity
from ..common.database import Database, UnitOfWork
from ..common.metrics import ORDER_FAILURES, ORDER_TRANSITIONS, ORDERS_CREATED
from ..common.result import INTERNAL_ERROR_MESSAGE, ErrorKind, OrderError, Result
from ..inventory.service import publish_stock_levels
from .events import ORDER_CREATED, ORDER_STATUS_CHANGED, publish_order_event
from .lifecycle import OrderStatus, can_modify, check_transition, restores_stock
from .model import Order, OrderItem, order_to_dict

_logger = logging.getLogger(__name__)

ItemRequest = Tuple[str, int]


def _insufficient_stock(name: str, available: int, requested: int) -> OrderError:
    return OrderError(
        ErrorKind.INSUFFICIENT_STOCK,
        f"Estoque insuficiente para '{name}'. Disponível: {available}, Solicitado: {requested}",
    )


def parse_items(items: Any) -> Result[List[ItemRequest]]:
    """Validate the requested line items, keeping the order they were sent in."""
    if not isinstance(items, (list, tuple)) or not items:
        return Result.fail(ErrorKind.BAD_REQUEST, "address e items são obrigatórios")
    parsed: List[ItemRequest] = []
    for idx, item in enumerate(items):
        if not isinstance(item, Mapping):
            return Result.fail(ErrorKind.BAD_REQUEST, f"Item {idx} inválido")
        product_id = item.get("product_id", item.get("productId"))
        quantity = item.get("quantity")
        if not isinstance(product_id, str) or not product_id.strip():
            return Result.fail(ErrorKind.BAD_REQUEST, f"Item {idx}: product_id é obrigatório")
        # bool is an int subclass; reject it explicitly
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return Result.fail(
                ErrorKind.BAD_REQUEST,
                f"Item {idx}: quantity deve ser um inteiro maior que zero",
            )
        parsed.append((product_id.strip(), quantity))
    return Result.success(parsed)


class OrderService:
    """Order lifecycle engine.

    Every public method returns a ``Result``. Business rule violations are
    raised as ``OrderError`` inside the unit of work so that all stock
    adjustments made so far roll back, then converted at this boundary.
    """

    def __init__(self, database: Database):
        self.database = database

    async def _run(self, operation: str, fn: Callable[[UnitOfWork], Awaitable[Any]]) -> Result:
        try:
            value = await self.database.with_transaction(fn)
        except OrderError as e:
            ORDER_FAILURES.labels(operation=operation, kind=e.failure.kind.value).inc()
            _logger.info("Order %s rejected | kind=%s reason=%s", operation, e.failure.kind.value, e.failure.message)
            return Result.from_failure(e.failure)
        except SQLAlchemyError:
            ORDER_FAILURES.labels(operation=operation, kind=ErrorKind.INTERNAL.value).inc()
            _logger.exception("Order %s failed in storage", operation)
            return Result.fail(ErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGE)
        return Result.success(value)

    async def create_order(self, caller: CallerIdentity, address: Any, items: Any) -> Result[dict]:
        if not isinstance(address, str) or not address.strip() or not items:
            ORDER_FAILURES.labels(operation="create", kind=ErrorKind.BAD_REQUEST.value).inc()
            return Result.fail(ErrorKind.BAD_REQUEST, "address e items são obrigatórios")
        parsed = parse_items(items)
        if not parsed.ok:
            ORDER_FAILURES.labels(operation="create", kind=ErrorKind.BAD_REQUEST.value).inc()
            return parsed
        requested = parsed.value
        address = address.strip()

        async def _create(uow: UnitOfWork):
            user = await uow.users.get(caller.user_id)
            if user is None:
                raise OrderError(ErrorKind.NOT_FOUND, f"Usuário com ID '{caller.user_id}' não encontrado")

            total = 0.0
            lines: List[OrderItem] = []
            for position, (product_id, quantity) in enumerate(requested):
                product = await uow.products.get(product_id)
                if product is None:
                    raise OrderError(ErrorKind.NOT_FOUND, f"Produto com ID '{product_id}' não encontrado")
                if product.stock < quantity:
                    raise _insufficient_stock(product.name, product.stock, quantity)
                price = product.price
                if not await uow.products.try_debit(product_id, quantity):
                    # a concurrent order took the stock between the read and the debit
                    available = await uow.products.get_stock(product_id)
                    raise _insufficient_stock(product.name, available or 0, quantity)
                total += price * quantity
                lines.append(OrderItem(product_id=product_id, position=position, quantity=quantity, price=price))

            order = await uow.orders.add(user.id, address, round(total, 2), lines)
            levels = await uow.products.stock_levels(pid for pid, _ in requested)
            return order_to_dict(order), levels

        result = await self._run("create", _create)
        if not result.ok:
            return result
        order, levels = result.value
        ORDERS_CREATED.inc()
        _logger.info(
            "Order created | order_id=%s user_id=%s items=%s total=%s",
            order["id"], order["user_id"], len(order["items"]), order["total"],
        )
        await publish_stock_levels(levels)
        await publish_order_event(ORDER_CREATED, order)
        return Result.success(order)

    async def update_status(self, caller: CallerIdentity, order_id: str, status: Any) -> Result[dict]:
        async def _transition(uow: UnitOfWork):
            order = await uow.orders.get(order_id)
            if order is None:
                raise OrderError(ErrorKind.NOT_FOUND, "Pedido não encontrado")
            if not can_modify(caller.user_id, caller.role, order.user_id):
                raise OrderError(ErrorKind.FORBIDDEN, "Você não tem permissão para atualizar este pedido")
            if status is None or status == "":
                raise OrderError(ErrorKind.BAD_REQUEST, "Status é obrigatório")
            target = OrderStatus.parse(status)
            if target is None:
                raise OrderError(ErrorKind.BAD_REQUEST, "Status inválido")

            previous = order.status
            failure = check_transition(OrderStatus(previous), target)
            if failure is not None:
                raise OrderError(failure.kind, failure.message)

            # the status write is conditioned on the status read above, so only
            # one concurrent request per order gets past this point
            if not await uow.orders.update_status(order.id, previous, target.value):
                raise OrderError(
                    ErrorKind.BAD_REQUEST,
                    "O pedido foi alterado por outra requisição. Tente novamente.",
                )
            levels = {}
            if restores_stock(target):
                for item in order.items:
                    if not await uow.products.credit(item.product_id, item.quantity):
                        raise OrderError(ErrorKind.NOT_FOUND, f"Produto com ID '{item.product_id}' não encontrado")
                levels = await uow.products.stock_levels(item.product_id for item in order.items)
            await uow.session.refresh(order)
            return order_to_dict(order), previous, levels

        result = await self._run("update_status", _transition)
        if not result.ok:
            return result
        order, previous, levels = result.value
        ORDER_TRANSITIONS.labels(status=order["status"]).inc()
        _logger.info(
            "Order status updated | order_id=%s from=%s to=%s by=%s",
            order["id"], previous, order["status"], caller.user_id,
        )
        await publish_stock_levels(levels)
        await publish_order_event(ORDER_STATUS_CHANGED, order, previous_status=previous)
        return Result.success(order)

    async def get_order(self, order_id: str, caller: Optional[CallerIdentity] = None) -> Result[dict]:
        async def _get(uow: UnitOfWork):
            order = await uow.orders.get(order_id)
            if order is None:
                raise OrderError(ErrorKind.NOT_FOUND, "Pedido não encontrado")
            if caller is not None and not can_modify(caller.user_id, caller.role, order.user_id):
                raise OrderError(ErrorKind.FORBIDDEN, "Você não tem permissão para visualizar este pedido")
            return await _with_products(uow, [order])

        result = await self._run("get", _get)
        if not result.ok:
            return result
        return Result.success(result.value[0])

    async def list_orders(self, caller: CallerIdentity) -> Result[List[dict]]:
        async def _list(uow: UnitOfWork):
            orders = await uow.orders.list_for_user(caller.user_id)
            return await _with_products(uow, orders)

        return await self._run("list", _list)

    async def list_all_orders(self, caller: CallerIdentity, status: Optional[str] = None) -> Result[List[dict]]:
        if not caller.is_admin:
            return Result.fail(ErrorKind.FORBIDDEN, "Acesso negado. Apenas administradores podem realizar esta ação.")
        wanted = None
        if status:
            wanted = OrderStatus.parse(status)
            if wanted is None:
                return Result.fail(ErrorKind.BAD_REQUEST, "Status inválido")

        async def _list_all(uow: UnitOfWork):
            orders = await uow.orders.list_all(wanted.value if wanted else None)
            return await _with_products(uow, orders)

        return await self._run("list_all", _list_all)


async def _with_products(uow: UnitOfWork, orders: Sequence[Order]) -> List[dict]:
    product_ids: Iterable[str] = {item.product_id for order in orders for item in order.items}
    summaries = await uow.products.summaries(product_ids)
    return [order_to_dict(order, summaries) for order in orders]
