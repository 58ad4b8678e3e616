"""Order status state machine.

    PENDING -> CONFIRMED -> SHIPPED -> DELIVERED
        \\          \\           \\
         +----------+-----------+--> CANCELLED

DELIVERED and CANCELLED are terminal. Stock is debited when the order is
created and credited back only on cancellation; forward steps never touch
stock.
"""
import enum
from typing import Optional

from ..common.result import ErrorKind, Failure
from ..users.model import Role


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, value) -> Optional["OrderStatus"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


STATUS_SEQUENCE = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


def _bad_request(message: str) -> Failure:
    return Failure(ErrorKind.BAD_REQUEST, message)


def next_status(current: OrderStatus) -> Optional[OrderStatus]:
    if current not in STATUS_SEQUENCE:
        return None
    idx = STATUS_SEQUENCE.index(current)
    if idx + 1 >= len(STATUS_SEQUENCE):
        return None
    return STATUS_SEQUENCE[idx + 1]


def can_modify(caller_id: str, caller_role: str, owner_id: str) -> bool:
    return caller_id == owner_id or caller_role == Role.ADMIN.value


def check_transition(current: OrderStatus, target: OrderStatus) -> Optional[Failure]:
    """Return why ``current -> target`` is illegal, or None if it is allowed."""
    if target is OrderStatus.CANCELLED:
        if current is OrderStatus.CANCELLED:
            return _bad_request("Pedido já está cancelado")
        if current is OrderStatus.DELIVERED:
            return _bad_request("Pedido entregue não pode ser cancelado")
        return None

    if target not in STATUS_SEQUENCE:
        return _bad_request(
            f"Status '{target.value}' inválido. Status permitidos: "
            f"{' → '.join(s.value for s in STATUS_SEQUENCE)} ou CANCELLED"
        )
    if current not in STATUS_SEQUENCE:
        return _bad_request(
            f"Pedido com status '{current.value}' não pode ser modificado. Apenas pedidos "
            "PENDING, CONFIRMED, SHIPPED ou DELIVERED podem ser atualizados."
        )

    current_idx = STATUS_SEQUENCE.index(current)
    target_idx = STATUS_SEQUENCE.index(target)
    if target_idx < current_idx:
        return _bad_request(
            f"Transição inválida: não é possível voltar de '{current.value}' para '{target.value}'. "
            "O pedido só pode avançar na sequência de status."
        )
    if target_idx == current_idx:
        return _bad_request(f"Transição inválida: pedido já está com status '{current.value}'.")
    if target_idx - current_idx > 1:
        expected = next_status(current)
        return _bad_request(
            f"Transição inválida: não é permitido pular de '{current.value}' para '{target.value}'. "
            f"O próximo status deve ser '{expected.value}'."
        )
    return None


def restores_stock(target: OrderStatus) -> bool:
    return target is OrderStatus.CANCELLED
