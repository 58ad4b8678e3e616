"""Outcome values returned by the order engine.

Business rule violations travel as ``Failure`` values inside a ``Result``
instead of escaping as exceptions. Inside a unit of work the engine raises
``OrderError`` so the transaction rolls back, and converts it back into a
``Result`` at its public boundary.
"""
import enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

INTERNAL_ERROR_MESSAGE = "Erro interno do servidor"


class ErrorKind(str, enum.Enum):
    BAD_REQUEST = "bad_request"
    INSUFFICIENT_STOCK = "insufficient_stock"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.INSUFFICIENT_STOCK: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INTERNAL: 500,
    ErrorKind.UNAVAILABLE: 503,
}


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind.value,
            "status_code": self.kind.http_status,
        }


class OrderError(Exception):
    """Raised inside a transaction to abort it with a business failure."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.failure = Failure(kind, message)


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[Failure] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "Result[Any]":
        return cls(ok=False, error=Failure(kind, message))

    @classmethod
    def from_failure(cls, failure: Failure) -> "Result[Any]":
        return cls(ok=False, error=failure)

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None
