"""
Result types for order operations.

Expected failures (bad input, unknown order, rejected transition, lost
optimistic-concurrency race) are returned to the caller as an ``OrderResult``
carrying an ``OrderError``. Infrastructure failures (database down,
programming errors) are not modelled here and propagate as exceptions.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    INVALID_ORDER = "INVALID_ORDER"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"


class InvalidOrderError(ValueError):
    """Raised by pure validation helpers; services convert it into an OrderResult."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


@dataclass(frozen=True)
class OrderError:
    kind: ErrorKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.kind.value, **self.details}


@dataclass
class OrderResult:
    order: Any = None
    error: Optional[OrderError] = None
    created: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, order, created: bool = False) -> "OrderResult":
        return cls(order=order, created=created)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, **details) -> "OrderResult":
        return cls(error=OrderError(kind=kind, message=message, details=details))

    @classmethod
    def not_found(cls, order_ref, lookup: str = "order_id") -> "OrderResult":
        return cls.failure(
            ErrorKind.ORDER_NOT_FOUND, f"Order {order_ref} not found.", **{lookup: order_ref}
        )
