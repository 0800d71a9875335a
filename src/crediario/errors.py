"""Exception taxonomy raised by the ledger.

Every error carries a short ``category`` so presentation layers can explain a
failure ("already settled", "bad input") without inspecting stack traces.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for failures raised by ledger operations."""

    category = "ledger-error"

    def describe(self) -> str:
        """Return the ``category: message`` form shown to end users."""
        return f"{self.category}: {self}"


class ValidationError(LedgerError, ValueError):
    """Raised when input is malformed; nothing has been mutated."""

    category = "invalid-input"


class NotFoundError(LedgerError, KeyError):
    """Raised when a referenced client, purchase, product, or record is unknown."""

    category = "not-found"

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return str(self.args[0]) if self.args else ""


class InvalidStateError(LedgerError):
    """Raised when a record is in a state that forbids the operation."""

    category = "invalid-state"


class InsufficientStockError(LedgerError):
    """Raised when a sale asks for more units than the product holds."""

    category = "insufficient-stock"

    def __init__(self, product_name: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for '{product_name}': requested {requested}, available {available}"
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available


class GatewayTimeoutError(LedgerError):
    """Raised when the inventory gateway cannot be reached in time."""

    category = "timeout"


class DataIntegrityWarning(UserWarning):
    """Emitted when stored data cannot be interpreted during a read."""


__all__ = [
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "InsufficientStockError",
    "GatewayTimeoutError",
    "DataIntegrityWarning",
]
