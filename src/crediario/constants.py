"""Enumerations and fixed values shared across the Crediário modules.

Keeps the identifiers used by the data access layer (DAL), the ledger rules,
and the CLI in one place so that sheet names, status labels, and payment
methods never drift between layers.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

MIN_INSTALLMENTS = 1
MAX_INSTALLMENTS = 6
CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class PaymentMethod(str, Enum):
    """Enumerate the payment methods accepted by the ledger."""

    PIX = "Pix"
    CASH = "Cash"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    # Placeholder for input that has not been submitted yet; never persisted.
    NOT_SELECTED = "none"


class InstallmentStatus(str, Enum):
    """Enumerate the point-in-time states of an installment."""

    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"


class MovementType(str, Enum):
    """Enumerate the stock movements recorded against a product."""

    PURCHASE = "purchase"
    SALE = "sale"


class OrderStatus(str, Enum):
    """Enumerate the states of a customer order waiting to be fulfilled."""

    PENDING = "pending"
    COMPLETED = "completed"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    CLIENTS = "Clients"
    PURCHASES = "Purchases"
    INSTALLMENTS = "Installments"
    PAYMENTS = "Payments"
    RELATIVES = "Relatives"
    PRODUCTS = "Products"
    MOVEMENTS = "Movements"
    ORDERS = "Orders"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "MIN_INSTALLMENTS",
    "MAX_INSTALLMENTS",
    "CENT",
    "ZERO",
    "PaymentMethod",
    "InstallmentStatus",
    "MovementType",
    "OrderStatus",
    "SheetName",
]
