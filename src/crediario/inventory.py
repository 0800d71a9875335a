"""Inventory coupling gateway.

All stock quantity changes, whether triggered by a client purchase, a manual
stock movement or a reversal, go through :class:`WorkbookInventoryGateway`.
Each product has its own lock so check-then-decrement is atomic, and every
lock wait is bounded by the configured timeout.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC, datetime
from typing import Iterator, Optional
import uuid

from openpyxl.workbook import Workbook

from . import data_manager, log
from .errors import GatewayTimeoutError, InsufficientStockError, NotFoundError, ValidationError
from .locks import LockRegistry


def normalize_product_name(name: str) -> str:
    """Return the case-insensitive lookup key for a product name."""
    return " ".join(name.split()).casefold()


class WorkbookInventoryGateway:
    """Stock gateway backed by the ``Products`` sheet of the master workbook.

    Ledger operations call the gateway from inside ``atomic``, so within one
    runtime context the commit lock already serializes them and a product lock
    is never contended there. The product locks matter when ``locks`` is a
    registry shared with another gateway or held by an outside caller; the
    timeout bounds that wait only, not the wait for the commit lock.

    Args:
        workbook (Workbook): Live workbook shared with the ledger.
        timeout_seconds (float): Longest time any call waits for a product
            lock before failing with :class:`GatewayTimeoutError`.
        locks (LockRegistry | None): Registry of per-product locks. A private
            registry is created when omitted.
    """

    def __init__(self, workbook: Workbook, *, timeout_seconds: float, locks: Optional[LockRegistry] = None) -> None:
        self.workbook = workbook
        self.timeout_seconds = timeout_seconds
        self.locks = locks if locks is not None else LockRegistry()

    def find_product(self, product_name: str) -> Optional[data_manager.ProductRow]:
        key = normalize_product_name(product_name)
        for product in data_manager.iter_products(self.workbook):
            if normalize_product_name(product.product_name) == key:
                return product
        return None

    def available_stock(self, product_name: str) -> int:
        """Return the quantity on hand for ``product_name``.

        Raises:
            NotFoundError: If no product carries that name.
        """
        return self._require_product(product_name).quantity

    def ensure_product(self, product_name: str) -> data_manager.ProductRow:
        """Return the product called ``product_name``, creating it with zero stock if needed."""
        existing = self.find_product(product_name)
        if existing is not None:
            return existing
        cleaned = " ".join(product_name.split())
        if not cleaned:
            raise ValidationError("Product name must not be blank")
        product = data_manager.ProductRow(
            product_id=f"PR-{uuid.uuid4().hex[:12]}",
            product_name=cleaned,
            quantity=0,
            created_at=datetime.now(UTC).isoformat(),
        )
        data_manager.append_product(self.workbook, product)
        log.info("Created product '%s' (%s)", product.product_name, product.product_id)
        return product

    def decrement_stock(self, product_name: str, quantity: int, *, allow_negative: bool = False) -> data_manager.ProductRow:
        """Remove ``quantity`` units from stock.

        Unless ``allow_negative`` is set, the call fails when fewer than
        ``quantity`` units are available and leaves the stock untouched.

        Raises:
            NotFoundError: If the product is unknown.
            InsufficientStockError: If stock would drop below zero.
            GatewayTimeoutError: If the product lock could not be acquired.
        """
        _require_positive(quantity)
        with self._hold(product_name):
            product = self._require_product(product_name)
            if not allow_negative and quantity > product.quantity:
                log.warning(
                    "Rejected stock decrement of %d for '%s' (available %d)",
                    quantity,
                    product.product_name,
                    product.quantity,
                )
                raise InsufficientStockError(product.product_name, quantity, product.quantity)
            return self._write_quantity(product, product.quantity - quantity)

    def increment_stock(self, product_name: str, quantity: int) -> data_manager.ProductRow:
        """Add ``quantity`` units to stock.

        Raises:
            NotFoundError: If the product is unknown.
            GatewayTimeoutError: If the product lock could not be acquired.
        """
        _require_positive(quantity)
        with self._hold(product_name):
            product = self._require_product(product_name)
            return self._write_quantity(product, product.quantity + quantity)

    @contextmanager
    def _hold(self, product_name: str) -> Iterator[None]:
        key = normalize_product_name(product_name)
        lock = self.locks.get(key)
        if not lock.acquire(timeout=self.timeout_seconds):
            log.error("Inventory gateway timed out waiting for '%s'", key)
            raise GatewayTimeoutError(f"Inventory gateway timed out for '{product_name}'")
        try:
            yield
        finally:
            lock.release()

    def _require_product(self, product_name: str) -> data_manager.ProductRow:
        product = self.find_product(product_name)
        if product is None:
            log.warning("Product lookup failed for name '%s'", product_name)
            raise NotFoundError(f"Unknown product: {product_name}")
        return product

    def _write_quantity(self, product: data_manager.ProductRow, new_quantity: int) -> data_manager.ProductRow:
        data_manager.update_row(
            self.workbook,
            data_manager.PRODUCTS_SHEET,
            "ProductID",
            product.product_id,
            field_values={"Quantity": new_quantity},
        )
        if new_quantity < 0:
            log.warning(
                "Stock anomaly: '%s' quantity is now %d",
                product.product_name,
                new_quantity,
            )
        log.info(
            "Stock for '%s' changed from %d to %d",
            product.product_name,
            product.quantity,
            new_quantity,
        )
        return replace(product, quantity=new_quantity)


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        log.error("Stock quantity validation failed: %s", quantity)
        raise ValidationError("Quantity must be a positive whole number")
