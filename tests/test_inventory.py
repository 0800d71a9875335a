"""Tests for the workbook-backed inventory gateway."""

from __future__ import annotations

import pytest

from crediario import data_manager
from crediario.errors import GatewayTimeoutError, InsufficientStockError, NotFoundError, ValidationError
from crediario.inventory import WorkbookInventoryGateway, normalize_product_name


@pytest.fixture
def workbook(master_workbook_path):
    return data_manager.open_workbook(master_workbook_path)


@pytest.fixture
def gateway(workbook):
    gateway = WorkbookInventoryGateway(workbook, timeout_seconds=0.05)
    gateway.ensure_product("Blusa Azul")
    gateway.increment_stock("Blusa Azul", 5)
    return gateway


def test_normalize_product_name_ignores_case_and_spacing():
    assert normalize_product_name("  Blusa   AZUL ") == normalize_product_name("blusa azul")


def test_ensure_product_creates_once(workbook):
    gateway = WorkbookInventoryGateway(workbook, timeout_seconds=1)

    first = gateway.ensure_product("Saia")
    second = gateway.ensure_product("saia")

    assert first.product_id == second.product_id
    assert first.quantity == 0
    assert len(list(data_manager.iter_products(workbook))) == 1


def test_ensure_product_rejects_blank_names(workbook):
    gateway = WorkbookInventoryGateway(workbook, timeout_seconds=1)
    with pytest.raises(ValidationError):
        gateway.ensure_product("   ")


def test_decrement_stock_updates_sheet(gateway):
    product = gateway.decrement_stock("blusa azul", 2)

    assert product.quantity == 3
    assert gateway.available_stock("Blusa Azul") == 3


def test_decrement_stock_rejects_oversell_without_change(gateway):
    with pytest.raises(InsufficientStockError) as excinfo:
        gateway.decrement_stock("Blusa Azul", 6)

    assert excinfo.value.requested == 6
    assert excinfo.value.available == 5
    assert gateway.available_stock("Blusa Azul") == 5


def test_decrement_stock_may_go_negative_when_allowed(gateway, caplog):
    with caplog.at_level("WARNING", logger="crediario"):
        product = gateway.decrement_stock("Blusa Azul", 7, allow_negative=True)

    assert product.quantity == -2
    assert "anomaly" in caplog.text


def test_unknown_product_raises_not_found(gateway):
    with pytest.raises(NotFoundError):
        gateway.decrement_stock("Calça", 1)
    with pytest.raises(NotFoundError):
        gateway.available_stock("Calça")


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
def test_quantities_must_be_positive_integers(gateway, quantity):
    with pytest.raises(ValidationError):
        gateway.increment_stock("Blusa Azul", quantity)


def test_lock_wait_is_bounded_by_timeout(gateway):
    lock = gateway.locks.get(normalize_product_name("Blusa Azul"))
    lock.acquire()
    try:
        with pytest.raises(GatewayTimeoutError):
            gateway.decrement_stock("Blusa Azul", 1)
    finally:
        lock.release()

    assert gateway.available_stock("Blusa Azul") == 5


def test_gateways_sharing_a_lock_registry_contend_per_product(workbook, gateway):
    other = WorkbookInventoryGateway(workbook, timeout_seconds=0.05, locks=gateway.locks)
    other.ensure_product("Saia")
    other.increment_stock("Saia", 2)

    with gateway.locks.hold(normalize_product_name("Blusa Azul")):
        with pytest.raises(GatewayTimeoutError):
            other.decrement_stock("Blusa Azul", 1)
        other.decrement_stock("Saia", 1)

    assert gateway.available_stock("Blusa Azul") == 5
    assert gateway.available_stock("Saia") == 1
