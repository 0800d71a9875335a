"""Integration tests describing end-to-end Crediário workflows.

These scenarios document how the data access, ledger and inventory layers
collaborate, including persistence between steps and concurrent writers.
"""

from __future__ import annotations

import threading
import time
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from crediario import balance, core_logic, reversal, sweeper
from crediario.constants import MovementType, PaymentMethod
from crediario.errors import GatewayTimeoutError
from crediario.scheduler import SplitSpec


def test_credit_sale_lifecycle_flow(runtime_context):
    """Stock a product, sell it on installments, collect and report."""

    context = runtime_context
    client = core_logic.register_client(context, "Joana Lima", neighborhood="Vila Nova")
    core_logic.record_stock_movement(context, "Vestido", MovementType.PURCHASE, 5, Decimal("45.00"))

    # Persist and reload so the flow mirrors separate runs of the application.
    core_logic.persist_context(context)
    context = core_logic.refresh_context(context)

    record = core_logic.register_purchase(
        context,
        client.client_id,
        "Vestido",
        Decimal("240.00"),
        SplitSpec(count=4, interval_days=30, first_due_date=date(2024, 1, 10)),
        quantity=2,
    )
    core_logic.persist_context(context)
    context = core_logic.refresh_context(context)

    for installment in record.installments[:2]:
        core_logic.pay_installment(
            context, client.client_id, record.purchase.purchase_id, installment.installment_id, PaymentMethod.PIX
        )

    ledger = core_logic.get_client(context, client.client_id, now=date(2024, 3, 20))
    statuses = [row.status for row in ledger.purchases[0].installments]
    assert statuses == ["paid", "paid", "overdue", "pending"]
    assert balance.aggregate(ledger).balance == Decimal("120.00")
    assert balance.outstanding_by_installment(ledger, date(2024, 3, 20)) == Decimal("120.00")

    (product,) = core_logic.list_products(context)
    assert product.quantity == 3

    months = balance.monthly_revenue([ledger], date(2024, 3, 20))
    paid_total = sum((month.paid for month in months), Decimal("0.00"))
    assert paid_total == Decimal("120.00")


def test_cancel_and_reverse_flow(runtime_context):
    """Cancelling installments and reversing the sale return everything."""

    context = runtime_context
    client = core_logic.register_client(context, "Paula")
    core_logic.record_stock_movement(context, "Bolsa", MovementType.PURCHASE, 3, Decimal("50.00"))
    record = core_logic.register_purchase(
        context, client.client_id, "Bolsa", Decimal("150.00"), SplitSpec(count=3), quantity=1
    )

    reversal.cancel_installment(context, client.client_id, record.purchase.purchase_id, record.installments[2].installment_id)
    ledger = core_logic.get_client(context, client.client_id)
    assert balance.aggregate(ledger).total_purchased == Decimal("100.00")

    sale = next(m for m in core_logic.list_movements(context) if m.movement_type == "sale")
    reversal.reverse_stock_movement(context, sale.product_id, sale.movement_id)

    assert core_logic.get_client(context, client.client_id).purchases == ()
    assert core_logic.list_products(context)[0].quantity == 3
    core_logic.persist_context(context)


def test_sweep_after_reload_flow(runtime_context):
    """Stored labels refreshed by the sweep survive a save and reload."""

    context = runtime_context
    client = core_logic.register_client(context, "Rita")
    core_logic.register_purchase(
        context,
        client.client_id,
        "Tapete",
        Decimal("80.00"),
        SplitSpec(count=2, first_due_date=date(2024, 1, 1)),
    )

    report = sweeper.run_status_sweep(context, datetime(2024, 1, 15, tzinfo=UTC))
    core_logic.persist_context(context)
    context = core_logic.refresh_context(context)

    assert report.updated == 1
    stored = core_logic._ensure_ledger_cache(context)["by_id"][client.client_id]
    assert [row.status for row in stored.purchases[0].installments] == ["overdue", "pending"]


def test_concurrent_debts_never_oversell(runtime_context):
    """Parallel debts against one product sell at most the units in stock."""

    context = runtime_context
    clients = [core_logic.register_client(context, f"Cliente {index}") for index in range(8)]
    core_logic.record_stock_movement(context, "Perfume", MovementType.PURCHASE, 5, Decimal("60.00"))
    outcomes = []
    lock = threading.Lock()

    def buy(client_id):
        try:
            core_logic.register_debt(context, client_id, "Perfume", 1, Decimal("90.00"))
            result = "ok"
        except Exception as exc:  # noqa: BLE001 - recorded for the assertion below
            result = type(exc).__name__
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=buy, args=(client.client_id,)) for client in clients]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert outcomes.count("ok") == 5
    assert outcomes.count("InsufficientStockError") == 3
    assert core_logic.list_products(context)[0].quantity == 0
    purchases = sum(len(record.purchases) for record in core_logic.list_clients(context))
    assert purchases == 5


def test_concurrent_payments_for_one_client_are_all_recorded(runtime_context):
    context = runtime_context
    client = core_logic.register_client(context, "Helena")
    core_logic.register_purchase(context, client.client_id, "Geladeira", Decimal("600.00"))

    threads = [
        threading.Thread(
            target=core_logic.register_payment,
            args=(context, client.client_id, Decimal("50.00"), PaymentMethod.CASH),
        )
        for _ in range(6)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    ledger = core_logic.get_client(context, client.client_id)
    assert len(ledger.payments) == 6
    assert balance.aggregate(ledger).balance == Decimal("300.00")


def _hold_stock_charge(monkeypatch, context):
    """Make the next stock charge wait until the returned ``release`` event is set."""

    entered = threading.Event()
    release = threading.Event()
    charge = context.gateway.decrement_stock

    def slow_decrement(*args, **kwargs):
        entered.set()
        release.wait(5)
        return charge(*args, **kwargs)

    monkeypatch.setattr(context.gateway, "decrement_stock", slow_decrement)
    return entered, release


def test_reads_are_served_while_a_debt_is_being_written(runtime_context, monkeypatch):
    """Listing clients and stock never waits for a write holding the workbook."""

    context = runtime_context
    client = core_logic.register_client(context, "Lucia")
    core_logic.record_stock_movement(context, "Sandalia", MovementType.PURCHASE, 4, Decimal("30.00"))
    core_logic.list_clients(context)
    entered, release = _hold_stock_charge(monkeypatch, context)

    writer = threading.Thread(
        target=core_logic.register_debt,
        args=(context, client.client_id, "Sandalia", 1, Decimal("55.00")),
    )
    writer.start()
    try:
        assert entered.wait(5)
        started = time.monotonic()
        clients = core_logic.list_clients(context)
        products = core_logic.list_products(context)
        elapsed = time.monotonic() - started
    finally:
        release.set()
        writer.join(10)

    assert elapsed < 0.5
    # The debt was half-written when these were read: only committed state shows.
    assert clients[0].purchases == ()
    assert products[0].quantity == 4

    ledger = core_logic.get_client(context, client.client_id)
    assert len(ledger.purchases) == 1
    assert core_logic.list_products(context)[0].quantity == 3


def test_first_read_after_reload_does_not_wait_for_a_write(runtime_context, monkeypatch):
    context = runtime_context
    client = core_logic.register_client(context, "Teresa")
    core_logic.record_stock_movement(context, "Cinto", MovementType.PURCHASE, 2, Decimal("15.00"))
    core_logic.persist_context(context)
    context = core_logic.refresh_context(context)
    entered, release = _hold_stock_charge(monkeypatch, context)

    writer = threading.Thread(
        target=core_logic.register_debt,
        args=(context, client.client_id, "Cinto", 2, Decimal("25.00")),
    )
    writer.start()
    try:
        assert entered.wait(5)
        started = time.monotonic()
        record = core_logic.get_client(context, client.client_id)
        elapsed = time.monotonic() - started
    finally:
        release.set()
        writer.join(10)

    assert elapsed < 0.5
    assert record.purchases == ()
    assert balance.aggregate(core_logic.get_client(context, client.client_id)).balance == Decimal("50.00")


def test_reads_after_a_rolled_back_write_show_the_previous_state(runtime_context, monkeypatch):
    context = runtime_context
    client = core_logic.register_client(context, "Ines")
    core_logic.record_stock_movement(context, "Lenco", MovementType.PURCHASE, 1, Decimal("10.00"))

    def refuse(*args, **kwargs):
        raise GatewayTimeoutError("Timed out waiting for product 'Lenco'")

    monkeypatch.setattr(context.gateway, "decrement_stock", refuse)
    with pytest.raises(GatewayTimeoutError):
        core_logic.register_debt(context, client.client_id, "Lenco", 1, Decimal("20.00"))

    assert core_logic.get_client(context, client.client_id).purchases == ()
    assert core_logic.list_products(context)[0].quantity == 1
