"""Tests for the periodic status sweep."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal

import pytest

from crediario import core_logic, data_manager, sweeper
from crediario.constants import PaymentMethod
from crediario.errors import DataIntegrityWarning
from crediario.scheduler import SplitSpec


@pytest.fixture
def purchase(runtime_context, client):
    return core_logic.register_purchase(
        runtime_context,
        client.client_id,
        "Mesa",
        Decimal("90.00"),
        SplitSpec(count=3, interval_days=30, first_due_date=date(2024, 1, 1)),
    )


def _stored_statuses(context):
    return [row.status for row in data_manager.iter_installments(context.workbook)]


def test_sweep_marks_past_due_installments_overdue(runtime_context, purchase):
    report = sweeper.run_status_sweep(runtime_context, date(2024, 2, 5))

    assert report == sweeper.SweepReport(updated=2, skipped=0)
    assert _stored_statuses(runtime_context) == ["overdue", "overdue", "pending"]


def test_sweep_is_idempotent(runtime_context, purchase):
    sweeper.run_status_sweep(runtime_context, date(2024, 2, 5))
    second = sweeper.run_status_sweep(runtime_context, date(2024, 2, 5))

    assert second.updated == 0
    assert _stored_statuses(runtime_context) == ["overdue", "overdue", "pending"]


def test_sweep_never_touches_paid_installments(runtime_context, client, purchase):
    first = purchase.installments[0]
    core_logic.pay_installment(
        runtime_context, client.client_id, purchase.purchase.purchase_id, first.installment_id, PaymentMethod.PIX
    )

    sweeper.run_status_sweep(runtime_context, date(2030, 1, 1))

    assert _stored_statuses(runtime_context) == ["paid", "overdue", "overdue"]


def test_sweep_skips_unreadable_due_dates(runtime_context, purchase):
    broken = purchase.installments[2]
    data_manager.update_row(
        runtime_context.workbook,
        data_manager.INSTALLMENTS_SHEET,
        "InstallmentID",
        broken.installment_id,
        field_values={"DueDate": "??"},
    )

    with pytest.warns(DataIntegrityWarning):
        report = sweeper.run_status_sweep(runtime_context, date(2030, 1, 1))

    assert report.skipped == 1
    assert report.updated == 2
    assert _stored_statuses(runtime_context) == ["overdue", "overdue", "pending"]


def test_sweep_skips_tick_while_workbook_is_busy(runtime_context, purchase):
    acquired = threading.Event()
    release = threading.Event()

    def hold_commit_lock():
        with runtime_context._commit_lock:
            acquired.set()
            release.wait(5)

    holder = threading.Thread(target=hold_commit_lock)
    holder.start()
    try:
        assert acquired.wait(5)
        report = sweeper.run_status_sweep(runtime_context, date(2030, 1, 1))
    finally:
        release.set()
        holder.join(5)

    assert report.busy
    assert _stored_statuses(runtime_context) == ["pending", "pending", "pending"]


def test_status_sweeper_runs_in_background(runtime_context, purchase):
    background = sweeper.StatusSweeper(runtime_context, interval_seconds=0.01, clock=lambda: date(2030, 1, 1))

    background.start()
    try:
        for _ in range(200):
            if background.last_report is not None:
                break
            threading.Event().wait(0.01)
    finally:
        background.stop(timeout=1)

    assert not background.running
    assert background.last_report is not None
    assert _stored_statuses(runtime_context) == ["overdue", "overdue", "overdue"]


def test_status_sweeper_defaults_to_configured_interval(runtime_context):
    background = sweeper.StatusSweeper(runtime_context)
    assert background.interval_seconds == runtime_context.settings.sweep_interval_seconds


def test_sweep_refreshes_ledger_cache(runtime_context, client, purchase):
    core_logic.list_clients(runtime_context, now=date(2024, 1, 1))
    sweeper.run_status_sweep(runtime_context, date(2024, 2, 5))

    # stored labels are visible to readers that bypass status derivation
    record = core_logic._ensure_ledger_cache(runtime_context)["by_id"][client.client_id]
    assert [row.status for row in record.purchases[0].installments] == ["overdue", "overdue", "pending"]
