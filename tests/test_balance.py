"""Unit tests for balance aggregation and ledger reports."""

from __future__ import annotations

import warnings
from datetime import date
from decimal import Decimal

from crediario import balance
from crediario.data_manager import (
    ClientRecord,
    ClientRow,
    InstallmentRow,
    PaymentRow,
    PurchaseRecord,
    PurchaseRow,
)


TODAY = date(2024, 2, 15)


def _purchase(purchase_id: str, client_id: str, values, *, paid=(), due_dates=None) -> PurchaseRecord:
    due_dates = due_dates or [f"2024-0{index + 1}-10" for index in range(len(values))]
    installments = tuple(
        InstallmentRow(
            installment_id=f"{purchase_id}-I{index + 1}",
            purchase_id=purchase_id,
            client_id=client_id,
            installment_number=index + 1,
            due_date=due_dates[index],
            value=Decimal(value),
            status="paid" if index in paid else "pending",
            paid_date="2024-01-12T10:00:00+00:00" if index in paid else None,
        )
        for index, value in enumerate(values)
    )
    total = sum((row.value for row in installments), Decimal("0.00"))
    return PurchaseRecord(
        purchase=PurchaseRow(purchase_id, client_id, "Item", 1, total, "2024-01-01"),
        installments=installments,
    )


def _client(client_id: str, name: str, purchases=(), payments=()) -> ClientRecord:
    return ClientRecord(
        client=ClientRow(client_id, name),
        purchases=tuple(purchases),
        payments=tuple(payments),
        relatives=(),
    )


def _payment(client_id: str, amount: str, **extra) -> PaymentRow:
    return PaymentRow(f"Y-{client_id}-{amount}", client_id, Decimal(amount), "2024-01-12", **extra)


def test_aggregate_balance_is_purchased_minus_paid():
    client = _client(
        "C1",
        "Ana",
        purchases=[_purchase("P1", "C1", ["30.00", "30.00"]), _purchase("P2", "C1", ["15.50"])],
        payments=[_payment("C1", "20.00")],
    )

    summary = balance.aggregate(client)

    assert summary.total_purchased == Decimal("75.50")
    assert summary.total_paid == Decimal("20.00")
    assert summary.balance == Decimal("55.50")


def test_overpayment_leaves_negative_balance():
    client = _client("C1", "Ana", purchases=[_purchase("P1", "C1", ["10.00"])], payments=[_payment("C1", "25.00")])
    assert balance.aggregate(client).balance == Decimal("-15.00")


def test_client_without_activity_has_zero_balance():
    summary = balance.aggregate(_client("C1", "Ana"))
    assert summary == balance.BalanceSummary(Decimal("0.00"), Decimal("0.00"), Decimal("0.00"))


def test_outstanding_matches_balance_when_paying_by_installment():
    purchase = _purchase("P1", "C1", ["33.33", "33.33", "33.34"], paid=(0,))
    client = _client(
        "C1",
        "Ana",
        purchases=[purchase],
        payments=[_payment("C1", "33.33", purchase_id="P1", installment_id="P1-I1")],
    )

    assert balance.outstanding_by_installment(client, TODAY) == Decimal("66.67")
    assert balance.outstanding_by_installment(client, TODAY) == balance.aggregate(client).balance


def test_unpaid_installments_carry_derived_status():
    client = _client("C1", "Ana", purchases=[_purchase("P1", "C1", ["10.00", "10.00", "10.00"])])

    statuses = [row.status for row in balance.unpaid_installments(client, TODAY)]

    assert statuses == ["overdue", "overdue", "pending"]


def test_total_outstanding_sums_every_client():
    clients = [
        _client("C1", "Ana", purchases=[_purchase("P1", "C1", ["10.00", "5.00"], paid=(1,))]),
        _client("C2", "Bia", purchases=[_purchase("P2", "C2", ["7.25"])]),
    ]
    assert balance.total_outstanding(clients, TODAY) == Decimal("17.25")


def test_debtors_report_orders_by_balance_then_name():
    clients = [
        _client("C1", "Carla", purchases=[_purchase("P1", "C1", ["10.00"])]),
        _client("C2", "Ana", purchases=[_purchase("P2", "C2", ["50.00"])]),
        _client("C3", "Bia", purchases=[_purchase("P3", "C3", ["10.00"])]),
    ]

    report = balance.debtors_report(clients)

    assert [line.name for line in report] == ["Ana", "Bia", "Carla"]
    assert report[0].summary.balance == Decimal("50.00")


def test_monthly_revenue_buckets_paid_and_open_installments():
    purchase = _purchase("P1", "C1", ["10.00", "20.00", "30.00"], paid=(0,))
    clients = [_client("C1", "Ana", purchases=[purchase])]

    months = balance.monthly_revenue(clients, TODAY)

    assert [month.month for month in months] == ["2024-01", "2024-02", "2024-03"]
    january, february, march = months
    assert january.paid == Decimal("10.00")
    assert january.open_installments == []
    assert [entry.status for entry in february.open_installments] == ["overdue"]
    assert february.paid == Decimal("0.00")
    assert march.open_installments[0].value == Decimal("30.00")
    assert march.open_installments[0].client_name == "Ana"


def test_monthly_revenue_skips_unreadable_dates():
    purchase = _purchase("P1", "C1", ["10.00"], due_dates=["garbage"])
    clients = [_client("C1", "Ana", purchases=[purchase])]

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        assert balance.monthly_revenue(clients, TODAY) == []
