"""Unit tests for installment scheduling."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from crediario.errors import ValidationError
from crediario.scheduler import schedule


def test_schedule_splits_with_remainder_on_last_installment():
    """100.00 in three installments every 30 days starting 2024-01-01."""

    plan = schedule(Decimal("100.00"), 3, 30, date(2024, 1, 1))

    assert [entry.installment_number for entry in plan] == [1, 2, 3]
    assert [entry.value for entry in plan] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert [entry.due_date for entry in plan] == [
        date(2024, 1, 1),
        date(2024, 1, 31),
        date(2024, 3, 1),
    ]


@pytest.mark.parametrize("count", [1, 2, 3, 4, 5, 6])
@pytest.mark.parametrize("total", ["0.01", "0.06", "10.00", "99.99", "1234.57"])
def test_schedule_values_always_sum_to_total(count, total):
    amount = Decimal(total)
    if amount / count < Decimal("0.01"):
        pytest.skip("total too small to split")

    plan = schedule(amount, count, 30, date(2024, 1, 1))

    assert len(plan) == count
    assert sum(entry.value for entry in plan) == amount
    assert all(entry.value > 0 for entry in plan)


def test_schedule_single_installment_keeps_total_and_first_date():
    plan = schedule(Decimal("42.10"), 1, 30, date(2024, 5, 20))

    assert len(plan) == 1
    assert plan[0].value == Decimal("42.10")
    assert plan[0].due_date == date(2024, 5, 20)


def test_schedule_uses_custom_interval():
    plan = schedule(Decimal("20.00"), 2, 7, date(2024, 2, 25))

    assert [entry.due_date for entry in plan] == [date(2024, 2, 25), date(2024, 3, 3)]


@pytest.mark.parametrize("count", [0, 7, -1])
def test_schedule_rejects_out_of_range_counts(count):
    with pytest.raises(ValidationError):
        schedule(Decimal("10.00"), count, 30, date(2024, 1, 1))


@pytest.mark.parametrize("total", [Decimal("0"), Decimal("-5.00"), Decimal("1.005")])
def test_schedule_rejects_invalid_totals(total):
    with pytest.raises(ValidationError):
        schedule(total, 2, 30, date(2024, 1, 1))


def test_schedule_rejects_float_totals():
    with pytest.raises(ValidationError):
        schedule(10.0, 2, 30, date(2024, 1, 1))


def test_schedule_rejects_non_positive_interval():
    with pytest.raises(ValidationError):
        schedule(Decimal("10.00"), 2, 0, date(2024, 1, 1))
