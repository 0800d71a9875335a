"""Installment scheduling rules.

Turns a purchase total and a split request into an ordered, gapless list of
installments whose values add up to the total to the cent. Construction is
pure: nothing here touches the workbook, so callers persist the result inside
their own atomic unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_DOWN, Decimal
from typing import List, Optional

from . import log
from .constants import CENT, MAX_INSTALLMENTS, MIN_INSTALLMENTS, ZERO
from .errors import ValidationError


@dataclass(frozen=True)
class SplitSpec:
    """How a purchase should be divided into installments."""

    count: int
    interval_days: int = 30
    first_due_date: Optional[date] = None


@dataclass(frozen=True)
class ScheduledInstallment:
    """One entry of a freshly built schedule, before it is persisted."""

    installment_number: int
    due_date: date
    value: Decimal


def schedule(total_value: Decimal, count: int, interval_days: int, first_due_date: date) -> List[ScheduledInstallment]:
    """Split ``total_value`` into ``count`` installments.

    Every installment but the last is worth ``floor(total / count)`` to the
    cent; the last one absorbs the remainder so the values sum exactly to
    ``total_value``. Due dates start at ``first_due_date`` and advance by
    ``interval_days``.

    Args:
        total_value (Decimal): Purchase total, strictly positive.
        count (int): Number of installments, between 1 and 6 inclusive.
        interval_days (int): Days between consecutive due dates, at least 1.
        first_due_date (date): Due date of installment number 1.

    Returns:
        list[ScheduledInstallment]: Installments numbered from 1, ordered by
            number.

    Raises:
        ValidationError: If any argument is out of range.
    """
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError(f"Installment count must be an integer, got {count!r}")
    if not MIN_INSTALLMENTS <= count <= MAX_INSTALLMENTS:
        log.error("Installment count out of range: %s", count)
        raise ValidationError(
            f"Installment count must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}, got {count}"
        )
    if isinstance(interval_days, bool) or not isinstance(interval_days, int) or interval_days < 1:
        log.error("Installment interval validation failed: %s", interval_days)
        raise ValidationError("Installment interval must be at least one day")
    total = _require_money(total_value)

    if count == 1:
        return [ScheduledInstallment(1, first_due_date, total)]

    base_value = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    if base_value <= ZERO:
        raise ValidationError(f"Total {total} is too small to split into {count} installments")

    installments = [
        ScheduledInstallment(
            installment_number=number,
            due_date=first_due_date + timedelta(days=(number - 1) * interval_days),
            value=base_value,
        )
        for number in range(1, count)
    ]
    installments.append(
        ScheduledInstallment(
            installment_number=count,
            due_date=first_due_date + timedelta(days=(count - 1) * interval_days),
            value=total - base_value * (count - 1),
        )
    )
    log.debug("Scheduled %s into %d installments of %s", total, count, base_value)
    return installments


def _require_money(amount: Decimal) -> Decimal:
    if not isinstance(amount, Decimal):
        raise ValidationError(f"Monetary values must be Decimal, got {type(amount).__name__}")
    if not amount.is_finite() or amount <= ZERO:
        log.error("Purchase total validation failed: %s", amount)
        raise ValidationError("Purchase total must be greater than zero")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"Purchase total has more than two decimal places: {amount}")
    return amount.quantize(CENT)
