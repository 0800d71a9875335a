"""Balance aggregation and ledger reports.

Every function in this module is pure: it reads :class:`ClientRecord`
instances already assembled by the business logic layer and returns new
values, so reports can be recomputed as often as needed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List

from .constants import ZERO, InstallmentStatus
from .data_manager import ClientRecord, InstallmentRow
from .status import Moment, refresh_status


@dataclass(frozen=True)
class BalanceSummary:
    """Totals owed by a single client."""

    total_purchased: Decimal
    total_paid: Decimal
    balance: Decimal


@dataclass(frozen=True)
class DebtorLine:
    client_id: str
    name: str
    summary: BalanceSummary


@dataclass(frozen=True)
class OpenInstallment:
    """A pending or overdue installment listed in a monthly report."""

    client_name: str
    installment_id: str
    value: Decimal
    status: str
    due_date: str


@dataclass
class MonthlyRevenue:
    """Money received in a month and the installments still open in it."""

    month: str
    paid: Decimal = ZERO
    open_installments: List[OpenInstallment] = field(default_factory=list)


def aggregate(client: ClientRecord) -> BalanceSummary:
    """Compute purchased, paid and outstanding totals for ``client``.

    ``balance`` is ``total_purchased - total_paid`` and may be negative when
    the client has paid in advance.
    """
    total_purchased = sum((record.purchase.total_value for record in client.purchases), ZERO)
    total_paid = sum((payment.amount for payment in client.payments), ZERO)
    return BalanceSummary(
        total_purchased=total_purchased,
        total_paid=total_paid,
        balance=total_purchased - total_paid,
    )


def unpaid_installments(client: ClientRecord, now: Moment) -> List[InstallmentRow]:
    """Return the client's installments whose derived status is not ``paid``."""
    unpaid = []
    for record in client.purchases:
        for installment in record.installments:
            current = refresh_status(installment, now)
            if current.status != InstallmentStatus.PAID.value:
                unpaid.append(current)
    return unpaid


def outstanding_by_installment(client: ClientRecord, now: Moment) -> Decimal:
    """Sum the values of every installment not yet paid.

    When money only arrives through installment payments this equals
    :func:`aggregate`'s ``balance``; free-form payments reduce the balance
    without settling any specific installment.
    """
    return sum((installment.value for installment in unpaid_installments(client, now)), ZERO)


def total_outstanding(clients: Iterable[ClientRecord], now: Moment) -> Decimal:
    return sum((outstanding_by_installment(client, now) for client in clients), ZERO)


def debtors_report(clients: Iterable[ClientRecord]) -> List[DebtorLine]:
    """List every client with their totals, largest balance first."""
    lines = [
        DebtorLine(client_id=record.client.client_id, name=record.client.name, summary=aggregate(record))
        for record in clients
    ]
    lines.sort(key=lambda line: (-line.summary.balance, line.name))
    return lines


def monthly_revenue(clients: Iterable[ClientRecord], now: Moment) -> List[MonthlyRevenue]:
    """Bucket installment money by calendar month, oldest month first.

    Paid installments count towards the month of their paid date. Open
    installments are listed under the month they fall due. Rows whose dates
    are unreadable are skipped.
    """
    buckets: Dict[str, MonthlyRevenue] = {}

    def bucket(month: str) -> MonthlyRevenue:
        if month not in buckets:
            buckets[month] = MonthlyRevenue(month=month)
        return buckets[month]

    for record in clients:
        for purchase in record.purchases:
            for installment in purchase.installments:
                current = refresh_status(installment, now)
                if current.is_paid:
                    month = _month_key(current.paid_date)
                    if month is not None:
                        bucket(month).paid += current.value
                    continue
                month = _month_key(current.due_date)
                if month is None:
                    continue
                bucket(month).open_installments.append(
                    OpenInstallment(
                        client_name=record.client.name,
                        installment_id=current.installment_id,
                        value=current.value,
                        status=current.status,
                        due_date=current.due_date,
                    )
                )

    return [buckets[month] for month in sorted(buckets)]


def _month_key(raw: str | None) -> str | None:
    # ISO dates and datetimes share the YYYY-MM prefix.
    if not raw or len(raw) < 7 or raw[4] != "-":
        return None
    year, month = raw[:4], raw[5:7]
    if not (year.isdigit() and month.isdigit()) or not 1 <= int(month) <= 12:
        return None
    return f"{year}-{month}"
