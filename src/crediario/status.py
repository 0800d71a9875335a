"""Point-in-time installment status.

The stored ``Status`` column is a cache. The answer to "is this overdue?"
always comes from the due date, the paid marker and the current moment, so
the functions here can run on every read and on the periodic sweep without
side effects.
"""

from __future__ import annotations

import warnings
from dataclasses import replace
from datetime import date, datetime
from typing import Union

from . import log
from .constants import InstallmentStatus
from .data_manager import InstallmentRow
from .errors import DataIntegrityWarning


Moment = Union[date, datetime]


def parse_due_date(raw: str) -> date:
    """Parse a stored due date written either as a date or a datetime.

    Raises:
        ValueError: If ``raw`` is empty or not ISO-8601.
    """
    if not raw:
        raise ValueError("Empty due date")
    text = raw.strip()
    if "T" in text or " " in text:
        return datetime.fromisoformat(text).date()
    return date.fromisoformat(text)


def derive_status(installment: InstallmentRow, now: Moment) -> InstallmentStatus:
    """Return the status of ``installment`` as of ``now``.

    A recorded payment always wins. Otherwise the installment is overdue once
    the calendar day of ``now`` is later than its due date.

    Raises:
        ValueError: If the installment's due date cannot be parsed and the
            installment is not paid.
    """
    if installment.is_paid:
        return InstallmentStatus.PAID
    today = now.date() if isinstance(now, datetime) else now
    if today > parse_due_date(installment.due_date):
        return InstallmentStatus.OVERDUE
    return InstallmentStatus.PENDING


def refresh_status(installment: InstallmentRow, now: Moment) -> InstallmentRow:
    """Return ``installment`` carrying its derived status.

    Records whose due date cannot be parsed keep their last stored status and
    raise a :class:`DataIntegrityWarning` so one bad row never breaks a
    listing.
    """
    try:
        status = derive_status(installment, now)
    except ValueError as exc:
        message = (
            f"Installment '{installment.installment_id}' has an unreadable due date "
            f"{installment.due_date!r}: {exc}"
        )
        log.warning(message)
        warnings.warn(message, DataIntegrityWarning, stacklevel=2)
        return installment
    if status.value == installment.status:
        return installment
    return replace(installment, status=status.value)
