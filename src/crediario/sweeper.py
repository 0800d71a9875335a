"""Periodic refresh of the stored installment status labels.

The stored ``Status`` column is only a convenience for people opening the
workbook directly; every read derives the status again. The sweep therefore
never blocks a foreground write: when the workbook is busy the tick is
skipped and the next one catches up.
"""

from __future__ import annotations

import threading
import warnings
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Optional

from . import data_manager, log
from .constants import InstallmentStatus
from .core_logic import RuntimeContext, publish_read_snapshots, warm_read_snapshots
from .errors import DataIntegrityWarning
from .status import Moment, derive_status


@dataclass(frozen=True)
class SweepReport:
    """Outcome of one sweep tick."""

    updated: int = 0
    skipped: int = 0
    busy: bool = False


def run_status_sweep(context: RuntimeContext, now: Optional[Moment] = None) -> SweepReport:
    """Rewrite stale ``pending``/``overdue`` labels as of ``now``.

    Paid installments are left alone and nothing is ever marked ``paid``.
    Rows with an unreadable due date keep their label and are counted in
    ``skipped``. Running the sweep twice with the same ``now`` changes nothing
    the second time.

    Returns:
        SweepReport: Counts of rewritten and skipped rows. ``busy`` is set when
            another operation held the workbook and the tick was skipped.
    """
    moment = now if now is not None else datetime.now(UTC)
    if not context._commit_lock.acquire(blocking=False):
        log.debug("Status sweep skipped: workbook busy")
        return SweepReport(busy=True)

    updated = skipped = 0
    try:
        warm_read_snapshots(context)
        for installment in list(data_manager.iter_installments(context.workbook)):
            if installment.is_paid:
                continue
            try:
                status = derive_status(installment, moment)
            except ValueError as exc:
                skipped += 1
                message = (
                    f"Status sweep skipped installment '{installment.installment_id}': "
                    f"unreadable due date {installment.due_date!r} ({exc})"
                )
                log.warning(message)
                warnings.warn(message, DataIntegrityWarning, stacklevel=2)
                continue
            if status is InstallmentStatus.PAID or status.value == installment.status:
                continue
            data_manager.update_row(
                context.workbook,
                data_manager.INSTALLMENTS_SHEET,
                "InstallmentID",
                installment.installment_id,
                field_values={"Status": status.value},
            )
            updated += 1
        if updated:
            publish_read_snapshots(context)
    finally:
        context._commit_lock.release()

    log.info("Status sweep finished: %d updated, %d skipped", updated, skipped)
    return SweepReport(updated=updated, skipped=skipped)


class StatusSweeper:
    """Run :func:`run_status_sweep` on a background thread.

    Args:
        context (RuntimeContext): Context whose workbook is swept.
        interval_seconds (float | None): Pause between ticks. Defaults to
            ``SweepIntervalSeconds`` from the configuration.
        clock (Callable[[], datetime] | None): Source of "now" for each tick.
    """

    def __init__(
        self,
        context: RuntimeContext,
        *,
        interval_seconds: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.context = context
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else context.settings.sweep_interval_seconds
        )
        self.clock = clock or (lambda: datetime.now(UTC))
        self.last_report: Optional[SweepReport] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="crediario-status-sweep", daemon=True)
        self._thread.start()
        log.info("Started status sweeper every %s seconds", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        log.info("Stopped status sweeper")

    def tick(self) -> SweepReport:
        """Run one sweep immediately and remember its report."""
        self.last_report = run_status_sweep(self.context, self.clock())
        return self.last_report

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.tick()
            except Exception:
                # keep the thread alive; the next tick starts from scratch
                log.exception("Status sweep failed")
