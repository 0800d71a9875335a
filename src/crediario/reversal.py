"""Reversal handler: cancel installments and undo stock movements.

Both operations are all-or-nothing. A failure half-way (for instance an
inventory gateway timeout) restores every sheet touched by the operation.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import replace
from typing import Optional

from . import data_manager, log
from .constants import MovementType
from .core_logic import (
    RuntimeContext,
    atomic,
    client_lock,
    find_installment,
    get_movement,
    get_product,
    get_purchase,
)
from .errors import InvalidStateError


def cancel_installment(context: RuntimeContext, client_id: str, purchase_id: str, installment_id: str) -> None:
    """Remove a pending or overdue installment from a purchase.

    The purchase total drops by exactly the installment's value and the
    remaining installments keep their numbers. When the cancelled installment
    was the last one, the purchase is removed and the stock sold with it is
    returned.

    Args:
        context (RuntimeContext): Runtime context providing workbook access.
        client_id (str): Owner of the purchase.
        purchase_id (str): Purchase holding the installment.
        installment_id (str): Installment to cancel.

    Raises:
        NotFoundError: If the client, purchase or installment is unknown.
        InvalidStateError: If the installment is already paid.
        GatewayTimeoutError: If restoring stock timed out.
    """
    with client_lock(context, client_id), atomic(context):
        record = get_purchase(context, client_id, purchase_id)
        installment = find_installment(record, installment_id)
        if installment.is_paid:
            log.warning("Refused to cancel paid installment '%s'", installment_id)
            raise InvalidStateError(f"Installment {installment_id} is already paid and cannot be cancelled")

        data_manager.delete_rows(
            context.workbook,
            data_manager.INSTALLMENTS_SHEET,
            "InstallmentID",
            [installment_id],
        )
        remaining = [row for row in record.installments if row.installment_id != installment_id]
        if remaining:
            new_total = record.purchase.total_value - installment.value
            data_manager.update_row(
                context.workbook,
                data_manager.PURCHASES_SHEET,
                "PurchaseID",
                purchase_id,
                field_values={"TotalValue": new_total},
            )
            log.info(
                "Cancelled installment %d of purchase '%s'; total now %s",
                installment.installment_number,
                purchase_id,
                new_total,
            )
            return

        _restore_sold_stock(context, record.purchase)
        _remove_purchase(context, record.purchase)
        log.info(
            "Cancelled last installment of purchase '%s'; purchase removed",
            purchase_id,
        )


def reverse_stock_movement(context: RuntimeContext, product_id: str, movement_id: str) -> None:
    """Undo a stock movement.

    Reversing a ``sale`` puts the units back and removes the purchase created
    by that sale, with its installments and the payments made against it.
    Reversing a ``purchase`` takes the units out again, even if stock goes
    negative; that case is logged as an anomaly.

    Raises:
        NotFoundError: If the product or movement is unknown.
        GatewayTimeoutError: If the inventory gateway timed out.
    """
    movement = get_movement(context, product_id, movement_id)
    with ExitStack() as stack:
        if movement.client_id:
            stack.enter_context(client_lock(context, movement.client_id))
        stack.enter_context(atomic(context))

        movement = get_movement(context, product_id, movement_id)
        product = get_product(context, product_id)
        if movement.movement_type == MovementType.SALE.value:
            context.gateway.increment_stock(product.product_name, movement.quantity)
            if movement.purchase_id:
                purchase = _find_purchase_row(context, movement.purchase_id)
                if purchase is not None:
                    # the movement row goes below with the rest
                    _remove_purchase(context, replace(purchase, movement_id=None))
        else:
            context.gateway.decrement_stock(product.product_name, movement.quantity, allow_negative=True)

        data_manager.delete_rows(
            context.workbook,
            data_manager.MOVEMENTS_SHEET,
            "MovementID",
            [movement_id],
        )
    log.info(
        "Reversed %s movement '%s' of %d x '%s'",
        movement.movement_type,
        movement_id,
        movement.quantity,
        product.product_name,
    )


def _restore_sold_stock(context: RuntimeContext, purchase: data_manager.PurchaseRow) -> None:
    if not purchase.movement_id:
        return
    movement = next(
        (row for row in data_manager.iter_movements(context.workbook) if row.movement_id == purchase.movement_id),
        None,
    )
    if movement is None:
        log.warning(
            "Purchase '%s' links to missing movement '%s'",
            purchase.purchase_id,
            purchase.movement_id,
        )
        return
    product = get_product(context, movement.product_id)
    context.gateway.increment_stock(product.product_name, movement.quantity)


def _remove_purchase(context: RuntimeContext, purchase: data_manager.PurchaseRow) -> None:
    """Delete a purchase, its installments, its payments and its sale movement."""
    workbook = context.workbook
    purchase_id = purchase.purchase_id
    installments = data_manager.delete_rows(workbook, data_manager.INSTALLMENTS_SHEET, "PurchaseID", [purchase_id])
    payments = data_manager.delete_rows(workbook, data_manager.PAYMENTS_SHEET, "PurchaseID", [purchase_id])
    data_manager.delete_rows(workbook, data_manager.PURCHASES_SHEET, "PurchaseID", [purchase_id])
    if purchase.movement_id:
        data_manager.delete_rows(workbook, data_manager.MOVEMENTS_SHEET, "MovementID", [purchase.movement_id])
    log.debug(
        "Removed purchase '%s' with %d installment(s) and %d payment(s)",
        purchase_id,
        installments,
        payments,
    )


def _find_purchase_row(context: RuntimeContext, purchase_id: str) -> Optional[data_manager.PurchaseRow]:
    for purchase in data_manager.iter_purchases(context.workbook):
        if purchase.purchase_id == purchase_id:
            return purchase
    log.warning("Movement references missing purchase '%s'", purchase_id)
    return None
