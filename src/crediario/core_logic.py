"""Business logic layer for Crediário.

This module contains the ledger rules: registering clients, purchases,
debts and payments, and settling installments. It consumes the Data Access
Layer (DAL) for all I/O while ensuring every mutation runs as one
all-or-nothing unit against the master workbook.
"""

from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import (
    CENT,
    EXPECTED_SCHEMA_VERSION,
    ZERO,
    InstallmentStatus,
    MovementType,
    OrderStatus,
    PaymentMethod,
)
from .errors import InvalidStateError, NotFoundError, ValidationError
from .inventory import WorkbookInventoryGateway
from .locks import LockRegistry
from .scheduler import ScheduledInstallment, SplitSpec, schedule
from .status import Moment, refresh_status


CLIENT_FIELDS = (
    "phone",
    "birth_date",
    "address",
    "neighborhood",
    "children_info",
    "preferences",
)

_CLIENT_COLUMNS = {
    "name": "Name",
    "phone": "Phone",
    "birth_date": "BirthDate",
    "address": "Address",
    "neighborhood": "Neighborhood",
    "children_info": "ChildrenInfo",
    "preferences": "Preferences",
}


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration, workbook and coordination state.

    The context is the explicit owner scope of every ledger call: it carries
    the settings (including ``owner_id``), the workbook holding that owner's
    records, the inventory gateway, and the locks that serialize writers.
    """

    settings: data_manager.ConfigSettings
    workbook: Workbook
    gateway: Any = None
    _cache: Dict[str, Dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)
    _client_locks: LockRegistry = field(default_factory=LockRegistry, repr=False, compare=False)
    _commit_lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)
    _snapshot_lock: Any = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.gateway is None:
            object.__setattr__(
                self,
                "gateway",
                WorkbookInventoryGateway(
                    self.workbook,
                    timeout_seconds=self.settings.gateway_timeout_seconds,
                ),
            )


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or the current UTC time when it is ``None``."""

    return candidate if candidate is not None else datetime.now(UTC)


def generate_id(prefix: str, *, when: Optional[datetime] = None) -> str:
    """Generate a sortable, collision-free identifier.

    Args:
        prefix (str): Designator for the record kind (``"C"`` for clients,
            ``"P"`` for purchases and so on).
        when (datetime | None): Timestamp embedded in the identifier. The
            current UTC time is used when omitted.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSS}-{random}``. The
            timestamp keeps identifiers roughly chronological while the random
            suffix keeps rows created in the same instant apart.
    """
    when = when or _resolve_timestamp(None)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8]}"


def _build_ledger_snapshot(workbook: Workbook) -> Dict[str, Any]:
    records = data_manager.assemble_client_records(
        data_manager.iter_clients(workbook),
        data_manager.iter_purchases(workbook),
        data_manager.iter_installments(workbook),
        data_manager.iter_payments(workbook),
        data_manager.iter_relatives(workbook),
    )
    log.debug("Built ledger snapshot with %d clients", len(records))
    return {"all": tuple(records), "by_id": {record.client.client_id: record for record in records}}


def _build_products_snapshot(workbook: Workbook) -> Dict[str, Any]:
    products = tuple(data_manager.iter_products(workbook))
    log.debug("Built products snapshot with %d entries", len(products))
    return {"all": products, "by_id": {product.product_id: product for product in products}}


def _build_movements_snapshot(workbook: Workbook) -> Dict[str, Any]:
    movements = tuple(data_manager.iter_movements(workbook))
    log.debug("Built movements snapshot with %d entries", len(movements))
    return {"all": movements, "by_id": {movement.movement_id: movement for movement in movements}}


def _build_orders_snapshot(workbook: Workbook) -> Dict[str, Any]:
    orders = tuple(data_manager.iter_orders(workbook))
    log.debug("Built orders snapshot with %d entries", len(orders))
    return {"all": orders, "by_id": {order.order_id: order for order in orders}}


_SNAPSHOT_BUILDERS: Dict[str, Callable[[Workbook], Dict[str, Any]]] = {
    "ledger": _build_ledger_snapshot,
    "products": _build_products_snapshot,
    "movements": _build_movements_snapshot,
    "orders": _build_orders_snapshot,
}


def _read_snapshot(context: RuntimeContext, name: str) -> Dict[str, Any]:
    """Return the last committed snapshot called ``name``.

    Published snapshots are never mutated, so a hit needs no lock at all and
    readers never wait for a write in progress. Writers warm every snapshot
    before touching the workbook, which means a miss can only happen while no
    write is mid-flight; the rebuild then reads committed data.
    """

    bucket = context._cache.get(name)
    if bucket is not None:
        return bucket
    with context._snapshot_lock:
        bucket = context._cache.get(name)
        if bucket is None:
            bucket = _SNAPSHOT_BUILDERS[name](context.workbook)
            context._cache[name] = bucket
        return bucket


def warm_read_snapshots(context: RuntimeContext) -> None:
    """Build any missing snapshot. Call while holding the commit lock, before writing."""

    with context._snapshot_lock:
        for name, builder in _SNAPSHOT_BUILDERS.items():
            if name not in context._cache:
                context._cache[name] = builder(context.workbook)


def publish_read_snapshots(context: RuntimeContext) -> None:
    """Swap in snapshots of the workbook as it stands now.

    Call while holding the commit lock, once the workbook is consistent again
    (after a commit or a rollback).
    """

    with context._snapshot_lock:
        fresh = {name: builder(context.workbook) for name, builder in _SNAPSHOT_BUILDERS.items()}
        context._cache.update(fresh)
    log.debug("Published read snapshots: %s", ", ".join(fresh))


def invalidate_cache(context: RuntimeContext, *names: str) -> None:
    """Drop snapshots after the workbook was changed outside :func:`atomic`.

    Without ``names`` every snapshot is dropped; the next read rebuilds it.
    """

    with context._commit_lock, context._snapshot_lock:
        targets = names or tuple(context._cache)
        if not targets:
            return
        log.debug("Invalidating cache buckets: %s", ", ".join(targets))
        for name in targets:
            context._cache.pop(name, None)


def _ensure_ledger_cache(context: RuntimeContext) -> Dict[str, Any]:
    return _read_snapshot(context, "ledger")


def _ensure_products_cache(context: RuntimeContext) -> Dict[str, Any]:
    return _read_snapshot(context, "products")


def _ensure_movements_cache(context: RuntimeContext) -> Dict[str, Any]:
    return _read_snapshot(context, "movements")


def _ensure_orders_cache(context: RuntimeContext) -> Dict[str, Any]:
    return _read_snapshot(context, "orders")


@contextmanager
def atomic(context: RuntimeContext) -> Iterator[None]:
    """Run the enclosed writes as one all-or-nothing unit.

    The commit lock is held for the whole block and every ledger sheet is
    snapshotted on entry. If the block raises, the sheets are restored to the
    snapshot before the exception propagates. Readers keep seeing the read
    snapshots taken before the block until fresh ones are published on exit.
    """

    with context._commit_lock:
        warm_read_snapshots(context)
        snapshot = data_manager.snapshot_sheets(context.workbook, data_manager.SHEET_COLUMNS)
        try:
            yield
        except BaseException:
            data_manager.restore_sheets(context.workbook, snapshot)
            log.warning("Rolled back workbook changes after a failed operation")
            raise
        finally:
            publish_read_snapshots(context)


@contextmanager
def client_lock(context: RuntimeContext, client_id: str) -> Iterator[None]:
    """Serialize writers touching the ledger of ``client_id``."""

    with context._client_locks.hold(client_id):
        yield


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook for the ledger.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Fully populated context ready for ledger operations.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info(
        "Loaded runtime context for owner '%s' from workbook '%s'",
        settings.owner_id,
        settings.data_file,
    )
    return RuntimeContext(settings=settings, workbook=workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def persist_context(context: RuntimeContext) -> None:
    """Persist in-memory workbook changes to the configured data file."""
    with context._commit_lock:
        data_manager.save_workbook(
            context.workbook,
            destination=context.settings.data_file,
        )
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook to discard unsaved modifications.

    Returns:
        RuntimeContext: Fresh context with a newly opened workbook, a new
            inventory gateway and empty caches.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(settings=context.settings, workbook=workbook)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def with_derived_status(record: data_manager.ClientRecord, now: Moment) -> data_manager.ClientRecord:
    """Return ``record`` with every installment carrying its derived status."""
    purchases = tuple(
        replace(
            purchase,
            installments=tuple(refresh_status(installment, now) for installment in purchase.installments),
        )
        for purchase in record.purchases
    )
    return replace(record, purchases=purchases)


def list_clients(context: RuntimeContext, *, now: Optional[Moment] = None) -> List[data_manager.ClientRecord]:
    """Return every client with purchases, payments and relatives.

    Installment statuses are derived as of ``now`` (the current UTC time by
    default). Records with unreadable due dates keep their stored status.
    """
    moment = now if now is not None else _resolve_timestamp(None)
    records = list(_ensure_ledger_cache(context)["all"])
    return [with_derived_status(record, moment) for record in records]


def get_client(context: RuntimeContext, client_id: str, *, now: Optional[Moment] = None) -> data_manager.ClientRecord:
    """Resolve one client's full ledger.

    Raises:
        NotFoundError: If ``client_id`` is unknown.
    """
    cache = _ensure_ledger_cache(context)
    try:
        record = cache["by_id"][client_id]
    except KeyError as exc:
        log.warning("Client lookup failed for id '%s'", client_id)
        raise NotFoundError(f"Unknown client id: {client_id}") from exc
    moment = now if now is not None else _resolve_timestamp(None)
    return with_derived_status(record, moment)


def get_purchase(context: RuntimeContext, client_id: str, purchase_id: str) -> data_manager.PurchaseRecord:
    """Resolve a purchase that belongs to ``client_id``.

    Raises:
        NotFoundError: If the client or the purchase is unknown, or the
            purchase belongs to another client.
    """
    record = get_client(context, client_id)
    for purchase in record.purchases:
        if purchase.purchase.purchase_id == purchase_id:
            return purchase
    log.warning("Purchase lookup failed for id '%s' (client '%s')", purchase_id, client_id)
    raise NotFoundError(f"Unknown purchase id for client {client_id}: {purchase_id}")


def find_installment(record: data_manager.PurchaseRecord, installment_id: str) -> data_manager.InstallmentRow:
    for installment in record.installments:
        if installment.installment_id == installment_id:
            return installment
    log.warning(
        "Installment lookup failed for id '%s' (purchase '%s')",
        installment_id,
        record.purchase.purchase_id,
    )
    raise NotFoundError(f"Unknown installment id: {installment_id}")


def list_products(context: RuntimeContext) -> List[data_manager.ProductRow]:
    return list(_ensure_products_cache(context)["all"])


def get_product(context: RuntimeContext, product_id: str) -> data_manager.ProductRow:
    """Resolve a product by its identifier.

    Raises:
        NotFoundError: If ``product_id`` is absent from the workbook.
    """
    cache = _ensure_products_cache(context)
    try:
        return cache["by_id"][product_id]
    except KeyError as exc:
        log.warning("Product lookup failed for id '%s'", product_id)
        raise NotFoundError(f"Unknown product id: {product_id}") from exc


def list_movements(context: RuntimeContext, *, product_id: Optional[str] = None) -> List[data_manager.MovementRow]:
    """Return stock movements, newest first, optionally for one product."""
    movements = [
        movement
        for movement in _ensure_movements_cache(context)["all"]
        if product_id is None or movement.product_id == product_id
    ]
    movements.sort(key=lambda movement: movement.occurred_at, reverse=True)
    return movements


def get_movement(context: RuntimeContext, product_id: str, movement_id: str) -> data_manager.MovementRow:
    """Resolve a movement recorded against ``product_id``.

    Raises:
        NotFoundError: If the movement is unknown or belongs to another product.
    """
    movement = _ensure_movements_cache(context)["by_id"].get(movement_id)
    if movement is None or movement.product_id != product_id:
        log.warning("Movement lookup failed for id '%s' (product '%s')", movement_id, product_id)
        raise NotFoundError(f"Unknown movement id for product {product_id}: {movement_id}")
    return movement


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def register_client(context: RuntimeContext, name: str, *, timestamp: Optional[datetime] = None, **details: Optional[str]) -> data_manager.ClientRow:
    """Create a client with optional contact details.

    Args:
        context (RuntimeContext): Runtime context providing workbook access.
        name (str): Display name; must not be blank.
        timestamp (datetime | None): Creation moment, defaults to now.
        **details: Any of ``phone``, ``birth_date``, ``address``,
            ``neighborhood``, ``children_info`` and ``preferences``.

    Returns:
        data_manager.ClientRow: The stored client.

    Raises:
        ValidationError: If the name is blank or an unknown detail is passed.
    """
    cleaned_name = _require_text(name, "Client name")
    _reject_unknown_fields(details, CLIENT_FIELDS)
    moment = _resolve_timestamp(timestamp)
    client = data_manager.ClientRow(
        client_id=generate_id("C", when=moment),
        name=cleaned_name,
        created_at=moment.isoformat(),
        **{key: (value or None) for key, value in details.items()},
    )
    with atomic(context):
        data_manager.append_client(context.workbook, client)
    log.info("Registered client '%s' (%s)", client.name, client.client_id)
    return client


def edit_client(context: RuntimeContext, client_id: str, **changes: Optional[str]) -> data_manager.ClientRow:
    """Update a client's name or contact details.

    Raises:
        NotFoundError: If the client is unknown.
        ValidationError: If an unknown field is passed or the name is blank.
    """
    _reject_unknown_fields(changes, ("name", *CLIENT_FIELDS))
    if "name" in changes:
        changes["name"] = _require_text(changes["name"], "Client name")
    with client_lock(context, client_id), atomic(context):
        current = get_client(context, client_id).client
        if not changes:
            return current
        data_manager.update_row(
            context.workbook,
            data_manager.CLIENTS_SHEET,
            "ClientID",
            client_id,
            field_values={_CLIENT_COLUMNS[key]: (value or None) for key, value in changes.items()},
        )
    log.info("Updated client '%s' fields: %s", client_id, ", ".join(sorted(changes)))
    return replace(current, **{key: (value or None) for key, value in changes.items()})


def delete_client(context: RuntimeContext, client_id: str) -> None:
    """Delete a client and everything it owns in one atomic unit.

    Purchases, installments, payments and relatives go together. Stock
    movements stay in the product history.

    Raises:
        NotFoundError: If the client is unknown.
    """
    with client_lock(context, client_id), atomic(context):
        record = get_client(context, client_id)
        workbook = context.workbook
        purchase_ids = [purchase.purchase.purchase_id for purchase in record.purchases]
        data_manager.delete_rows(workbook, data_manager.INSTALLMENTS_SHEET, "PurchaseID", purchase_ids)
        data_manager.delete_rows(workbook, data_manager.PURCHASES_SHEET, "ClientID", [client_id])
        data_manager.delete_rows(workbook, data_manager.PAYMENTS_SHEET, "ClientID", [client_id])
        data_manager.delete_rows(workbook, data_manager.RELATIVES_SHEET, "ClientID", [client_id])
        data_manager.delete_rows(workbook, data_manager.CLIENTS_SHEET, "ClientID", [client_id])
    log.info(
        "Deleted client '%s' with %d purchases and %d payments",
        client_id,
        len(record.purchases),
        len(record.payments),
    )


def add_relative(context: RuntimeContext, client_id: str, name: str, *, birth_date: Optional[date] = None, relationship: Optional[str] = None) -> data_manager.RelativeRow:
    """Attach a relative to a client."""
    cleaned_name = _require_text(name, "Relative name")
    with client_lock(context, client_id), atomic(context):
        get_client(context, client_id)
        relative = data_manager.RelativeRow(
            relative_id=generate_id("R"),
            client_id=client_id,
            name=cleaned_name,
            birth_date=birth_date.isoformat() if birth_date is not None else None,
            relationship=relationship or None,
        )
        data_manager.append_relative(context.workbook, relative)
    log.info("Added relative '%s' to client '%s'", relative.name, client_id)
    return relative


# ---------------------------------------------------------------------------
# Purchases, debts and payments
# ---------------------------------------------------------------------------


def register_purchase(
    context: RuntimeContext,
    client_id: str,
    item: str,
    amount: Decimal,
    split: Optional[SplitSpec] = None,
    *,
    quantity: Optional[int] = None,
    timestamp: Optional[datetime] = None,
) -> data_manager.PurchaseRecord:
    """Register a purchase, optionally split into installments.

    Without ``split`` the purchase gets one installment due today. When
    ``quantity`` is given, ``item`` names a product and that many units are
    taken from stock as part of the same atomic unit.

    Args:
        context (RuntimeContext): Runtime context providing workbook access.
        client_id (str): Owner of the purchase.
        item (str): Description, or product name when ``quantity`` is set.
        amount (Decimal): Purchase total, strictly positive.
        split (SplitSpec | None): Installment plan.
        quantity (int | None): Units to take from stock.
        timestamp (datetime | None): Creation moment, defaults to now.

    Returns:
        data_manager.PurchaseRecord: The stored purchase and its installments.

    Raises:
        ValidationError: For malformed input.
        NotFoundError: If the client (or product) is unknown.
        InsufficientStockError: If stock cannot cover ``quantity``.
        GatewayTimeoutError: If the inventory gateway timed out.
    """
    cleaned_item = _require_text(item, "Item")
    moment = _resolve_timestamp(timestamp)
    plan = _build_plan(context, require_positive_money(amount), split, moment)
    if quantity is not None:
        require_positive_quantity(quantity)
        unit_price = (amount / quantity).quantize(CENT)
    else:
        unit_price = None
    return _commit_purchase(
        context,
        client_id=client_id,
        item=cleaned_item,
        quantity=quantity,
        total=amount.quantize(CENT),
        unit_price=unit_price,
        plan=plan,
        timestamp=moment,
    )


def register_debt(
    context: RuntimeContext,
    client_id: str,
    product_name: str,
    quantity: int,
    unit_price: Decimal,
    *,
    timestamp: Optional[datetime] = None,
) -> data_manager.PurchaseRecord:
    """Register a debt: a stock sale with no installment plan.

    The total is ``quantity * unit_price`` recorded as a single installment
    due today. Stock is taken through the inventory gateway, which must
    confirm ``quantity`` units are available; otherwise nothing is written.

    Raises:
        ValidationError: If quantity or unit price are not positive.
        NotFoundError: If the client or product is unknown.
        InsufficientStockError: If stock cannot cover ``quantity``.
        GatewayTimeoutError: If the inventory gateway timed out.
    """
    cleaned_name = _require_text(product_name, "Product name")
    require_positive_quantity(quantity)
    price = require_positive_money(unit_price)
    total = (price * quantity).quantize(CENT)
    moment = _resolve_timestamp(timestamp)
    plan = schedule(total, 1, context.settings.default_interval_days, moment.date())
    return _commit_purchase(
        context,
        client_id=client_id,
        item=cleaned_name,
        quantity=quantity,
        total=total,
        unit_price=price,
        plan=plan,
        timestamp=moment,
    )


def register_payment(
    context: RuntimeContext,
    client_id: str,
    amount: Decimal,
    method: Optional[PaymentMethod] = None,
    *,
    timestamp: Optional[datetime] = None,
) -> data_manager.PaymentRow:
    """Record a free-form payment against a client's running balance.

    The balance is not checked: paying more than is owed leaves the client
    with a negative balance (store credit). No stock is touched.

    Raises:
        ValidationError: If ``amount`` is not positive or ``method`` is invalid.
        NotFoundError: If the client is unknown.
    """
    value = require_positive_money(amount)
    resolved_method = normalize_payment_method(method, required=False)
    moment = _resolve_timestamp(timestamp)
    with client_lock(context, client_id), atomic(context):
        get_client(context, client_id)
        payment = data_manager.PaymentRow(
            payment_id=generate_id("Y", when=moment),
            client_id=client_id,
            amount=value,
            paid_at=moment.isoformat(),
            payment_method=resolved_method.value if resolved_method else None,
        )
        data_manager.append_payment(context.workbook, payment)
    log.info(
        "Recorded payment '%s' of %s for client '%s'",
        payment.payment_id,
        payment.amount,
        client_id,
    )
    return payment


def pay_installment(
    context: RuntimeContext,
    client_id: str,
    purchase_id: str,
    installment_id: str,
    method: PaymentMethod,
    *,
    timestamp: Optional[datetime] = None,
) -> data_manager.InstallmentRow:
    """Settle one installment and record the matching payment.

    The installment becomes ``paid`` with its paid date and method, and a
    payment of exactly the installment's value is stored in the same unit.

    Raises:
        ValidationError: If ``method`` is missing or not a known method.
        NotFoundError: If the client, purchase or installment is unknown.
        InvalidStateError: If the installment is already paid.
    """
    resolved_method = normalize_payment_method(method, required=True)
    moment = _resolve_timestamp(timestamp)
    with client_lock(context, client_id), atomic(context):
        record = get_purchase(context, client_id, purchase_id)
        installment = find_installment(record, installment_id)
        if installment.is_paid:
            log.warning("Installment '%s' is already paid", installment_id)
            raise InvalidStateError(f"Installment {installment_id} is already paid")
        paid = replace(
            installment,
            status=InstallmentStatus.PAID.value,
            paid_date=moment.isoformat(),
            payment_method=resolved_method.value,
        )
        data_manager.update_row(
            context.workbook,
            data_manager.INSTALLMENTS_SHEET,
            "InstallmentID",
            installment_id,
            field_values={
                "Status": paid.status,
                "PaidDate": paid.paid_date,
                "PaymentMethod": paid.payment_method,
            },
        )
        data_manager.append_payment(
            context.workbook,
            data_manager.PaymentRow(
                payment_id=generate_id("Y", when=moment),
                client_id=client_id,
                amount=installment.value,
                paid_at=moment.isoformat(),
                payment_method=resolved_method.value,
                purchase_id=purchase_id,
                installment_id=installment_id,
            ),
        )
    log.info(
        "Paid installment %d of purchase '%s' (%s via %s)",
        paid.installment_number,
        purchase_id,
        paid.value,
        paid.payment_method,
    )
    return paid


def record_stock_movement(
    context: RuntimeContext,
    product_name: str,
    movement_type: MovementType,
    quantity: int,
    unit_price: Decimal,
    *,
    notes: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> data_manager.MovementRow:
    """Record a manual stock-in or counter sale for a product.

    A ``purchase`` creates the product on first use. A ``sale`` requires the
    product to exist and to hold enough units.

    Raises:
        ValidationError: For malformed input.
        NotFoundError: If a sale names an unknown product.
        InsufficientStockError: If a sale exceeds the stock on hand.
        GatewayTimeoutError: If the inventory gateway timed out.
    """
    cleaned_name = _require_text(product_name, "Product name")
    if not isinstance(movement_type, MovementType):
        raise ValidationError(f"Unsupported movement type: {movement_type}")
    require_positive_quantity(quantity)
    price = require_nonnegative_money(unit_price)
    moment = _resolve_timestamp(timestamp)
    with atomic(context):
        if movement_type is MovementType.PURCHASE:
            context.gateway.ensure_product(cleaned_name)
            product = context.gateway.increment_stock(cleaned_name, quantity)
            default_notes = "Stock purchase"
        else:
            product = context.gateway.decrement_stock(cleaned_name, quantity)
            default_notes = "Counter sale"
        movement = data_manager.MovementRow(
            movement_id=generate_id("M", when=moment),
            product_id=product.product_id,
            movement_type=movement_type.value,
            quantity=quantity,
            unit_price=price,
            occurred_at=moment.isoformat(),
            notes=notes or default_notes,
        )
        data_manager.append_movement(context.workbook, movement)
    log.info(
        "Recorded %s movement '%s' of %d x '%s'",
        movement.movement_type,
        movement.movement_id,
        quantity,
        product.product_name,
    )
    return movement


def _commit_purchase(
    context: RuntimeContext,
    *,
    client_id: str,
    item: str,
    quantity: Optional[int],
    total: Decimal,
    unit_price: Optional[Decimal],
    plan: List[ScheduledInstallment],
    timestamp: datetime,
) -> data_manager.PurchaseRecord:
    """Write a purchase, its installments and its stock charge as one unit.

    Ledger rows are staged first and the gateway is charged last; if the
    gateway refuses, the atomic unit discards the staged rows.
    """
    with client_lock(context, client_id), atomic(context):
        client = get_client(context, client_id).client
        purchase_id = generate_id("P", when=timestamp)
        movement_id = generate_id("M", when=timestamp) if quantity is not None else None
        purchase = data_manager.PurchaseRow(
            purchase_id=purchase_id,
            client_id=client_id,
            item=item,
            quantity=quantity if quantity is not None else 1,
            total_value=total,
            created_at=timestamp.isoformat(),
            movement_id=movement_id,
        )
        installments = build_installment_rows(plan, purchase_id=purchase_id, client_id=client_id)
        data_manager.append_purchase(context.workbook, purchase)
        for installment in installments:
            data_manager.append_installment(context.workbook, installment)

        if quantity is not None:
            product = context.gateway.decrement_stock(item, quantity)
            data_manager.append_movement(
                context.workbook,
                data_manager.MovementRow(
                    movement_id=movement_id,
                    product_id=product.product_id,
                    movement_type=MovementType.SALE.value,
                    quantity=quantity,
                    unit_price=unit_price if unit_price is not None else ZERO,
                    occurred_at=timestamp.isoformat(),
                    notes=f"Sale to {client.name}",
                    client_id=client_id,
                    purchase_id=purchase_id,
                ),
            )
    log.info(
        "Registered purchase '%s' for client '%s' (item=%s, total=%s, installments=%d)",
        purchase_id,
        client_id,
        item,
        total,
        len(installments),
    )
    return data_manager.PurchaseRecord(purchase=purchase, installments=tuple(installments))


def _build_plan(context: RuntimeContext, total: Decimal, split: Optional[SplitSpec], moment: datetime) -> List[ScheduledInstallment]:
    if split is None:
        return schedule(total, 1, context.settings.default_interval_days, moment.date())
    first_due = split.first_due_date if split.first_due_date is not None else moment.date()
    return schedule(total, split.count, split.interval_days, first_due)


def build_installment_rows(plan: List[ScheduledInstallment], *, purchase_id: str, client_id: str) -> List[data_manager.InstallmentRow]:
    """Materialize a schedule into pending installment rows for ``purchase_id``."""
    return [
        data_manager.InstallmentRow(
            installment_id=f"{purchase_id}-I{entry.installment_number}",
            purchase_id=purchase_id,
            client_id=client_id,
            installment_number=entry.installment_number,
            due_date=entry.due_date.isoformat(),
            value=entry.value,
            status=InstallmentStatus.PENDING.value,
        )
        for entry in plan
    ]


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


def add_order(
    context: RuntimeContext,
    customer_name: str,
    product_name: str,
    *,
    timestamp: Optional[datetime] = None,
) -> data_manager.OrderRow:
    """Note a product a customer asked for that is not in stock yet.

    Orders are free text: the customer does not need to be a registered
    client and the product does not need to exist.

    Raises:
        ValidationError: If either name is shorter than two characters.
    """
    customer = _require_text(customer_name, "Customer name")
    product = _require_text(product_name, "Product name")
    for label, value in (("Customer name", customer), ("Product name", product)):
        if len(value) < 2:
            raise ValidationError(f"{label} must have at least 2 characters")
    moment = _resolve_timestamp(timestamp)
    order = data_manager.OrderRow(
        order_id=generate_id("O", when=moment),
        customer_name=customer,
        product_name=product,
        status=OrderStatus.PENDING.value,
        created_at=moment.isoformat(),
    )
    with atomic(context):
        data_manager.append_order(context.workbook, order)
    log.info("Added order '%s': %s for %s", order.order_id, product, customer)
    return order


def list_pending_orders(context: RuntimeContext) -> List[data_manager.OrderRow]:
    """Return orders still waiting to be fulfilled, oldest first."""
    pending = [
        order
        for order in _ensure_orders_cache(context)["all"]
        if order.status == OrderStatus.PENDING.value
    ]
    pending.sort(key=lambda order: order.created_at)
    return pending


def complete_order(context: RuntimeContext, order_id: str, *, timestamp: Optional[datetime] = None) -> data_manager.OrderRow:
    """Mark an order as fulfilled.

    Raises:
        NotFoundError: If ``order_id`` is unknown.
        InvalidStateError: If the order was already completed.
    """
    moment = _resolve_timestamp(timestamp)
    with atomic(context):
        order = _ensure_orders_cache(context)["by_id"].get(order_id)
        if order is None:
            log.warning("Order lookup failed for id '%s'", order_id)
            raise NotFoundError(f"Unknown order id: {order_id}")
        if order.status == OrderStatus.COMPLETED.value:
            log.warning("Order '%s' is already completed", order_id)
            raise InvalidStateError(f"Order {order_id} is already completed")
        completed = replace(order, status=OrderStatus.COMPLETED.value, completed_at=moment.isoformat())
        data_manager.update_row(
            context.workbook,
            data_manager.ORDERS_SHEET,
            "OrderID",
            order_id,
            field_values={"Status": completed.status, "CompletedAt": completed.completed_at},
        )
    log.info("Completed order '%s' (%s for %s)", order_id, order.product_name, order.customer_name)
    return completed


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def require_positive_quantity(quantity: int) -> None:
    """Validate that a quantity is a strictly positive whole number.

    Raises:
        ValidationError: If ``quantity`` is not an ``int`` or is not positive.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValidationError("Quantity must be a positive whole number")


def require_positive_money(amount: Decimal) -> Decimal:
    """Validate a strictly positive amount with at most two decimal places.

    Returns:
        Decimal: ``amount`` quantized to cents.

    Raises:
        ValidationError: If ``amount`` is not a finite positive ``Decimal``.
    """
    value = require_nonnegative_money(amount)
    if value <= ZERO:
        log.error("Monetary value validation failed: %s", amount)
        raise ValidationError("Amount must be greater than zero")
    return value


def require_nonnegative_money(amount: Decimal) -> Decimal:
    if not isinstance(amount, Decimal) or not amount.is_finite():
        log.error("Monetary value validation failed: %r", amount)
        raise ValidationError("Amount must be a decimal number")
    if amount < ZERO:
        log.error("Monetary value validation failed: %s", amount)
        raise ValidationError("Amount must be zero or positive")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"Amount has more than two decimal places: {amount}")
    return amount.quantize(CENT)


def normalize_payment_method(method: Optional[PaymentMethod], *, required: bool) -> Optional[PaymentMethod]:
    """Turn user input into a storable payment method.

    ``PaymentMethod.NOT_SELECTED`` is treated as missing so it is never
    persisted.

    Raises:
        ValidationError: If ``method`` is unknown, or missing while required.
    """
    if method is not None and not isinstance(method, PaymentMethod):
        try:
            method = PaymentMethod(method)
        except ValueError as exc:
            raise ValidationError(f"Unsupported payment method: {method}") from exc
    if method is PaymentMethod.NOT_SELECTED:
        method = None
    if method is None and required:
        log.error("Payment method is required but none was selected")
        raise ValidationError("A payment method must be selected")
    return method


def _require_text(value: Optional[str], label: str) -> str:
    cleaned = " ".join((value or "").split())
    if not cleaned:
        raise ValidationError(f"{label} must not be blank")
    return cleaned


def _reject_unknown_fields(values: Dict[str, Any], allowed: tuple[str, ...]) -> None:
    unknown = sorted(set(values) - set(allowed))
    if unknown:
        raise ValidationError(f"Unknown client field(s): {', '.join(unknown)}")
