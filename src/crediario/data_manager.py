"""Data access layer for Crediário.

This module provides low-level helpers that read from and write to the
master workbook. Ledger rules belong elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, persisting, snapshotting and restoring the
   Excel file.
3. Sheet operations: loading structured records and appending, updating or
   deleting individual rows by key.
4. Record assembly: combining rows from several sheets into the per-client
   views consumed by the ledger.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar
import warnings

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import CENT, ZERO, InstallmentStatus, OrderStatus, SheetName
from .errors import DataIntegrityWarning


CONFIG_FILE_NAME = "config.ini"
CLIENTS_SHEET = SheetName.CLIENTS.value
PURCHASES_SHEET = SheetName.PURCHASES.value
INSTALLMENTS_SHEET = SheetName.INSTALLMENTS.value
PAYMENTS_SHEET = SheetName.PAYMENTS.value
RELATIVES_SHEET = SheetName.RELATIVES.value
PRODUCTS_SHEET = SheetName.PRODUCTS.value
MOVEMENTS_SHEET = SheetName.MOVEMENTS.value
ORDERS_SHEET = SheetName.ORDERS.value

SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    CLIENTS_SHEET: [
        "ClientID",
        "Name",
        "Phone",
        "BirthDate",
        "Address",
        "Neighborhood",
        "ChildrenInfo",
        "Preferences",
        "CreatedAt",
    ],
    PURCHASES_SHEET: [
        "PurchaseID",
        "ClientID",
        "Item",
        "Quantity",
        "TotalValue",
        "CreatedAt",
        "MovementID",
    ],
    INSTALLMENTS_SHEET: [
        "InstallmentID",
        "PurchaseID",
        "ClientID",
        "InstallmentNumber",
        "DueDate",
        "Value",
        "Status",
        "PaidDate",
        "PaymentMethod",
    ],
    PAYMENTS_SHEET: [
        "PaymentID",
        "ClientID",
        "Amount",
        "PaidAt",
        "PaymentMethod",
        "PurchaseID",
        "InstallmentID",
    ],
    RELATIVES_SHEET: [
        "RelativeID",
        "ClientID",
        "Name",
        "BirthDate",
        "Relationship",
    ],
    PRODUCTS_SHEET: [
        "ProductID",
        "ProductName",
        "Quantity",
        "CreatedAt",
    ],
    MOVEMENTS_SHEET: [
        "MovementID",
        "ProductID",
        "MovementType",
        "Quantity",
        "UnitPrice",
        "OccurredAt",
        "Notes",
        "ClientID",
        "PurchaseID",
    ],
    ORDERS_SHEET: [
        "OrderID",
        "CustomerName",
        "ProductName",
        "Status",
        "CreatedAt",
        "CompletedAt",
    ],
}

DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0
DEFAULT_GATEWAY_TIMEOUT_SECONDS = 5.0
DEFAULT_INTERVAL_DAYS = 30


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    business_name: str
    schema_version: str
    owner_id: str
    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    gateway_timeout_seconds: float = DEFAULT_GATEWAY_TIMEOUT_SECONDS
    default_interval_days: int = DEFAULT_INTERVAL_DAYS


@dataclass(frozen=True)
class ClientRow:
    """In-memory view of a row from the ``Clients`` sheet."""

    client_id: str
    name: str
    phone: Optional[str] = None
    birth_date: Optional[str] = None
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    children_info: Optional[str] = None
    preferences: Optional[str] = None
    created_at: str = ""


@dataclass(frozen=True)
class PurchaseRow:
    """In-memory view of a row from the ``Purchases`` sheet."""

    purchase_id: str
    client_id: str
    item: str
    quantity: int
    total_value: Decimal
    created_at: str
    movement_id: Optional[str] = None


@dataclass(frozen=True)
class InstallmentRow:
    """In-memory view of a row from the ``Installments`` sheet."""

    installment_id: str
    purchase_id: str
    client_id: str
    installment_number: int
    due_date: str
    value: Decimal
    status: str
    paid_date: Optional[str] = None
    payment_method: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID.value


@dataclass(frozen=True)
class PaymentRow:
    """In-memory view of a row from the ``Payments`` sheet."""

    payment_id: str
    client_id: str
    amount: Decimal
    paid_at: str
    payment_method: Optional[str] = None
    purchase_id: Optional[str] = None
    installment_id: Optional[str] = None


@dataclass(frozen=True)
class RelativeRow:
    """In-memory view of a row from the ``Relatives`` sheet."""

    relative_id: str
    client_id: str
    name: str
    birth_date: Optional[str]
    relationship: Optional[str]


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    product_name: str
    quantity: int
    created_at: str


@dataclass(frozen=True)
class MovementRow:
    """In-memory view of a row from the ``Movements`` sheet."""

    movement_id: str
    product_id: str
    movement_type: str
    quantity: int
    unit_price: Decimal
    occurred_at: str
    notes: Optional[str] = None
    client_id: Optional[str] = None
    purchase_id: Optional[str] = None


@dataclass(frozen=True)
class OrderRow:
    """In-memory view of a row from the ``Orders`` sheet."""

    order_id: str
    customer_name: str
    product_name: str
    status: str
    created_at: str
    completed_at: Optional[str] = None


@dataclass(frozen=True)
class PurchaseRecord:
    """A purchase together with its installments ordered by number."""

    purchase: PurchaseRow
    installments: tuple[InstallmentRow, ...]


@dataclass(frozen=True)
class ClientRecord:
    """A client together with every record the client owns."""

    client: ClientRow
    purchases: tuple[PurchaseRecord, ...]
    payments: tuple[PaymentRow, ...]
    relatives: tuple[RelativeRow, ...]


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification, which allows the caller to deliberately target a
    non-standard location. When no explicit path is given the function walks up
    from the current working directory toward the filesystem root looking for a
    file named ``CONFIG_FILE_NAME``. The first match that exists on disk is
    considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search. May be relative to the current working directory.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser containing the raw configuration.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    The ``[System]`` section is mandatory. The ``[Ledger]`` section is optional
    and each of its options falls back to the module defaults. Relative
    ``DataFile`` entries are expanded against ``base_path`` when provided, or
    against the current working directory as a fallback.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory to use as the anchor for relative
            ``DataFile`` entries.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required section or option is missing.
        ValueError: If a ``[Ledger]`` option is not a positive number.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        business_name = parser.get("System", "BusinessName")
        schema_version = parser.get("System", "SchemaVersion")
        owner_id = parser.get("System", "OwnerId")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    sweep_interval = parser.getfloat(
        "Ledger", "SweepIntervalSeconds", fallback=DEFAULT_SWEEP_INTERVAL_SECONDS)
    gateway_timeout = parser.getfloat(
        "Ledger", "GatewayTimeoutSeconds", fallback=DEFAULT_GATEWAY_TIMEOUT_SECONDS)
    interval_days = parser.getint(
        "Ledger", "DefaultIntervalDays", fallback=DEFAULT_INTERVAL_DAYS)
    if sweep_interval <= 0 or gateway_timeout <= 0 or interval_days < 1:
        raise ValueError("Ledger settings must be positive numbers")

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        business_name=business_name,
        schema_version=schema_version,
        owner_id=owner_id,
        sweep_interval_seconds=sweep_interval,
        gateway_timeout_seconds=gateway_timeout,
        default_interval_days=interval_days,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Sheets introduced after the workbook was created (for example
    ``Orders``) are added in memory with their header row and written out on
    the next save.

    Args:
        data_file (Path): Filesystem path to the master workbook.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    for sheet_name, columns in SHEET_COLUMNS.items():
        if sheet_name not in wb.sheetnames:
            wb.create_sheet(title=sheet_name).append(list(columns))
            log.info("Added missing sheet '%s' to workbook '%s'", sheet_name, data_file)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk, creating parent directories on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def snapshot_sheets(workbook: Workbook, sheet_names: Iterable[str]) -> Dict[str, List[tuple]]:
    """Capture the data rows of the given sheets so they can be restored.

    Only cell values are captured; the header row is left alone because the
    DAL never rewrites it.

    Args:
        workbook (Workbook): Workbook whose sheets should be captured.
        sheet_names (Iterable[str]): Names of the sheets to capture.

    Returns:
        dict[str, list[tuple]]: Data rows keyed by sheet name, in sheet order.
    """

    snapshot: Dict[str, List[tuple]] = {}
    for name in sheet_names:
        sheet = workbook[name]
        snapshot[name] = [tuple(row) for row in sheet.iter_rows(min_row=2, values_only=True)]
    return snapshot


def restore_sheets(workbook: Workbook, snapshot: Mapping[str, Sequence[tuple]]) -> None:
    """Overwrite sheets with rows previously captured by :func:`snapshot_sheets`."""

    for name, rows in snapshot.items():
        sheet = workbook[name]
        if sheet.max_row > 1:
            sheet.delete_rows(2, sheet.max_row - 1)
        for row in rows:
            sheet.append(list(row))
    log.debug("Restored %d sheet(s) from snapshot", len(snapshot))


def _iter_numbered_rows(workbook: Workbook, sheet_name: str) -> Iterable[Tuple[int, tuple]]:
    sheet = workbook[sheet_name]
    width = len(SHEET_COLUMNS[sheet_name])
    for row_number, raw in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            padded = tuple(raw) + (None,) * (width - len(raw))
            yield row_number, padded[:width]


RowT = TypeVar("RowT")


def _iter_records(workbook: Workbook, sheet_name: str, deserialize: Callable[[Sequence[object]], RowT]) -> Iterable[RowT]:
    """Deserialize every data row of ``sheet_name``.

    A row whose cells cannot be interpreted (text in a money column, for
    example) is skipped with a :class:`DataIntegrityWarning` naming the sheet
    and row, so one damaged cell never hides the rest of the sheet.
    """

    for row_number, raw in _iter_numbered_rows(workbook, sheet_name):
        try:
            record = deserialize(raw)
        except ValueError as exc:
            message = f"Skipping unreadable row {row_number} on sheet '{sheet_name}': {exc}"
            log.warning(message)
            warnings.warn(message, DataIntegrityWarning, stacklevel=2)
            continue
        yield record


def iter_clients(workbook: Workbook) -> Iterable[ClientRow]:
    """Iterate over client records stored on the ``Clients`` worksheet.

    Args:
        workbook (Workbook): Workbook containing the ``Clients`` sheet.

    Yields:
        ClientRow: One structured row for each meaningful record in the sheet.
    """

    yield from _iter_records(workbook, CLIENTS_SHEET, deserialize_client)


def iter_purchases(workbook: Workbook) -> Iterable[PurchaseRow]:
    """Iterate over the ``Purchases`` worksheet and yield typed records."""

    yield from _iter_records(workbook, PURCHASES_SHEET, deserialize_purchase)


def iter_installments(workbook: Workbook) -> Iterable[InstallmentRow]:
    """Iterate over the ``Installments`` worksheet and yield typed records.

    Due dates are returned exactly as stored; interpreting them is the job of
    the status deriver, which must cope with malformed values.
    """

    yield from _iter_records(workbook, INSTALLMENTS_SHEET, deserialize_installment)


def iter_payments(workbook: Workbook) -> Iterable[PaymentRow]:
    yield from _iter_records(workbook, PAYMENTS_SHEET, deserialize_payment)


def iter_relatives(workbook: Workbook) -> Iterable[RelativeRow]:
    yield from _iter_records(workbook, RELATIVES_SHEET, deserialize_relative)


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over the ``Products`` worksheet and yield typed records."""

    yield from _iter_records(workbook, PRODUCTS_SHEET, deserialize_product)


def iter_movements(workbook: Workbook) -> Iterable[MovementRow]:
    """Stream stock movements from the ``Movements`` worksheet in sheet order."""

    yield from _iter_records(workbook, MOVEMENTS_SHEET, deserialize_movement)


def iter_orders(workbook: Workbook) -> Iterable[OrderRow]:
    yield from _iter_records(workbook, ORDERS_SHEET, deserialize_order)


def append_client(workbook: Workbook, record: ClientRow) -> None:
    """Append a client record to the ``Clients`` worksheet."""

    workbook[CLIENTS_SHEET].append(serialize_client(record))


def append_purchase(workbook: Workbook, record: PurchaseRow) -> None:
    """Append a purchase record to the ``Purchases`` worksheet.

    The installments of the purchase live on their own sheet and must be
    appended by the caller inside the same atomic unit.
    """

    workbook[PURCHASES_SHEET].append(serialize_purchase(record))


def append_installment(workbook: Workbook, record: InstallmentRow) -> None:
    workbook[INSTALLMENTS_SHEET].append(serialize_installment(record))


def append_payment(workbook: Workbook, record: PaymentRow) -> None:
    workbook[PAYMENTS_SHEET].append(serialize_payment(record))


def append_relative(workbook: Workbook, record: RelativeRow) -> None:
    workbook[RELATIVES_SHEET].append(serialize_relative(record))


def append_product(workbook: Workbook, record: ProductRow) -> None:
    """Append a product record to the ``Products`` worksheet."""

    workbook[PRODUCTS_SHEET].append(serialize_product(record))


def append_movement(workbook: Workbook, record: MovementRow) -> None:
    """Append a stock movement to the ``Movements`` worksheet."""

    workbook[MOVEMENTS_SHEET].append(serialize_movement(record))


def append_order(workbook: Workbook, record: OrderRow) -> None:
    workbook[ORDERS_SHEET].append(serialize_order(record))


def update_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str, *, field_values: Mapping[str, Any]) -> None:
    """Update selected columns of the row identified by ``key_value``.

    The function locates the row whose ``key_column`` matches ``key_value``,
    validates that each requested field exists in the header row, and then
    writes the provided values into the corresponding cells. Only the specified
    fields are modified, leaving other columns untouched.

    Args:
        workbook (Workbook): Workbook containing ``sheet_name``.
        sheet_name (str): Worksheet to modify.
        key_column (str): Header of the column holding the row key.
        key_value (str): Identifier used to locate the target row.
        field_values (Mapping[str, Any]): Mapping of column names to
            replacement values.

    Raises:
        KeyError: If the row or any referenced column cannot be found.
    """

    row_index = locate_row(workbook, sheet_name, key_column, key_value)
    if row_index is None:
        raise KeyError(f"{sheet_name} row not found: {key_value}")

    sheet = workbook[sheet_name]
    header_map = _header_map(sheet)

    for field, value in field_values.items():
        if field not in header_map:
            raise KeyError(f"Unknown {sheet_name} field: {field}")
        sheet.cell(row=row_index, column=header_map[field], value=value)


def delete_rows(workbook: Workbook, sheet_name: str, key_column: str, key_values: Iterable[str]) -> int:
    """Delete every row whose ``key_column`` value is in ``key_values``.

    Rows are removed bottom-up so earlier indices stay valid while deleting.

    Args:
        workbook (Workbook): Workbook containing ``sheet_name``.
        sheet_name (str): Worksheet to modify.
        key_column (str): Header of the column compared against ``key_values``.
        key_values (Iterable[str]): Keys whose rows should disappear.

    Returns:
        int: Number of rows removed.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    targets = set(key_values)
    if not targets:
        return 0

    sheet = workbook[sheet_name]
    header_map = _header_map(sheet)
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")
    key_col_index = header_map[key_column]

    matches = [
        row_idx
        for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2)
        if row[key_col_index - 1] in targets
    ]
    for row_idx in reversed(matches):
        sheet.delete_rows(row_idx)
    return len(matches)


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the column that stores the
            lookup key.
        key_value (str): Value to match within the key column.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_map = _header_map(sheet)
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")

    key_col_index = header_map[key_column]

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        if row[key_col_index - 1] == key_value:
            return row_idx

    return None


def _header_map(sheet) -> Dict[str, int]:
    return {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}


def assemble_client_records(
    clients: Iterable[ClientRow],
    purchases: Iterable[PurchaseRow],
    installments: Iterable[InstallmentRow],
    payments: Iterable[PaymentRow],
    relatives: Iterable[RelativeRow],
) -> List[ClientRecord]:
    """Group rows from every ledger sheet under the client that owns them.

    Installments are ordered by ``installment_number`` inside their purchase.
    Rows pointing at an unknown client or purchase are dropped with a warning
    rather than failing the whole listing.

    Returns:
        list[ClientRecord]: One record per client, in sheet order.
    """

    installments_by_purchase: Dict[str, List[InstallmentRow]] = {}
    for installment in installments:
        installments_by_purchase.setdefault(installment.purchase_id, []).append(installment)

    purchases_by_client: Dict[str, List[PurchaseRecord]] = {}
    seen_purchases = set()
    for purchase in purchases:
        seen_purchases.add(purchase.purchase_id)
        ordered = sorted(
            installments_by_purchase.get(purchase.purchase_id, []),
            key=lambda row: row.installment_number,
        )
        purchases_by_client.setdefault(purchase.client_id, []).append(
            PurchaseRecord(purchase=purchase, installments=tuple(ordered))
        )

    orphaned = set(installments_by_purchase) - seen_purchases
    if orphaned:
        log.warning("Ignoring installments of unknown purchases: %s", ", ".join(sorted(orphaned)))

    payments_by_client: Dict[str, List[PaymentRow]] = {}
    for payment in payments:
        payments_by_client.setdefault(payment.client_id, []).append(payment)

    relatives_by_client: Dict[str, List[RelativeRow]] = {}
    for relative in relatives:
        relatives_by_client.setdefault(relative.client_id, []).append(relative)

    return [
        ClientRecord(
            client=client,
            purchases=tuple(purchases_by_client.get(client.client_id, [])),
            payments=tuple(payments_by_client.get(client.client_id, [])),
            relatives=tuple(relatives_by_client.get(client.client_id, [])),
        )
        for client in clients
    ]


def to_money(raw: object) -> Decimal:
    """Normalize a stored monetary cell into a two-place :class:`Decimal`.

    Raises:
        ValueError: If the cell does not hold a finite number.
    """

    if raw is None or raw == "":
        return ZERO
    try:
        value = Decimal(str(raw)).quantize(CENT)
    except InvalidOperation as exc:
        raise ValueError(f"not a monetary value: {raw!r}") from exc
    if not value.is_finite():
        raise ValueError(f"not a monetary value: {raw!r}")
    return value


def _to_int(raw: object) -> int:
    if raw is None or raw == "":
        return 0
    try:
        return int(Decimal(str(raw)))
    except (InvalidOperation, OverflowError) as exc:
        raise ValueError(f"not a whole number: {raw!r}") from exc


def _to_text(raw: object) -> Optional[str]:
    return str(raw) if raw is not None and raw != "" else None


def serialize_client(record: ClientRow) -> list[object]:
    """Convert a client dataclass into the worksheet column ordering."""

    return [
        record.client_id,
        record.name,
        record.phone,
        record.birth_date,
        record.address,
        record.neighborhood,
        record.children_info,
        record.preferences,
        record.created_at,
    ]


def serialize_purchase(record: PurchaseRow) -> list[object]:
    """Convert a purchase dataclass into the worksheet column ordering.

    Returns:
        list[object]: ``[PurchaseID, ClientID, Item, Quantity, TotalValue,
        CreatedAt, MovementID]`` with the total kept as a :class:`Decimal`.
    """

    return [
        record.purchase_id,
        record.client_id,
        record.item,
        record.quantity,
        record.total_value,
        record.created_at,
        record.movement_id,
    ]


def serialize_installment(record: InstallmentRow) -> list[object]:
    return [
        record.installment_id,
        record.purchase_id,
        record.client_id,
        record.installment_number,
        record.due_date,
        record.value,
        record.status,
        record.paid_date,
        record.payment_method,
    ]


def serialize_payment(record: PaymentRow) -> list[object]:
    return [
        record.payment_id,
        record.client_id,
        record.amount,
        record.paid_at,
        record.payment_method,
        record.purchase_id,
        record.installment_id,
    ]


def serialize_relative(record: RelativeRow) -> list[object]:
    return [record.relative_id, record.client_id, record.name, record.birth_date, record.relationship]


def serialize_product(record: ProductRow) -> list[object]:
    """Convert a product dataclass into ``[ProductID, ProductName, Quantity, CreatedAt]``."""

    return [record.product_id, record.product_name, record.quantity, record.created_at]


def serialize_movement(record: MovementRow) -> list[object]:
    return [
        record.movement_id,
        record.product_id,
        record.movement_type,
        record.quantity,
        record.unit_price,
        record.occurred_at,
        record.notes,
        record.client_id,
        record.purchase_id,
    ]


def deserialize_client(raw_row: Sequence[object]) -> ClientRow:
    """Convert a raw worksheet row into a strongly typed client record.

    Identifier and name are coerced to ``str`` so Excel's habit of turning
    numeric-looking text into numbers does not leak into the ledger. Blank
    contact cells become ``None``.
    """

    (client_id, name, phone, birth_date, address, neighborhood,
     children_info, preferences, created_at) = raw_row
    return ClientRow(
        client_id=str(client_id),
        name=str(name) if name is not None else "",
        phone=_to_text(phone),
        birth_date=_to_text(birth_date),
        address=_to_text(address),
        neighborhood=_to_text(neighborhood),
        children_info=_to_text(children_info),
        preferences=_to_text(preferences),
        created_at=str(created_at) if created_at is not None else "",
    )


def deserialize_purchase(raw_row: Sequence[object]) -> PurchaseRow:
    """Convert a raw worksheet row into a strongly typed purchase record."""

    purchase_id, client_id, item, quantity, total_value, created_at, movement_id = raw_row
    return PurchaseRow(
        purchase_id=str(purchase_id),
        client_id=str(client_id),
        item=str(item) if item is not None else "",
        quantity=_to_int(quantity),
        total_value=to_money(total_value),
        created_at=str(created_at) if created_at is not None else "",
        movement_id=_to_text(movement_id),
    )


def deserialize_installment(raw_row: Sequence[object]) -> InstallmentRow:
    """Convert a raw worksheet row into a strongly typed installment record.

    ``DueDate`` is kept as text even when Excel hands back a ``datetime``; the
    ISO form is what the status deriver parses.
    """

    (installment_id, purchase_id, client_id, number, due_date, value,
     status, paid_date, payment_method) = raw_row
    if hasattr(due_date, "isoformat"):
        due_date = due_date.isoformat()
    return InstallmentRow(
        installment_id=str(installment_id),
        purchase_id=str(purchase_id),
        client_id=str(client_id),
        installment_number=_to_int(number),
        due_date=str(due_date) if due_date is not None else "",
        value=to_money(value),
        status=str(status) if status is not None else InstallmentStatus.PENDING.value,
        paid_date=_to_text(paid_date),
        payment_method=_to_text(payment_method),
    )


def deserialize_payment(raw_row: Sequence[object]) -> PaymentRow:
    payment_id, client_id, amount, paid_at, payment_method, purchase_id, installment_id = raw_row
    return PaymentRow(
        payment_id=str(payment_id),
        client_id=str(client_id),
        amount=to_money(amount),
        paid_at=str(paid_at) if paid_at is not None else "",
        payment_method=_to_text(payment_method),
        purchase_id=_to_text(purchase_id),
        installment_id=_to_text(installment_id),
    )


def deserialize_relative(raw_row: Sequence[object]) -> RelativeRow:
    relative_id, client_id, name, birth_date, relationship = raw_row
    return RelativeRow(
        relative_id=str(relative_id),
        client_id=str(client_id),
        name=str(name) if name is not None else "",
        birth_date=_to_text(birth_date),
        relationship=_to_text(relationship),
    )


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw worksheet row into a strongly typed product record.

    Quantities are integers and may be negative; the DAL never clamps them.
    """

    product_id, product_name, quantity, created_at = raw_row
    return ProductRow(
        product_id=str(product_id),
        product_name=str(product_name) if product_name is not None else "",
        quantity=_to_int(quantity),
        created_at=str(created_at) if created_at is not None else "",
    )


def deserialize_movement(raw_row: Sequence[object]) -> MovementRow:
    """Convert a raw worksheet row into a strongly typed movement record."""

    (movement_id, product_id, movement_type, quantity, unit_price,
     occurred_at, notes, client_id, purchase_id) = raw_row
    return MovementRow(
        movement_id=str(movement_id),
        product_id=str(product_id),
        movement_type=str(movement_type) if movement_type is not None else "",
        quantity=_to_int(quantity),
        unit_price=to_money(unit_price),
        occurred_at=str(occurred_at) if occurred_at is not None else "",
        notes=_to_text(notes),
        client_id=_to_text(client_id),
        purchase_id=_to_text(purchase_id),
    )


def serialize_order(record: OrderRow) -> list[object]:
    return [
        record.order_id,
        record.customer_name,
        record.product_name,
        record.status,
        record.created_at,
        record.completed_at,
    ]


def deserialize_order(raw_row: Sequence[object]) -> OrderRow:
    """Convert a raw worksheet row into a strongly typed order record."""

    order_id, customer_name, product_name, status, created_at, completed_at = raw_row
    return OrderRow(
        order_id=str(order_id),
        customer_name=str(customer_name) if customer_name is not None else "",
        product_name=str(product_name) if product_name is not None else "",
        status=str(status) if status is not None else OrderStatus.PENDING.value,
        created_at=str(created_at) if created_at is not None else "",
        completed_at=_to_text(completed_at),
    )
