"""Command-line entry points for the Crediário ledger.

All orchestration in this module is limited to argparse wiring and translating
command-line arguments into calls on the business layer. Keeping the CLI thin
ensures the same parser configuration can be reused by tests, scripts, or any
alternative front-end that wants to expose the package capabilities.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import balance, core_logic, data_manager, log, reversal, sweeper
from .constants import MovementType, PaymentMethod
from .errors import (
    GatewayTimeoutError,
    InsufficientStockError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from .scheduler import SplitSpec


EXIT_CODES = {
    ValidationError: 2,
    NotFoundError: 4,
    InvalidStateError: 5,
    InsufficientStockError: 6,
    GatewayTimeoutError: 7,
}

_CLIENT_OPTIONS = ("phone", "birth_date", "address", "neighborhood", "children_info", "preferences")


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]
    writes: bool = True


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="crediario-cli",
        description="Command-line tools for the Crediário client ledger workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as purchases and payments."""
    specs = {
        "add-client": register_add_client_command(subparsers),
        "edit-client": register_edit_client_command(subparsers),
        "delete-client": register_delete_client_command(subparsers),
        "add-relative": register_add_relative_command(subparsers),
        "purchase": register_purchase_command(subparsers),
        "debt": register_debt_command(subparsers),
        "payment": register_payment_command(subparsers),
        "pay-installment": register_pay_installment_command(subparsers),
        "cancel-installment": register_cancel_installment_command(subparsers),
        "stock-movement": register_stock_movement_command(subparsers),
        "reverse-movement": register_reverse_movement_command(subparsers),
        "sweep": register_sweep_command(subparsers),
        "order": register_order_command(subparsers),
        "complete-order": register_complete_order_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports."""
    specs = {
        "clients": register_clients_command(subparsers),
        "client": register_client_command(subparsers),
        "stock": register_stock_command(subparsers),
        "debtors": register_debtors_command(subparsers),
        "revenue": register_revenue_command(subparsers),
        "orders": register_orders_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_client_detail_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--phone", default=None)
    parser.add_argument("--birth-date", dest="birth_date", default=None, help="ISO date, e.g. 1990-05-17.")
    parser.add_argument("--address", default=None)
    parser.add_argument("--neighborhood", default=None)
    parser.add_argument("--children-info", dest="children_info", default=None)
    parser.add_argument("--preferences", default=None)


def register_add_client_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-client``."""
    name = "add-client"
    help_text = "Register a new client."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        _add_client_detail_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_client)


def register_edit_client_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``edit-client``."""
    name = "edit-client"
    help_text = "Update a client's name or contact details."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.add_argument("--name", default=None)
        _add_client_detail_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_edit_client)


def register_delete_client_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-client``."""
    name = "delete-client"
    help_text = "Delete a client with their purchases, payments and relatives."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_client)


def register_add_relative_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-relative``."""
    name = "add-relative"
    help_text = "Attach a relative to a client."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.add_argument("--name", required=True)
        parser.add_argument("--birth-date", dest="birth_date", default=None)
        parser.add_argument("--relationship", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_relative)


def register_purchase_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``purchase``."""
    name = "purchase"
    help_text = "Register a purchase, optionally split into installments."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.add_argument("--item", required=True)
        parser.add_argument("--amount", required=True)
        parser.add_argument("--installments", type=int, default=None, help="Number of installments (1-6).")
        parser.add_argument("--interval-days", dest="interval_days", type=int, default=None)
        parser.add_argument("--first-due-date", dest="first_due_date", default=None)
        parser.add_argument(
            "--quantity",
            type=int,
            default=None,
            help="Take this many units of the product named by --item from stock.",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_purchase)


def register_debt_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``debt``."""
    name = "debt"
    help_text = "Register a debt for products taken from stock."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.add_argument("--product", required=True)
        parser.add_argument("--quantity", type=int, required=True)
        parser.add_argument("--unit-price", dest="unit_price", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_debt)


def register_payment_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``payment``."""
    name = "payment"
    help_text = "Record a payment against a client's balance."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.add_argument("--amount", required=True)
        parser.add_argument(
            "--method",
            choices=[member.value for member in PaymentMethod],
            default=PaymentMethod.NOT_SELECTED.value,
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_payment)


def register_pay_installment_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``pay-installment``."""
    name = "pay-installment"
    help_text = "Settle one installment of a purchase."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.add_argument("--purchase-id", required=True)
        parser.add_argument("--installment-id", required=True)
        parser.add_argument(
            "--method",
            choices=[member.value for member in PaymentMethod],
            required=True,
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_pay_installment)


def register_cancel_installment_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``cancel-installment``."""
    name = "cancel-installment"
    help_text = "Cancel an unpaid installment."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.add_argument("--purchase-id", required=True)
        parser.add_argument("--installment-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_cancel_installment)


def register_stock_movement_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``stock-movement``."""
    name = "stock-movement"
    help_text = "Record a stock purchase or a counter sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product", required=True)
        parser.add_argument(
            "--type",
            dest="movement_type",
            choices=[member.value for member in MovementType],
            required=True,
        )
        parser.add_argument("--quantity", type=int, required=True)
        parser.add_argument("--unit-price", dest="unit_price", required=True)
        parser.add_argument("--notes", dest="notes", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_stock_movement)


def register_reverse_movement_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``reverse-movement``."""
    name = "reverse-movement"
    help_text = "Undo a stock movement."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--movement-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_reverse_movement)


def register_sweep_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sweep``."""
    name = "sweep"
    help_text = "Refresh stored installment status labels."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sweep)


def register_order_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``order``."""
    name = "order"
    help_text = "Note a product a customer is waiting for."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer", required=True)
        parser.add_argument("--product", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_order)


def register_complete_order_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``complete-order``."""
    name = "complete-order"
    help_text = "Mark a pending order as fulfilled."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--order-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_complete_order)


def register_clients_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``clients``."""
    name = "clients"
    help_text = "List clients with their balances."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_clients_report, writes=False)


def register_client_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``client``."""
    name = "client"
    help_text = "Show one client's purchases and installments."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--client-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_client_report, writes=False)


def register_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``stock``."""
    name = "stock"
    help_text = "Display current stock levels."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_stock_report, writes=False)


def register_debtors_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``debtors``."""
    name = "debtors"
    help_text = "Display outstanding balances, largest first."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_debtors_report, writes=False)


def register_revenue_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``revenue``."""
    name = "revenue"
    help_text = "Display money received and open installments per month."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_revenue_report, writes=False)


def register_orders_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``orders``."""
    name = "orders"
    help_text = "List pending orders, oldest first."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_orders_report, writes=False)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    return core_logic.load_runtime_context(target)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def parse_money(raw: str, label: str = "Amount") -> Decimal:
    """Parse a monetary argument, rejecting text that is not a number."""
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ValidationError(f"{label} is not a number: {raw!r}") from exc
    return value


def parse_date(raw: Optional[str], label: str = "Date") -> Optional[date]:
    if raw is None:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"{label} must be an ISO date (YYYY-MM-DD): {raw!r}") from exc


def translate_client_details(args: argparse.Namespace) -> Mapping[str, Any]:
    """Collect the optional client detail arguments that were supplied."""
    details = {
        option: getattr(args, option, None)
        for option in _CLIENT_OPTIONS
        if getattr(args, option, None) is not None
    }
    if "birth_date" in details:
        details["birth_date"] = parse_date(details["birth_date"], "Birth date").isoformat()
    return details


def translate_purchase(args: argparse.Namespace, default_interval_days: int) -> Mapping[str, Any]:
    """Translate CLI args into a purchase request."""
    first_due = parse_date(args.first_due_date, "First due date")
    split = None
    if args.installments is not None or args.interval_days is not None or first_due is not None:
        split = SplitSpec(
            count=args.installments if args.installments is not None else 1,
            interval_days=args.interval_days if args.interval_days is not None else default_interval_days,
            first_due_date=first_due,
        )
    return {
        "client_id": args.client_id,
        "item": args.item,
        "amount": parse_money(args.amount),
        "split": split,
        "quantity": args.quantity,
    }


def translate_debt(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into a debt request."""
    return {
        "client_id": args.client_id,
        "product_name": args.product,
        "quantity": args.quantity,
        "unit_price": parse_money(args.unit_price, "Unit price"),
    }


def translate_stock_movement(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into a stock movement request."""
    return {
        "product_name": args.product,
        "movement_type": MovementType(args.movement_type),
        "quantity": args.quantity,
        "unit_price": parse_money(args.unit_price, "Unit price"),
        "notes": args.notes,
    }


def run_add_client(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-client workflow in the BLL."""
    client = core_logic.register_client(context, args.name, **translate_client_details(args))
    print(client.client_id)
    return 0


def run_edit_client(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    changes = dict(translate_client_details(args))
    if args.name is not None:
        changes["name"] = args.name
    core_logic.edit_client(context, args.client_id, **changes)
    return 0


def run_delete_client(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_client(context, args.client_id)
    return 0


def run_add_relative(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    relative = core_logic.add_relative(
        context,
        args.client_id,
        args.name,
        birth_date=parse_date(args.birth_date, "Birth date"),
        relationship=args.relationship,
    )
    print(relative.relative_id)
    return 0


def run_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the purchase workflow via the BLL."""
    payload = translate_purchase(args, context.settings.default_interval_days)
    record = core_logic.register_purchase(context, **payload)
    _print_purchase(record)
    return 0


def run_debt(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the debt workflow via the BLL."""
    record = core_logic.register_debt(context, **translate_debt(args))
    _print_purchase(record)
    return 0


def run_payment(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the free-form payment workflow via the BLL."""
    payment = core_logic.register_payment(
        context,
        args.client_id,
        parse_money(args.amount),
        PaymentMethod(args.method),
    )
    print(payment.payment_id)
    return 0


def run_pay_installment(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the installment payment workflow via the BLL."""
    installment = core_logic.pay_installment(
        context,
        args.client_id,
        args.purchase_id,
        args.installment_id,
        PaymentMethod(args.method),
    )
    print(f"{installment.installment_id}\t{installment.status}\t{installment.value}")
    return 0


def run_cancel_installment(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    reversal.cancel_installment(context, args.client_id, args.purchase_id, args.installment_id)
    return 0


def run_stock_movement(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    movement = core_logic.record_stock_movement(context, **translate_stock_movement(args))
    print(movement.movement_id)
    return 0


def run_reverse_movement(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    reversal.reverse_stock_movement(context, args.product_id, args.movement_id)
    return 0


def run_sweep(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Refresh stored status labels once."""
    report = sweeper.run_status_sweep(context)
    print(f"updated\t{report.updated}\nskipped\t{report.skipped}")
    return 0


def run_order(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    order = core_logic.add_order(context, args.customer, args.product)
    print(order.order_id)
    return 0


def run_complete_order(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.complete_order(context, args.order_id)
    return 0


def run_clients_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for record in core_logic.list_clients(context):
        summary = balance.aggregate(record)
        print(f"{record.client.client_id}\t{record.client.name}\t{summary.balance}")
    return 0


def run_client_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print one client's ledger: summary, purchases and installments."""
    record = core_logic.get_client(context, args.client_id)
    summary = balance.aggregate(record)
    print(f"{record.client.client_id}\t{record.client.name}")
    print(f"purchased\t{summary.total_purchased}\npaid\t{summary.total_paid}\nbalance\t{summary.balance}")
    for purchase in record.purchases:
        _print_purchase(purchase)
    return 0


def run_stock_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the stock reporting workflow."""
    for product in core_logic.list_products(context):
        print(f"{product.product_id}\t{product.product_name}\t{product.quantity}")
    return 0


def run_debtors_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the outstanding balances reporting workflow."""
    clients = core_logic.list_clients(context)
    for line in balance.debtors_report(clients):
        if line.summary.balance > 0:
            print(f"{line.client_id}\t{line.name}\t{line.summary.balance}")
    print(f"total\t{balance.total_outstanding(clients, datetime.now(UTC))}")
    return 0


def run_revenue_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the monthly revenue reporting workflow."""
    clients = core_logic.list_clients(context)
    for month in balance.monthly_revenue(clients, datetime.now(UTC)):
        open_total = sum((entry.value for entry in month.open_installments), Decimal("0.00"))
        print(f"{month.month}\t{month.paid}\t{len(month.open_installments)}\t{open_total}")
    return 0


def run_orders_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for order in core_logic.list_pending_orders(context):
        print(f"{order.order_id}\t{order.customer_name}\t{order.product_name}\t{order.created_at}")
    return 0


def _print_purchase(record: data_manager.PurchaseRecord) -> None:
    purchase = record.purchase
    print(f"{purchase.purchase_id}\t{purchase.item}\t{purchase.total_value}")
    for installment in record.installments:
        print(
            f"  {installment.installment_id}\t{installment.installment_number}\t"
            f"{installment.due_date}\t{installment.value}\t{installment.status}"
        )


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, LedgerError):
        log.error("%s", error.describe())
        print(error.describe(), file=sys.stderr)
        for error_type, code in EXIT_CODES.items():
            if isinstance(error, error_type):
                return code
        return 1
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        print(f"missing-file: {error}", file=sys.stderr)
        return 3
    log.error("%s", error)
    print(f"error: {error}", file=sys.stderr)
    return 1


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        spec = command_table[args.command]
        if spec.writes:
            core_logic.ensure_schema_version(context)
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0 and spec.writes:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)


if __name__ == "__main__":
    sys.exit(main())
