"""
Command line — quote the fees for a cart document.

    python -m cartfees quote --cart cart.json --method intuit_payments_credit_card
    python -m cartfees quote --cart cart.json --rules rules.json --customer me.json --json
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from kungfu import Error, Ok

from cartfees._log import configure_logging
from cartfees._wire import CartIn, CustomerIn, FeeCycleOut, read_model
from cartfees.config import get_settings
from cartfees.engine import EnginePolicy, FeeEngine
from cartfees.errors import FeeError
from cartfees.rules import default_rules, load_rules


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cartfees", description="Cart fee computation")
    commands = parser.add_subparsers(dest="command", required=True)

    quote = commands.add_parser("quote", help="compute the fee map for a cart")
    quote.add_argument("--cart", required=True, help="cart JSON document")
    quote.add_argument("--rules", help="rules JSON document (default: settings, then shipped tables)")
    quote.add_argument("--customer", help="customer JSON document (default: guest)")
    quote.add_argument("--method", help="payment method id")
    quote.add_argument("--json", action="store_true", help="print the result as JSON")
    return parser


def _print_table(out: FeeCycleOut) -> None:
    for line in out.lines:
        print(f"  {line['product_id']:<12} x{line['quantity']:<4} {line['unit_price']:>10} {line['subtotal']:>10}")
    if not out.fees:
        print("  (no fees)")
    for key, fee in out.fees.items():
        print(f"  {fee['name']:<36} {fee['amount']:>10} {fee['currency']}  [{key}]")


def quote(args: argparse.Namespace) -> int:
    settings = get_settings()
    try:
        cart = read_model(CartIn, args.cart).to_domain()
        rules_path = args.rules or settings.rules_path
        registry = (
            load_rules(rules_path, surcharge_taxable=settings.surcharge_taxable)
            if rules_path
            else default_rules(cart.currency)
        )
        customer = read_model(CustomerIn, args.customer).to_domain(cart.currency) if args.customer else None
    except FeeError as e:
        print(f"error: {e.code}: {e.message}", file=sys.stderr)
        return 1

    engine = FeeEngine(registry, EnginePolicy.from_settings(settings), session="cli")
    result = engine.invoke_sync(cart, customer, args.method)
    out = FeeCycleOut.from_domain(result)

    if args.json:
        print(out.model_dump_json(indent=2))
    else:
        _print_table(out)

    match result:
        case Ok(_):
            return 0
        case Error(e):
            print(f"error: {e.kind.name}: {e.message}", file=sys.stderr)
            return 1


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, json=settings.log_json, file=sys.stderr)
    match args.command:
        case "quote":
            return quote(args)
    return 2


if __name__ == "__main__":
    sys.exit(main())
