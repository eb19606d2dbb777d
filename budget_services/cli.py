"""Command-line reconcile of a budget JSON document.

Usage:
    reconcile-budget budget.json
    reconcile-budget budget.json --filename "Estimate-$48,250.00.pdf"
    reconcile-budget budget.json --o-and-p 0.25 --tax-rate 0.0825
    reconcile-budget budget.json --claim-id CLM-0042 --verbose
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from decimal import Decimal
from pathlib import Path

from budget_config import get_reconciliation_defaults
from budget_kernel.domain.budget import parse_fraction
from budget_kernel.exceptions import BudgetKernelError
from budget_kernel.logging_config import LogContext, configure_logging, get_logger
from budget_services.budget_document import parse_budget_document, render_budget_json
from budget_services.definitive_total import resolve_definitive_total
from budget_services.reconciliation_service import BudgetReconciliationService

logger = get_logger("cli")


def _fraction(value: str) -> Decimal:
    try:
        return parse_fraction(value, "rate")
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile a claim budget document to its definitive total.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("document", type=Path, help="Path to the budget JSON document.")
    parser.add_argument(
        "--filename",
        default=None,
        help="Estimate filename; a dollar amount in it overrides the document total.",
    )
    parser.add_argument("--o-and-p", type=_fraction, default=None, help="O&P percent as a fraction.")
    parser.add_argument("--tax-rate", type=_fraction, default=None, help="Material tax rate as a fraction.")
    parser.add_argument("--config", type=Path, default=None, help="Override defaults YAML file.")
    parser.add_argument("--claim-id", default=None, help="Claim id stamped on every log record.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    with LogContext.bind(claim_id=args.claim_id, budget_id=args.document.stem):
        return _run(args)


def _run(args: argparse.Namespace) -> int:
    try:
        defaults = get_reconciliation_defaults(args.config)
        payload = json.loads(args.document.read_text(), parse_float=Decimal)
        document = parse_budget_document(payload, defaults)
    except (OSError, ValueError, KeyError, BudgetKernelError) as e:
        logger.error("budget_document_load_failed", exc_info=e, extra={
            "document": str(args.document),
        })
        return 1

    if args.filename:
        rcv = document.definitive_total.amount if document.definitive_total else None
        total = resolve_definitive_total(args.filename, rcv, document.currency)
        if total is not None:
            document = document.with_definitive_total(total)
    if args.o_and_p is not None:
        document = replace(document, o_and_p_percent=args.o_and_p)
    if args.tax_rate is not None:
        document = replace(document, tax_rate=args.tax_rate)

    try:
        outcome = BudgetReconciliationService().reconcile_document(document)
        result = outcome.unwrap()
    except (ValueError, BudgetKernelError) as e:
        logger.error("budget_reconcile_failed", exc_info=e, extra={
            "document": str(args.document),
        })
        return 1

    json.dump(render_budget_json(document, result), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
