"""
budget_services.definitive_total -- Resolve the authoritative budget total and tax rate.

Responsibility:
    Apply the estimate's hierarchy of truth for the definitive total: a
    dollar amount written into the estimate's filename wins over the RCV
    total printed on the summary page, which wins over nothing.  Derive the
    material sales tax rate from the estimate's own figures when it states
    them.

Architecture position:
    Services -- pure helpers feeding ReconcileInput construction.
    Imports only budget_kernel.

Invariants enforced:
    - A resolved total is always positive; zero or negative candidates are
      treated as absent.
    - When both filename and RCV amounts exist and differ, the filename
      amount is used.

Failure modes:
    - None raised; an unresolvable total is returned as None so the caller
      can surface "user input required" instead of invoking the engine.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from budget_kernel.domain.budget import DEFAULT_TAX_RATE
from budget_kernel.domain.values import Currency, Money
from budget_kernel.logging_config import get_logger

logger = get_logger("services.definitive_total")

# "$123,456.78", "$ 4500", "$12,000.5"
_FILENAME_AMOUNT = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})+|\d+)(\.\d{1,2})?")


class DefinitiveSource(str, Enum):
    """Where the definitive total came from."""

    FILENAME = "filename"
    RCV = "RCV"


@dataclass(frozen=True)
class DefinitiveTotal:
    """A resolved definitive total and its source."""

    amount: Money
    source: DefinitiveSource


def parse_filename_amount(filename: str | None) -> Decimal | None:
    """Extract the first dollar amount embedded in an estimate filename."""
    if not filename:
        return None
    match = _FILENAME_AMOUNT.search(filename)
    if match is None:
        return None
    whole, cents = match.groups()
    return Decimal(whole.replace(",", "") + (cents or ""))


def _positive(value: Decimal | str | int | None) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def resolve_definitive_total(
    filename: str | None,
    rcv_total: Decimal | str | int | None,
    currency: str | Currency = "USD",
) -> DefinitiveTotal | None:
    """
    Resolve the definitive total from the filename amount and the RCV total.

    Returns:
        DefinitiveTotal, or None when neither source yields a positive amount.
    """
    from_filename = _positive(parse_filename_amount(filename))
    from_rcv = _positive(rcv_total)

    if from_filename is not None:
        if from_rcv is not None and from_rcv != from_filename:
            logger.info("definitive_total_sources_differ", extra={
                "filename_amount": str(from_filename),
                "rcv_total": str(from_rcv),
                "selected": DefinitiveSource.FILENAME.value,
            })
        return DefinitiveTotal(Money.of(from_filename, currency), DefinitiveSource.FILENAME)
    if from_rcv is not None:
        return DefinitiveTotal(Money.of(from_rcv, currency), DefinitiveSource.RCV)

    logger.warning("definitive_total_unresolved", extra={"estimate_filename": filename})
    return None


def derive_tax_rate(
    material_tax_total: Decimal | str | int | None,
    materials_subtotal: Decimal | str | int | None,
    default: Decimal = DEFAULT_TAX_RATE,
) -> Decimal:
    """Material tax rate stated by the estimate, or ``default`` when it is not."""
    tax = _positive(material_tax_total)
    subtotal = _positive(materials_subtotal)
    if tax is None or subtotal is None:
        return default
    return tax / subtotal
