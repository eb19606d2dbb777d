"""
budget_services.budget_document -- Adapter for the upstream budget JSON document.

Responsibility:
    Parse the budget document produced by the extraction collaborator
    (``definitive`` / ``totals`` / ``categories`` / ``footnotes``) into a
    typed BudgetDocument, turn it into a ReconcileInput, and render a
    ReconcileResult back into the same JSON shape for display and storage.

Architecture position:
    Services -- boundary adapter between untyped JSON and the kernel's
    value objects.  No I/O: callers load and dump the JSON themselves.

Invariants enforced:
    - Amounts are converted to Decimal through ``str`` so JSON floats never
      carry binary rounding into Money.
    - Missing category amounts count as zero, as upstream does; negative
      amounts are rejected.
    - Without ``taxRate`` the rate is derived from ``definitive.materialTax``
      over ``totals.materialsScaled`` when both are stated, else the default.
    - A document without a definitive total never reaches the engine
      (DefinitiveTotalMissingError).
    - Rendered currency fields are rounded to 2 places and the scaling
      factor to 4.

Failure modes:
    - BudgetDocumentError on a non-mapping payload, a missing or non-list
      ``categories`` field, a non-numeric or negative amount, or a rate
      outside [0, 1).
    - DefinitiveTotalMissingError from ``to_reconcile_input`` when the
      total is unresolved.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any

from budget_config.schema import ReconciliationDefaults
from budget_kernel.domain.budget import (
    RESIDUAL_NOTE,
    CategoryPre,
    ReconcileInput,
    ReconcileResult,
    parse_fraction,
)
from budget_kernel.domain.values import Currency, Money
from budget_kernel.exceptions import BudgetDocumentError, DefinitiveTotalMissingError
from budget_services.definitive_total import DefinitiveSource, DefinitiveTotal, derive_tax_rate

ROUNDING_DISCLOSURE_PREFIX = "Minor rounding adjustment"


def _decimal(value: Any, field: str, *, default: Decimal | None = None) -> Decimal | None:
    if value is None:
        return default
    if isinstance(value, bool):
        raise BudgetDocumentError(field, f"expected a number, got {value!r}")
    try:
        number = Decimal(str(value))
    except InvalidOperation as e:
        raise BudgetDocumentError(field, f"expected a number, got {value!r}") from e
    if not number.is_finite():
        raise BudgetDocumentError(field, f"expected a finite number, got {value!r}")
    return number


def _amount(value: Any, field: str) -> Decimal:
    amount = _decimal(value, field, default=Decimal("0"))
    if amount < 0:
        raise BudgetDocumentError(field, f"must not be negative, got {value!r}")
    return amount


def _rate(value: Any, field: str) -> Decimal:
    try:
        return parse_fraction(value, field)
    except ValueError as e:
        raise BudgetDocumentError(field, str(e)) from e


def _source(value: Any) -> DefinitiveSource | None:
    if not isinstance(value, str):
        return None
    for source in DefinitiveSource:
        if source.value.lower() == value.strip().lower():
            return source
    return None


@dataclass(frozen=True)
class BudgetDocument:
    """Typed view of an upstream budget document."""

    currency: Currency
    definitive_total: Money | None
    source: DefinitiveSource | None
    o_and_p_percent: Decimal
    tax_rate: Decimal
    categories: tuple[CategoryPre, ...]
    footnotes: tuple[str, ...] = ()
    missing_total_note: str = "Definitive total not found; user input required."
    residual_note: str = RESIDUAL_NOTE

    @property
    def has_definitive_total(self) -> bool:
        return self.definitive_total is not None

    def with_definitive_total(self, total: DefinitiveTotal) -> BudgetDocument:
        """Copy with a total resolved later (filename, RCV or user input)."""
        return replace(
            self,
            definitive_total=total.amount,
            source=total.source,
            footnotes=tuple(n for n in self.footnotes if n != self.missing_total_note),
        )

    def to_reconcile_input(self) -> ReconcileInput:
        """Build the engine request for this document."""
        if self.definitive_total is None:
            raise DefinitiveTotalMissingError(self.missing_total_note)
        return ReconcileInput(
            definitive_total=self.definitive_total,
            categories_pre=self.categories,
            o_and_p_percent=self.o_and_p_percent,
            tax_rate=self.tax_rate,
        )


def parse_budget_document(
    data: Mapping[str, Any],
    defaults: ReconciliationDefaults | None = None,
) -> BudgetDocument:
    """
    Parse an upstream budget document.

    Args:
        data: Decoded JSON document.
        defaults: Source of the O&P percent, tax rate and currency used when
            the document does not state them.

    Returns:
        BudgetDocument.

    Raises:
        BudgetDocumentError: if the document is structurally invalid.
    """
    defaults = defaults or ReconciliationDefaults()
    if not isinstance(data, Mapping):
        raise BudgetDocumentError("$", "document must be a JSON object")

    definitive = data.get("definitive") or {}
    if not isinstance(definitive, Mapping):
        raise BudgetDocumentError("definitive", "must be an object")

    raw_categories = data.get("categories")
    if not isinstance(raw_categories, list):
        raise BudgetDocumentError("categories", "must be a list")

    currency = Currency(defaults.currency)

    total = _decimal(definitive.get("totalProjectBudget"), "definitive.totalProjectBudget")
    o_and_p_percent = _rate(
        _decimal(
            definitive.get("oAndPPercent"), "definitive.oAndPPercent",
            default=defaults.o_and_p_percent,
        ),
        "definitive.oAndPPercent",
    )
    if definitive.get("taxRate") is not None:
        tax_rate = _rate(_decimal(definitive["taxRate"], "definitive.taxRate"), "definitive.taxRate")
    else:
        totals = data.get("totals") or {}
        if not isinstance(totals, Mapping):
            raise BudgetDocumentError("totals", "must be an object")
        # A previously rendered document states its own tax and material subtotal
        tax_rate = _rate(
            derive_tax_rate(
                _decimal(definitive.get("materialTax"), "definitive.materialTax"),
                _decimal(totals.get("materialsScaled"), "totals.materialsScaled"),
                default=defaults.tax_rate,
            ),
            "definitive.materialTax",
        )

    categories = []
    for position, raw in enumerate(raw_categories, start=1):
        if not isinstance(raw, Mapping):
            raise BudgetDocumentError(f"categories[{position - 1}]", "must be an object")
        prefix = f"categories[{position - 1}]"
        categories.append(
            CategoryPre(
                category_id=raw.get("id", position),
                category=str(raw.get("category") or f"CATEGORY {position}"),
                material_pre=Money.of(
                    _amount(raw.get("materialPre"), f"{prefix}.materialPre"),
                    currency,
                ),
                labor_pre=Money.of(
                    _amount(raw.get("laborPre"), f"{prefix}.laborPre"),
                    currency,
                ),
                description_summary=raw.get("descriptionSummary"),
            )
        )

    raw_footnotes = data.get("footnotes") or []
    if not isinstance(raw_footnotes, list):
        raise BudgetDocumentError("footnotes", "must be a list")
    footnotes = tuple(str(n) for n in raw_footnotes)

    definitive_total = Money.of(total, currency) if total is not None else None
    if definitive_total is None and defaults.missing_total_note not in footnotes:
        footnotes = footnotes + (defaults.missing_total_note,)

    return BudgetDocument(
        currency=currency,
        definitive_total=definitive_total,
        source=_source(definitive.get("source")),
        o_and_p_percent=o_and_p_percent,
        tax_rate=tax_rate,
        categories=tuple(categories),
        footnotes=footnotes,
        missing_total_note=defaults.missing_total_note,
        residual_note=defaults.residual_note,
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _num(money: Money) -> float:
    return float(money.round().amount)


def format_amount(money: Money) -> str:
    """Human-readable amount, e.g. ``-$0.01`` or ``$1,234.50``."""
    rounded = money.round().amount
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.{money.currency.decimal_places}f}"


def rounding_disclosure(result: ReconcileResult) -> str | None:
    """Footnote disclosing the residual adjustment, if one was applied."""
    adjustment = result.residual_adjustment
    if adjustment is None:
        return None
    return (
        f"{ROUNDING_DISCLOSURE_PREFIX} of {format_amount(adjustment.amount)} applied to "
        f"{adjustment.applied_to_category} - Materials to reconcile grand total."
    )


def render_budget_json(document: BudgetDocument, result: ReconcileResult) -> dict[str, Any]:
    """
    Render a reconciled budget in the upstream document shape.

    Upstream footnotes are kept, stale rounding disclosures are replaced by
    the one for this result.
    """
    footnotes = [
        n for n in document.footnotes
        if not n.startswith(ROUNDING_DISCLOSURE_PREFIX)
    ]
    disclosure = rounding_disclosure(result)
    if disclosure is not None:
        footnotes.append(disclosure)

    adjustment = result.residual_adjustment
    return {
        "definitive": {
            "totalProjectBudget": _num(result.definitive_total),
            "source": document.source.value if document.source else None,
            "oAndPPercent": float(document.o_and_p_percent),
            "oAndP": _num(result.o_and_p),
            "taxRate": float(document.tax_rate),
            "scalingFactor": float(result.scaling_factor),
            "materialTax": _num(result.material_tax),
            "residualAdjustment": None if adjustment is None else {
                "amount": _num(adjustment.amount),
                "appliedToCategory": adjustment.applied_to_category,
                "note": document.residual_note,
            },
        },
        "totals": {
            "materialsPre": _num(result.materials_pre),
            "laborPre": _num(result.labor_pre),
            "linesPre": _num(result.lines_pre),
            "materialsScaled": _num(result.materials_scaled),
            "laborScaled": _num(result.labor_scaled),
            "subtotalLinesScaled": _num(result.subtotal_lines_scaled),
            "grandTotal": _num(result.grand_total),
        },
        "categories": [
            {
                "id": c.category_id,
                "category": c.category,
                "descriptionSummary": c.description_summary or "",
                "materialPre": _num(c.material_pre),
                "laborPre": _num(c.labor_pre),
                "materialScaled": _num(c.material_scaled),
                "laborScaled": _num(c.labor_scaled),
                "totalScaled": _num(c.total_scaled),
            }
            for c in result.categories
        ],
        "footnotes": footnotes,
    }
