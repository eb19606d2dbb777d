"""
Module: budget_engines.reconciliation
Responsibility:
    Reconcile a set of unscaled trade estimates to a single definitive
    total: compute overhead & profit, solve the uniform scaling factor,
    scale each category's material and labor, apply material sales tax and
    close any cent-level residual on one category.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import budget_kernel (domain values, exceptions, logging).

Invariants enforced:
    - Every currency figure is rounded to currency precision (ROUND_HALF_UP)
      at the point it is computed; the scaling factor is carried at full
      Decimal precision and rounded to 4 places only when reported.
    - Material tax is computed on the scaled material subtotal.
    - The residual goes to the category with the largest scaled material,
      first in input order on ties.
    - Purity: inputs are never mutated; no state survives a call.

Failure modes:
    - InvalidInputError (returned inside a failed ReconcileOutcome) when the
      definitive total is not positive or the pre-scaling lines sum to zero.
    - The residual correction runs exactly once. Moving the residual onto a
      category's material also moves material tax, so the recomputed grand
      total may still differ from the target by about delta x tax_rate.
      That gap is reported through ``ReconcileResult.reconciliation_gap``
      and is not an error.

Usage:
    from budget_engines.reconciliation import BudgetReconciler
    from budget_kernel.domain import CategoryPre, Money, ReconcileInput

    outcome = BudgetReconciler().reconcile(
        ReconcileInput(
            definitive_total=Money.of("5000.00"),
            categories_pre=(
                CategoryPre.of(1, "DRYWALL", "1000", "2000"),
                CategoryPre.of(2, "PAINTING", "500", "500"),
            ),
        )
    )
    if outcome.is_ok:
        print(outcome.result.grand_total)
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from budget_engines.tracer import traced_engine
from budget_kernel.domain.budget import (
    RESIDUAL_NOTE,
    CategoryPre,
    CategoryScaled,
    ReconcileInput,
    ReconcileOutcome,
    ReconcileResult,
    ResidualAdjustment,
)
from budget_kernel.domain.values import Currency, Money
from budget_kernel.exceptions import InvalidInputError
from budget_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

SCALING_FACTOR_QUANTUM = Decimal("0.0001")


@dataclass(frozen=True)
class PreScalingBases:
    """Pre-scaling sums across all categories."""

    material: Money
    labor: Money

    @property
    def lines(self) -> Money:
        return self.material + self.labor


@dataclass(frozen=True)
class LineTotals:
    """Subtotal, material tax and grand total for one set of scaled categories."""

    subtotal_lines_scaled: Money
    material_tax: Money
    grand_total: Money


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


def compute_bases(categories: Sequence[CategoryPre], currency: Currency) -> PreScalingBases:
    """Sum pre-scaling material and labor."""
    return PreScalingBases(
        material=Money.total((c.material_pre for c in categories), currency),
        labor=Money.total((c.labor_pre for c in categories), currency),
    )


def validate_input(request: ReconcileInput, bases: PreScalingBases) -> InvalidInputError | None:
    """Return the input error for an unscalable request, or None."""
    if not request.definitive_total.is_positive or not bases.lines.is_positive:
        return InvalidInputError(
            definitive_total=str(request.definitive_total.amount),
            base_lines=str(bases.lines.amount),
        )
    return None


def compute_o_and_p(definitive_total: Money, o_and_p_percent: Decimal) -> Money:
    """Overhead & profit as a fixed share of the definitive total."""
    return (definitive_total * o_and_p_percent).round()


def solve_scaling_factor(
    definitive_total: Money,
    o_and_p: Money,
    bases: PreScalingBases,
    tax_rate: Decimal,
) -> Decimal:
    """
    Solve S in  S * BASE_LINES + tax_rate * S * BASE_MATERIAL + O&P = total.

    Preconditions:
        - ``bases.lines`` is positive and ``tax_rate`` is non-negative, so
          the denominator is positive.
    Postconditions:
        - Returns S at full Decimal context precision (unrounded).
    """
    denominator = bases.lines.amount + tax_rate * bases.material.amount
    return (definitive_total.amount - o_and_p.amount) / denominator


def scale_category(category: CategoryPre, factor: Decimal) -> CategoryScaled:
    """Scale material and labor independently, each rounded to the cent."""
    material = (category.material_pre * factor).round()
    labor = (category.labor_pre * factor).round()
    return CategoryScaled(
        category_id=category.category_id,
        category=category.category,
        material_pre=category.material_pre,
        labor_pre=category.labor_pre,
        material_scaled=material,
        labor_scaled=labor,
        total_scaled=(material + labor).round(),
        description_summary=category.description_summary,
    )


def compute_line_totals(
    categories: Sequence[CategoryScaled],
    tax_rate: Decimal,
    o_and_p: Money,
) -> LineTotals:
    """Subtotal of scaled lines, tax on scaled materials, and grand total."""
    currency = o_and_p.currency
    subtotal = Money.total((c.total_scaled for c in categories), currency).round()
    materials = Money.total((c.material_scaled for c in categories), currency)
    material_tax = (materials * tax_rate).round()
    return LineTotals(
        subtotal_lines_scaled=subtotal,
        material_tax=material_tax,
        grand_total=(subtotal + material_tax + o_and_p).round(),
    )


def select_adjustment_target(categories: Sequence[CategoryScaled]) -> int | None:
    """
    Index of the category with the largest scaled material.

    Strictly-greater comparison keeps the first-seen index on ties.
    Returns None for an empty sequence.
    """
    best_index: int | None = None
    best_material: Money | None = None
    for index, category in enumerate(categories):
        if best_material is None or category.material_scaled > best_material:
            best_index = index
            best_material = category.material_scaled
    return best_index


def apply_residual_correction(
    categories: tuple[CategoryScaled, ...],
    totals: LineTotals,
    target: Money,
    tax_rate: Decimal,
    o_and_p: Money,
) -> tuple[tuple[CategoryScaled, ...], LineTotals, ResidualAdjustment | None]:
    """
    Close a rounding gap by nudging one category's scaled material.

    Single pass: the totals are recomputed once after the nudge and any
    secondary gap introduced through material tax is left in place.
    """
    if totals.grand_total == target:
        return categories, totals, None

    index = select_adjustment_target(categories)
    if index is None:
        return categories, totals, None

    delta = (target - totals.grand_total).round()
    chosen = categories[index]
    adjusted = chosen.with_material_scaled((chosen.material_scaled + delta).round())
    corrected = categories[:index] + (adjusted,) + categories[index + 1:]

    return (
        corrected,
        compute_line_totals(corrected, tax_rate, o_and_p),
        ResidualAdjustment(
            amount=delta,
            applied_to_category=chosen.category,
            note=RESIDUAL_NOTE,
        ),
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class BudgetReconciler:
    """
    Reconcile category estimates to a definitive budget total.

    Contract:
        Pure function of its input with deterministic rounding.
        No I/O, no state retained between calls, safe to call concurrently.
    Guarantees:
        - Invalid input is returned as a failed ReconcileOutcome, never
          raised at the caller.
        - grand_total == subtotal_lines_scaled + material_tax + o_and_p.
    Non-goals:
        - Does not split trades into material and labor.
        - Does not iterate the residual correction to convergence.
    """

    @traced_engine("budget_reconciliation", "1.0", fingerprint_fields=("request",))
    def reconcile(self, request: ReconcileInput) -> ReconcileOutcome:
        """
        Reconcile ``request.categories_pre`` to ``request.definitive_total``.

        Args:
            request: Definitive total, O&P percent, tax rate and categories.

        Returns:
            ReconcileOutcome holding either the ReconcileResult or the
            InvalidInputError.
        """
        t0 = time.monotonic()
        currency = request.currency
        logger.info("reconciliation_started", extra={
            "definitive_total": str(request.definitive_total.amount),
            "currency": currency.code,
            "o_and_p_percent": str(request.o_and_p_percent),
            "tax_rate": str(request.tax_rate),
            "category_count": len(request.categories_pre),
        })

        bases = compute_bases(request.categories_pre, currency)
        error = validate_input(request, bases)
        if error is not None:
            logger.warning("reconciliation_rejected", extra={
                "error_code": error.code,
                "definitive_total": error.definitive_total,
                "base_lines": error.base_lines,
            })
            return ReconcileOutcome.failure(error)

        o_and_p = compute_o_and_p(request.definitive_total, request.o_and_p_percent)
        factor = solve_scaling_factor(
            request.definitive_total, o_and_p, bases, request.tax_rate
        )
        categories = tuple(scale_category(c, factor) for c in request.categories_pre)
        totals = compute_line_totals(categories, request.tax_rate, o_and_p)
        target = request.definitive_total.round()

        categories, totals, adjustment = apply_residual_correction(
            categories, totals, target, request.tax_rate, o_and_p
        )
        if adjustment is not None:
            logger.info("residual_adjustment_applied", extra={
                "amount": str(adjustment.amount.amount),
                "applied_to_category": adjustment.applied_to_category,
                "grand_total": str(totals.grand_total.amount),
                "remaining_gap": str((target - totals.grand_total).amount),
            })

        result = ReconcileResult(
            definitive_total=target,
            scaling_factor=factor.quantize(SCALING_FACTOR_QUANTUM, rounding=ROUND_HALF_UP),
            o_and_p=o_and_p,
            categories=categories,
            subtotal_lines_scaled=totals.subtotal_lines_scaled,
            material_tax=totals.material_tax,
            grand_total=totals.grand_total,
            residual_adjustment=adjustment,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("reconciliation_completed", extra={
            "scaling_factor": str(result.scaling_factor),
            "grand_total": str(result.grand_total.amount),
            "is_exact": result.is_exact,
            "duration_ms": duration_ms,
        })
        return ReconcileOutcome.success(result)


def reconcile_budget(request: ReconcileInput) -> ReconcileOutcome:
    """Convenience wrapper around ``BudgetReconciler().reconcile``."""
    return BudgetReconciler().reconcile(request)
