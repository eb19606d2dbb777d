"""
budget_services.reconciliation_service -- Reconcile, edit and re-reconcile claim budgets.

Responsibility:
    Orchestrates the BudgetReconciler engine for the editing workflow:
    the initial reconcile of an extracted budget document, re-reconciling
    after a human edits category figures or the O&P percent, and the
    degraded display state used when a budget cannot be reconciled.

Architecture position:
    Services -- orchestration over engines + kernel.  Holds no state
    between calls; every method builds fresh requests.

Invariants enforced:
    - Re-reconciliation mode is explicit.  COMPOUNDING feeds the previous
      scaled figures back as the new pre-scaling input, so each pass
      scales on top of the last.  BASELINE reconciles from the previous
      pass's pre-scaling figures.
    - Edits replace a category's pre-scaling amounts after the mode has
      chosen the carried-forward figures.

Failure modes:
    - CategoryNotFoundError when an edit or removal names an unknown
      category id.
    - DefinitiveTotalMissingError from ``reconcile_document`` when the
      document has no definitive total.
    - Engine input errors are returned inside ReconcileOutcome; only
      ``reconcile_or_degrade`` converts them into the degraded result.

Usage:
    service = BudgetReconciliationService()
    request = document.to_reconcile_input()
    first = service.reconcile(request).unwrap()

    outcome = service.rereconcile(
        request, first,
        edits={1: CategoryEdit(material=Money.of("900.00"))},
    )
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from budget_engines.reconciliation import BudgetReconciler, compute_o_and_p
from budget_kernel.domain.budget import (
    CategoryPre,
    CategoryScaled,
    ReconcileInput,
    ReconcileOutcome,
    ReconcileResult,
)
from budget_kernel.domain.values import Money
from budget_kernel.exceptions import CategoryNotFoundError
from budget_kernel.logging_config import get_logger
from budget_services.budget_document import BudgetDocument

logger = get_logger("services.reconciliation")


class ReconcileMode(str, Enum):
    """Which figures a re-reconciliation starts from."""

    COMPOUNDING = "compounding"  # previous scaled figures become the new pre-scaling input
    BASELINE = "baseline"  # previous pre-scaling figures are reused


@dataclass(frozen=True)
class CategoryEdit:
    """Human edit to one category; None leaves that amount as carried forward."""

    material: Money | None = None
    labor: Money | None = None


def carry_forward_categories(
    result: ReconcileResult,
    mode: ReconcileMode = ReconcileMode.COMPOUNDING,
) -> tuple[CategoryPre, ...]:
    """Pre-scaling categories for the next pass, per ``mode``."""
    carried = []
    for c in result.categories:
        if mode is ReconcileMode.COMPOUNDING:
            material, labor = c.material_scaled, c.labor_scaled
            # a negative residual on an all-labor budget leaves material at -0.01
            if material.is_negative:
                material = Money.zero(material.currency)
        else:
            material, labor = c.material_pre, c.labor_pre
        carried.append(
            CategoryPre(
                category_id=c.category_id,
                category=c.category,
                material_pre=material,
                labor_pre=labor,
                description_summary=c.description_summary,
            )
        )
    return tuple(carried)


def apply_category_edits(
    categories: tuple[CategoryPre, ...],
    edits: Mapping[str | int, CategoryEdit] | None = None,
    remove_ids: Collection[str | int] = (),
) -> tuple[CategoryPre, ...]:
    """Apply edits and removals, keyed by category id (compared as strings)."""
    edits = {str(k): v for k, v in (edits or {}).items()}
    removals = {str(k) for k in remove_ids}
    known = {str(c.category_id) for c in categories}
    unknown = sorted((edits.keys() | removals) - known)
    if unknown:
        raise CategoryNotFoundError(unknown[0])

    updated = []
    for c in categories:
        key = str(c.category_id)
        if key in removals:
            continue
        edit = edits.get(key)
        if edit is not None:
            c = CategoryPre(
                category_id=c.category_id,
                category=c.category,
                material_pre=edit.material if edit.material is not None else c.material_pre,
                labor_pre=edit.labor if edit.labor is not None else c.labor_pre,
                description_summary=c.description_summary,
            )
        updated.append(c)
    return tuple(updated)


class BudgetReconciliationService:
    """
    Reconcile claim budgets for the editing workflow.

    Contract:
        Thin orchestration around BudgetReconciler; every call is
        independent and the service keeps no budget state.
    Non-goals:
        - Does NOT persist budgets or versions.
        - Does NOT decide between COMPOUNDING and BASELINE for the caller;
          COMPOUNDING is the default because it is what the editing screen
          has always done.
    """

    def __init__(self, reconciler: BudgetReconciler | None = None):
        self._reconciler = reconciler or BudgetReconciler()

    def reconcile(self, request: ReconcileInput) -> ReconcileOutcome:
        return self._reconciler.reconcile(request)

    def reconcile_document(self, document: BudgetDocument) -> ReconcileOutcome:
        """Reconcile an extracted budget document."""
        return self.reconcile(document.to_reconcile_input())

    def rereconcile(
        self,
        previous_request: ReconcileInput,
        previous_result: ReconcileResult,
        *,
        edits: Mapping[str | int, CategoryEdit] | None = None,
        remove_ids: Collection[str | int] = (),
        o_and_p_percent: Decimal | None = None,
        tax_rate: Decimal | None = None,
        mode: ReconcileMode = ReconcileMode.COMPOUNDING,
    ) -> ReconcileOutcome:
        """
        Reconcile again after an edit.

        Args:
            previous_request: Request that produced ``previous_result``;
                supplies the definitive total and the unchanged rates.
            previous_result: Result shown to the user before the edit.
            edits: New material and/or labor per category id.
            remove_ids: Category ids deleted by the user.
            o_and_p_percent: New O&P percent, if changed.
            tax_rate: New material tax rate, if changed.
            mode: Which figures the new pass starts from.

        Raises:
            CategoryNotFoundError: if an edit or removal names an unknown id.
        """
        categories = apply_category_edits(
            carry_forward_categories(previous_result, mode), edits, remove_ids
        )
        request = ReconcileInput(
            definitive_total=previous_request.definitive_total,
            categories_pre=categories,
            o_and_p_percent=(
                previous_request.o_and_p_percent if o_and_p_percent is None else o_and_p_percent
            ),
            tax_rate=previous_request.tax_rate if tax_rate is None else tax_rate,
        )
        logger.info("budget_rereconcile", extra={
            "mode": mode.value,
            "edited_count": len(edits or {}),
            "removed_count": len(remove_ids),
            "o_and_p_percent": str(request.o_and_p_percent),
        })
        return self.reconcile(request)

    def reconcile_or_degrade(self, request: ReconcileInput) -> ReconcileResult:
        """Reconcile, falling back to the degraded display state on invalid input."""
        outcome = self.reconcile(request)
        if outcome.is_ok:
            return outcome.result
        logger.warning("budget_reconcile_degraded", extra={
            "error_code": outcome.error.code,
            "definitive_total": outcome.error.definitive_total,
            "base_lines": outcome.error.base_lines,
        })
        return degraded_result(request)


def degraded_result(request: ReconcileInput) -> ReconcileResult:
    """
    Display state for a budget that cannot be scaled.

    O&P is computed from the target alone; every category is carried with
    zero scaled amounts, so the grand total equals O&P.
    """
    currency = request.currency
    zero = Money.zero(currency)
    o_and_p = compute_o_and_p(request.definitive_total, request.o_and_p_percent)
    return ReconcileResult(
        definitive_total=request.definitive_total.round(),
        scaling_factor=Decimal("0"),
        o_and_p=o_and_p,
        categories=tuple(
            CategoryScaled(
                category_id=c.category_id,
                category=c.category,
                material_pre=c.material_pre,
                labor_pre=c.labor_pre,
                material_scaled=zero,
                labor_scaled=zero,
                total_scaled=zero,
                description_summary=c.description_summary,
            )
            for c in request.categories_pre
        ),
        subtotal_lines_scaled=zero,
        material_tax=zero,
        grand_total=o_and_p,
        residual_adjustment=None,
    )
