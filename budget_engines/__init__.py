"""
Module: budget_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for the
    service layer (budget_services) and scripts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import budget_kernel (and sibling engine modules).
    MUST NOT import budget_services or budget_config.

Invariants enforced:
    - Decimal-only arithmetic: all monetary amounts are Money values;
      floats are forbidden.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via the ``@traced_engine`` decorator
    (see ``budget_engines.tracer``), emitting BUDGET_ENGINE_TRACE log
    records that include engine name, version, input fingerprint, and
    duration.
"""

from budget_engines.reconciliation import (
    BudgetReconciler,
    LineTotals,
    PreScalingBases,
    apply_residual_correction,
    compute_bases,
    compute_line_totals,
    compute_o_and_p,
    reconcile_budget,
    scale_category,
    select_adjustment_target,
    solve_scaling_factor,
    validate_input,
)
from budget_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "BudgetReconciler",
    "LineTotals",
    "PreScalingBases",
    "apply_residual_correction",
    "compute_bases",
    "compute_input_fingerprint",
    "compute_line_totals",
    "compute_o_and_p",
    "reconcile_budget",
    "scale_category",
    "select_adjustment_target",
    "solve_scaling_factor",
    "traced_engine",
    "validate_input",
]
