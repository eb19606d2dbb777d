"""
budget_services -- Package init and public API.

Responsibility:
    Orchestration and boundary adapters that compose the pure
    reconciliation engine (budget_engines/) with configuration defaults and
    the upstream budget document format.

Architecture position:
    Services -- orchestration over engines + kernel.

    Dependency direction:
        budget_services/ -> budget_engines/  (allowed)
        budget_services/ -> budget_kernel/   (allowed)
        budget_services/ -> budget_config/   (allowed)
        budget_engines/  -> budget_services/ (FORBIDDEN)
        budget_kernel/   -> budget_services/ (FORBIDDEN)
"""

from budget_services.budget_document import (
    BudgetDocument,
    parse_budget_document,
    render_budget_json,
    rounding_disclosure,
)
from budget_services.definitive_total import (
    DefinitiveSource,
    DefinitiveTotal,
    derive_tax_rate,
    parse_filename_amount,
    resolve_definitive_total,
)
from budget_services.reconciliation_service import (
    BudgetReconciliationService,
    CategoryEdit,
    ReconcileMode,
    apply_category_edits,
    carry_forward_categories,
    degraded_result,
)

__all__ = [
    "BudgetDocument",
    "BudgetReconciliationService",
    "CategoryEdit",
    "DefinitiveSource",
    "DefinitiveTotal",
    "ReconcileMode",
    "apply_category_edits",
    "carry_forward_categories",
    "degraded_result",
    "derive_tax_rate",
    "parse_budget_document",
    "parse_filename_amount",
    "render_budget_json",
    "resolve_definitive_total",
    "rounding_disclosure",
]
