"""
Typed Exception Hierarchy for the Budget Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the reconciliation engine and its adapters must tell a bad
request apart from a malformed upstream document without parsing message
strings. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes

Example - RIGHT way:
    outcome = reconciler.reconcile(request)
    if not outcome.is_ok:
        log.warning("rejected", extra={"code": outcome.error.code})
        show_degraded_state()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BudgetKernelError (base)
    |
    +-- InvalidInputError            INVALID_RECONCILE_INPUT
    |
    +-- BudgetDocumentError          INVALID_BUDGET_DOCUMENT
    |   +-- DefinitiveTotalMissingError  DEFINITIVE_TOTAL_NOT_FOUND
    |
    +-- CategoryNotFoundError        CATEGORY_NOT_FOUND

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ENGINE FAILURES ARE VALUES:

    The engine never raises InvalidInputError at its caller; it returns a
    failed ReconcileOutcome carrying the error. ``outcome.unwrap()`` re-raises
    it for callers that prefer exceptions.

2. ADAPTER FAILURES ARE RAISED:

    try:
        document = parse_budget_document(payload, defaults)
    except BudgetDocumentError as e:
        return {"error": e.code, "field": e.field}
"""


class BudgetKernelError(Exception):
    """
    Base exception for all budget kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BUDGET_KERNEL_ERROR"


class InvalidInputError(BudgetKernelError):
    """Reconciliation request cannot be scaled.

    Raised (or returned) when the definitive total is not positive or the
    pre-scaling material and labor amounts sum to zero or less.
    """

    code: str = "INVALID_RECONCILE_INPUT"

    def __init__(self, definitive_total: str, base_lines: str):
        self.definitive_total = definitive_total
        self.base_lines = base_lines
        super().__init__(
            "Invalid totals: definitive total and pre-scale lines must be > 0 "
            f"(definitive_total={definitive_total}, base_lines={base_lines})"
        )


class BudgetDocumentError(BudgetKernelError):
    """Upstream budget document is malformed."""

    code: str = "INVALID_BUDGET_DOCUMENT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid budget document field {field!r}: {reason}")


class DefinitiveTotalMissingError(BudgetDocumentError):
    """Budget document has no resolvable definitive total."""

    code: str = "DEFINITIVE_TOTAL_NOT_FOUND"

    def __init__(self, note: str = "Definitive total not found; user input required."):
        super().__init__("definitive.totalProjectBudget", note)


class CategoryNotFoundError(BudgetKernelError):
    """An edit referenced a category that is not part of the budget."""

    code: str = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category not found: {category_id}")
