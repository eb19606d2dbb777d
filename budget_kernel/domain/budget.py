"""
Budget -- Immutable data model for claim budget reconciliation.

Responsibility:
    Defines the value objects exchanged with the reconciliation engine:
    pre-scaling category estimates, the reconcile request, scaled categories,
    the residual adjustment record, the reconciled result and the Ok/Err
    outcome wrapper.

Architecture position:
    Kernel > Domain -- pure data, zero I/O. Depends only on
    budget_kernel.domain.values and budget_kernel.exceptions.

Invariants enforced:
    - Every currency field is a Money value object, never a float.
    - A request is single-currency: every category shares the definitive
      total's currency.
    - Category amounts are non-negative; O&P percent and tax rate are
      fractions in [0, 1).
    - Outcomes carry exactly one of a result or an error.

Failure modes:
    - ValueError on currency mismatch, a negative category amount, or a
      percentage that is non-numeric or outside [0, 1).
    - ValueError when an outcome is built with both or neither side set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from budget_kernel.domain.values import Currency, Money
from budget_kernel.exceptions import InvalidInputError

DEFAULT_O_AND_P_PERCENT = Decimal("0.30")
DEFAULT_TAX_RATE = Decimal("0.07")
RESIDUAL_NOTE = "Minor rounding adjustment applied to Materials to reconcile grand total."


def parse_fraction(value: Decimal | int | str | float, name: str) -> Decimal:
    """
    Parse a rate or percentage expressed as a fraction in [0, 1).

    Strings, ints and floats go through ``str`` so binary floats never
    leak into money math.

    Raises:
        ValueError: if ``value`` is not numeric or out of range.
    """
    if isinstance(value, Decimal):
        fraction = value
    else:
        try:
            fraction = Decimal(str(value))
        except ArithmeticError as e:
            raise ValueError(f"{name} must be numeric, got {value!r}") from e
    if not fraction.is_finite() or not Decimal("0") <= fraction < Decimal("1"):
        raise ValueError(f"{name} must be in [0, 1), got {fraction}")
    return fraction


@dataclass(frozen=True)
class CategoryPre:
    """
    One trade's unscaled estimate.

    Produced by the upstream extraction collaborator after it has split the
    trade into material and labor portions. Immutable input to the engine.
    """

    category_id: str | int
    category: str
    material_pre: Money
    labor_pre: Money
    description_summary: str | None = None

    def __post_init__(self) -> None:
        if self.material_pre.currency != self.labor_pre.currency:
            raise ValueError(
                f"Category {self.category!r} mixes currencies: "
                f"{self.material_pre.currency} and {self.labor_pre.currency}"
            )
        if self.material_pre.is_negative or self.labor_pre.is_negative:
            raise ValueError(
                f"Category {self.category!r} has a negative amount: "
                f"material={self.material_pre.amount}, labor={self.labor_pre.amount}"
            )

    @classmethod
    def of(
        cls,
        category_id: str | int,
        category: str,
        material: Decimal | str | int,
        labor: Decimal | str | int,
        currency: str | Currency = "USD",
        description_summary: str | None = None,
    ) -> CategoryPre:
        """Factory taking plain amounts in a single currency."""
        return cls(
            category_id=category_id,
            category=category,
            material_pre=Money.of(material, currency),
            labor_pre=Money.of(labor, currency),
            description_summary=description_summary,
        )

    @property
    def currency(self) -> Currency:
        return self.material_pre.currency

    @property
    def lines_pre(self) -> Money:
        return self.material_pre + self.labor_pre


@dataclass(frozen=True)
class CategoryScaled:
    """
    A category after scaling.

    Carries the pre-scaling figures it was derived from alongside the scaled
    ones. ``total_scaled`` is the sum of the two already-rounded parts, not a
    rounded sum.
    """

    category_id: str | int
    category: str
    material_pre: Money
    labor_pre: Money
    material_scaled: Money
    labor_scaled: Money
    total_scaled: Money
    description_summary: str | None = None

    def with_material_scaled(self, material_scaled: Money) -> CategoryScaled:
        """Return a copy with a new scaled material and its recomputed total."""
        return CategoryScaled(
            category_id=self.category_id,
            category=self.category,
            material_pre=self.material_pre,
            labor_pre=self.labor_pre,
            material_scaled=material_scaled,
            labor_scaled=self.labor_scaled,
            total_scaled=(material_scaled + self.labor_scaled).round(),
            description_summary=self.description_summary,
        )


@dataclass(frozen=True)
class ReconcileInput:
    """
    Request to reconcile a budget to its definitive total.

    Category order is significant only as the residual tie-break key.
    """

    definitive_total: Money
    categories_pre: tuple[CategoryPre, ...]
    o_and_p_percent: Decimal = DEFAULT_O_AND_P_PERCENT
    tax_rate: Decimal = DEFAULT_TAX_RATE

    def __post_init__(self) -> None:
        if not isinstance(self.categories_pre, tuple):
            object.__setattr__(self, "categories_pre", tuple(self.categories_pre))
        object.__setattr__(
            self, "o_and_p_percent", parse_fraction(self.o_and_p_percent, "o_and_p_percent")
        )
        object.__setattr__(self, "tax_rate", parse_fraction(self.tax_rate, "tax_rate"))

        currency = self.definitive_total.currency
        for cat in self.categories_pre:
            if cat.currency != currency:
                raise ValueError(
                    f"Currency mismatch: category {cat.category!r} is {cat.currency}, "
                    f"definitive total is {currency}"
                )

    @property
    def currency(self) -> Currency:
        return self.definitive_total.currency


@dataclass(frozen=True)
class ResidualAdjustment:
    """Corrective nudge applied to one category's scaled material."""

    amount: Money
    applied_to_category: str
    note: str = RESIDUAL_NOTE


@dataclass(frozen=True)
class ReconcileResult:
    """
    Fully scaled, tax-adjusted, O&P-inclusive budget.

    Contract:
        ``scaling_factor`` is rounded to 4 decimal places for reporting only.
        Every Money field is rounded to currency precision.
    Guarantees:
        - ``grand_total == subtotal_lines_scaled + material_tax + o_and_p``.
        - ``grand_total`` equals ``definitive_total`` unless the single-pass
          residual correction left a secondary gap (see ``reconciliation_gap``).
    """

    definitive_total: Money
    scaling_factor: Decimal
    o_and_p: Money
    categories: tuple[CategoryScaled, ...]
    subtotal_lines_scaled: Money
    material_tax: Money
    grand_total: Money
    residual_adjustment: ResidualAdjustment | None = None

    @property
    def currency(self) -> Currency:
        return self.definitive_total.currency

    @property
    def materials_pre(self) -> Money:
        return Money.total((c.material_pre for c in self.categories), self.currency)

    @property
    def labor_pre(self) -> Money:
        return Money.total((c.labor_pre for c in self.categories), self.currency)

    @property
    def lines_pre(self) -> Money:
        return self.materials_pre + self.labor_pre

    @property
    def materials_scaled(self) -> Money:
        return Money.total((c.material_scaled for c in self.categories), self.currency)

    @property
    def labor_scaled(self) -> Money:
        return Money.total((c.labor_scaled for c in self.categories), self.currency)

    @property
    def reconciliation_gap(self) -> Money:
        """Amount still separating the grand total from the target."""
        return self.definitive_total - self.grand_total

    @property
    def is_exact(self) -> bool:
        return self.reconciliation_gap.is_zero


@dataclass(frozen=True)
class ReconcileOutcome:
    """
    Result of ``BudgetReconciler.reconcile()``.

    Contract:
        Either contains a result OR an InvalidInputError, never both.
        Callers branch on ``is_ok`` rather than catching exceptions.
    """

    result: ReconcileResult | None = None
    error: InvalidInputError | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("ReconcileOutcome requires exactly one of result or error")

    @classmethod
    def success(cls, result: ReconcileResult) -> ReconcileOutcome:
        return cls(result=result)

    @classmethod
    def failure(cls, error: InvalidInputError) -> ReconcileOutcome:
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.result is not None

    def unwrap(self) -> ReconcileResult:
        """Return the result, or raise the carried InvalidInputError."""
        if self.result is None:
            raise self.error
        return self.result
