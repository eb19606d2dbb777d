"""
Tests for the Budget Reconciliation Engine.

Covers:
- Input validation (non-positive total, empty or all-zero categories)
- Overhead & profit and scaling factor
- Per-category scaling and material tax
- Residual correction, tie-break and the single-pass secondary gap
- Purity and determinism
"""

from decimal import Decimal

import pytest

from budget_engines.reconciliation import (
    BudgetReconciler,
    PreScalingBases,
    apply_residual_correction,
    compute_bases,
    compute_line_totals,
    compute_o_and_p,
    reconcile_budget,
    scale_category,
    select_adjustment_target,
    solve_scaling_factor,
)
from budget_kernel.domain.budget import (
    RESIDUAL_NOTE,
    CategoryPre,
    CategoryScaled,
    ReconcileInput,
)
from budget_kernel.domain.values import Currency, Money
from budget_kernel.exceptions import InvalidInputError


def _usd(amount: str) -> Money:
    return Money.of(amount, "USD")


def _scaled(label: str, material: str, labor: str = "0") -> CategoryScaled:
    return CategoryScaled(
        category_id=label,
        category=label,
        material_pre=_usd(material),
        labor_pre=_usd(labor),
        material_scaled=_usd(material),
        labor_scaled=_usd(labor),
        total_scaled=_usd(material) + _usd(labor),
    )


class TestInputValidation:
    """Rejected requests come back as failed outcomes, never raised."""

    def setup_method(self):
        self.reconciler = BudgetReconciler()

    def test_zero_definitive_total_rejected(self, two_categories):
        outcome = self.reconciler.reconcile(
            ReconcileInput(definitive_total=_usd("0"), categories_pre=two_categories)
        )

        assert not outcome.is_ok
        assert outcome.result is None
        assert isinstance(outcome.error, InvalidInputError)
        assert outcome.error.code == "INVALID_RECONCILE_INPUT"
        assert outcome.error.definitive_total == "0"

    def test_negative_definitive_total_rejected(self, two_categories):
        outcome = self.reconciler.reconcile(
            ReconcileInput(definitive_total=_usd("-10.00"), categories_pre=two_categories)
        )

        assert not outcome.is_ok

    def test_empty_category_list_rejected(self):
        outcome = self.reconciler.reconcile(
            ReconcileInput(definitive_total=_usd("5000"), categories_pre=())
        )

        assert not outcome.is_ok
        assert outcome.error.base_lines == "0"

    def test_all_zero_categories_rejected(self):
        outcome = self.reconciler.reconcile(
            ReconcileInput(
                definitive_total=_usd("5000"),
                categories_pre=(
                    CategoryPre.of(1, "DEMOLITION", "0", "0"),
                    CategoryPre.of(2, "CLEANING", "0.00", "0.00"),
                ),
            )
        )

        assert not outcome.is_ok

    def test_unwrap_raises_carried_error(self):
        outcome = self.reconciler.reconcile(
            ReconcileInput(definitive_total=_usd("0"), categories_pre=())
        )

        with pytest.raises(InvalidInputError) as exc_info:
            outcome.unwrap()
        assert exc_info.value is outcome.error


class TestOverheadAndScaling:
    """O&P and scaling factor."""

    def test_o_and_p_rounds_half_up(self):
        assert compute_o_and_p(_usd("1000.05"), Decimal("0.30")) == _usd("300.02")
        assert compute_o_and_p(_usd("1234.57"), Decimal("0.30")) == _usd("370.37")

    def test_o_and_p_zero_percent(self):
        assert compute_o_and_p(_usd("1300"), Decimal("0")) == _usd("0.00")

    def test_bases_sum_material_and_labor(self, two_categories):
        bases = compute_bases(two_categories, Currency("USD"))

        assert bases.material == _usd("1500")
        assert bases.labor == _usd("2500")
        assert bases.lines == _usd("4000")

    def test_scaling_factor_solves_budget_identity(self):
        bases = PreScalingBases(material=_usd("1500"), labor=_usd("2500"))
        factor = solve_scaling_factor(_usd("5000"), _usd("1500.00"), bases, Decimal("0.07"))

        assert factor == Decimal("3500") / Decimal("4105")
        assert factor.quantize(Decimal("0.0001")) == Decimal("0.8526")

    def test_scaling_factor_kept_unrounded_for_category_math(self, two_category_request):
        result = BudgetReconciler().reconcile(two_category_request).unwrap()

        assert result.scaling_factor == Decimal("0.8526")
        # 2000 x 0.8526 would give 1705.20; the unrounded factor gives 1705.24
        assert result.categories[0].labor_scaled == _usd("1705.24")


class TestCategoryScaling:
    """Per-category scaling and line totals."""

    def test_fields_rounded_independently(self):
        scaled = scale_category(
            CategoryPre.of(7, "FLOORING", "1", "1", description_summary="LVP"),
            Decimal("0.005"),
        )

        assert scaled.material_scaled == _usd("0.01")
        assert scaled.labor_scaled == _usd("0.01")
        # Sum of rounded parts, not round(2 x 0.005)
        assert scaled.total_scaled == _usd("0.02")
        assert scaled.material_pre == _usd("1")
        assert scaled.category_id == 7
        assert scaled.description_summary == "LVP"

    def test_material_tax_on_scaled_materials(self):
        totals = compute_line_totals(
            (_scaled("A", "852.62", "1705.24"), _scaled("B", "426.31", "426.31")),
            Decimal("0.07"),
            _usd("1500.00"),
        )

        assert totals.subtotal_lines_scaled == _usd("3410.48")
        assert totals.material_tax == _usd("89.53")
        assert totals.grand_total == _usd("5000.01")


class TestAdjustmentTarget:
    """Largest scaled material wins; first in input order on ties."""

    def test_largest_material_selected(self):
        categories = (_scaled("A", "5"), _scaled("B", "9"), _scaled("C", "3"))

        assert select_adjustment_target(categories) == 1

    def test_tie_goes_to_first_in_input_order(self):
        categories = (_scaled("A", "5"), _scaled("B", "9"), _scaled("C", "9"), _scaled("D", "3"))

        assert select_adjustment_target(categories) == 1

    def test_empty_sequence(self):
        assert select_adjustment_target(()) is None

    def test_correction_on_empty_list_is_noop(self):
        totals = compute_line_totals((), Decimal("0.07"), _usd("100.00"))

        categories, new_totals, adjustment = apply_residual_correction(
            (), totals, _usd("500.00"), Decimal("0.07"), _usd("100.00")
        )

        assert categories == ()
        assert new_totals == totals
        assert adjustment is None


class TestReconcileScenarios:
    """End-to-end scenarios."""

    def test_single_category_no_tax_no_o_and_p(self):
        outcome = reconcile_budget(
            ReconcileInput(
                definitive_total=_usd("1300"),
                categories_pre=(CategoryPre.of(1, "ROOFING", "1000", "0"),),
                o_and_p_percent=Decimal("0"),
                tax_rate=Decimal("0"),
            )
        )

        result = outcome.unwrap()
        assert result.scaling_factor == Decimal("1.3")
        assert result.categories[0].material_scaled == _usd("1300.00")
        assert result.grand_total == _usd("1300.00")
        assert result.residual_adjustment is None
        assert result.is_exact

    def test_two_categories_single_pass_leaves_secondary_gap(self, two_category_request):
        result = BudgetReconciler().reconcile(two_category_request).unwrap()

        assert result.o_and_p == _usd("1500.00")
        assert result.scaling_factor == Decimal("0.8526")

        drywall, painting = result.categories
        assert drywall.material_scaled == _usd("852.61")
        assert drywall.labor_scaled == _usd("1705.24")
        assert drywall.total_scaled == _usd("2557.85")
        assert painting.material_scaled == _usd("426.31")
        assert painting.labor_scaled == _usd("426.31")

        assert result.residual_adjustment.amount == _usd("-0.01")
        assert result.residual_adjustment.applied_to_category == "DRYWALL"
        assert result.residual_adjustment.note == RESIDUAL_NOTE

        assert result.subtotal_lines_scaled == _usd("3410.47")
        assert result.material_tax == _usd("89.52")
        assert result.grand_total == _usd("4999.99")
        assert result.reconciliation_gap == _usd("0.01")
        assert not result.is_exact

    def test_residual_applied_to_first_of_tied_categories(self):
        result = reconcile_budget(
            ReconcileInput(
                definitive_total=_usd("10"),
                categories_pre=(
                    CategoryPre.of("a", "A", "1", "0"),
                    CategoryPre.of("b", "B", "1", "0"),
                    CategoryPre.of("c", "C", "1", "0"),
                ),
                o_and_p_percent=Decimal("0"),
                tax_rate=Decimal("0"),
            )
        ).unwrap()

        assert result.residual_adjustment.amount == _usd("0.01")
        assert result.residual_adjustment.applied_to_category == "A"
        assert [c.material_scaled for c in result.categories] == [
            _usd("3.34"), _usd("3.33"), _usd("3.33"),
        ]
        assert result.grand_total == _usd("10.00")
        assert result.is_exact

    def test_labor_only_budget_reconciles_exactly(self):
        result = reconcile_budget(
            ReconcileInput(
                definitive_total=_usd("1000"),
                categories_pre=(CategoryPre.of(1, "LABOR", "0", "1000"),),
            )
        ).unwrap()

        assert result.o_and_p == _usd("300.00")
        assert result.categories[0].labor_scaled == _usd("700.00")
        assert result.material_tax == _usd("0.00")
        assert result.grand_total == _usd("1000.00")
        assert result.residual_adjustment is None

    def test_definitive_total_rounded_to_cents(self):
        result = reconcile_budget(
            ReconcileInput(
                definitive_total=_usd("1300.004"),
                categories_pre=(CategoryPre.of(1, "ROOFING", "1000", "0"),),
                o_and_p_percent=Decimal("0"),
                tax_rate=Decimal("0"),
            )
        ).unwrap()

        assert result.definitive_total == _usd("1300.00")
        assert result.grand_total == _usd("1300.00")

    def test_result_totals_roll_up(self, two_category_request):
        result = reconcile_budget(two_category_request).unwrap()

        assert result.materials_pre == _usd("1500")
        assert result.labor_pre == _usd("2500")
        assert result.lines_pre == _usd("4000")
        assert result.materials_scaled == _usd("1278.92")
        assert result.labor_scaled == _usd("2131.55")
        assert result.grand_total == (
            result.subtotal_lines_scaled + result.material_tax + result.o_and_p
        )


class TestPurity:
    """The engine neither mutates input nor keeps state."""

    def test_input_not_mutated(self, two_categories, two_category_request):
        BudgetReconciler().reconcile(two_category_request)

        assert two_category_request.categories_pre == two_categories
        assert two_category_request.definitive_total == _usd("5000")

    def test_repeated_calls_identical(self, two_category_request):
        reconciler = BudgetReconciler()

        first = reconciler.reconcile(two_category_request)
        second = reconciler.reconcile(two_category_request)

        assert first == second

    def test_interleaved_requests_independent(self, two_category_request):
        reconciler = BudgetReconciler()
        before = reconciler.reconcile(two_category_request).unwrap()
        reconciler.reconcile(
            ReconcileInput(definitive_total=_usd("0"), categories_pre=())
        )
        after = reconciler.reconcile(two_category_request).unwrap()

        assert before == after
