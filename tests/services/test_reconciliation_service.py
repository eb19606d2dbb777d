"""
Tests for BudgetReconciliationService.

Covers:
- Reconciling an extracted document
- Re-reconciliation in COMPOUNDING and BASELINE modes
- Category edits, removals and O&P changes
- Degraded display state for unscalable budgets
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from budget_kernel.domain.budget import CategoryPre, ReconcileInput
from budget_kernel.domain.values import Money
from budget_kernel.exceptions import CategoryNotFoundError, DefinitiveTotalMissingError
from budget_services.budget_document import parse_budget_document
from budget_services.reconciliation_service import (
    BudgetReconciliationService,
    CategoryEdit,
    ReconcileMode,
    apply_category_edits,
    carry_forward_categories,
    degraded_result,
)


@pytest.fixture
def service() -> BudgetReconciliationService:
    return BudgetReconciliationService()


@pytest.fixture
def first_pass(service, two_category_request):
    return service.reconcile(two_category_request).unwrap()


class TestReconcileDocument:

    def test_document_reconciled(self, service):
        document = parse_budget_document({
            "definitive": {"totalProjectBudget": "5000"},
            "categories": [
                {"id": 1, "category": "DRYWALL", "materialPre": 1000, "laborPre": 2000},
                {"id": 2, "category": "PAINTING", "materialPre": 500, "laborPre": 500},
            ],
        })

        result = service.reconcile_document(document).unwrap()

        assert result.grand_total == Money.of("4999.99")

    def test_document_without_total_rejected(self, service):
        document = parse_budget_document({"categories": []})

        with pytest.raises(DefinitiveTotalMissingError):
            service.reconcile_document(document)


class TestCarryForward:

    def test_compounding_uses_scaled_figures(self, first_pass):
        carried = carry_forward_categories(first_pass, ReconcileMode.COMPOUNDING)

        assert carried[0].material_pre == Money.of("852.61")
        assert carried[0].labor_pre == Money.of("1705.24")
        assert carried[0].description_summary == "Hang, tape, finish"

    def test_baseline_uses_pre_scaling_figures(self, first_pass):
        carried = carry_forward_categories(first_pass, ReconcileMode.BASELINE)

        assert carried[0].material_pre == Money.of("1000")
        assert carried[1].labor_pre == Money.of("500")

    def test_compounding_clamps_negative_material(self, first_pass):
        adjusted = replace(first_pass, categories=(
            first_pass.categories[0].with_material_scaled(Money.of("-0.01")),
            first_pass.categories[1],
        ))

        carried = carry_forward_categories(adjusted, ReconcileMode.COMPOUNDING)

        assert carried[0].material_pre == Money.of("0")
        assert carried[0].labor_pre == Money.of("1705.24")


class TestApplyCategoryEdits:

    def test_edit_one_amount_keeps_the_other(self, two_categories):
        updated = apply_category_edits(
            two_categories, edits={1: CategoryEdit(material=Money.of("900"))}
        )

        assert updated[0].material_pre == Money.of("900")
        assert updated[0].labor_pre == Money.of("2000")
        assert updated[1] == two_categories[1]

    def test_ids_compared_as_strings(self, two_categories):
        updated = apply_category_edits(two_categories, remove_ids=["2"])

        assert [c.category for c in updated] == ["DRYWALL"]

    def test_unknown_id_rejected(self, two_categories):
        with pytest.raises(CategoryNotFoundError) as exc_info:
            apply_category_edits(two_categories, edits={99: CategoryEdit(labor=Money.of("1"))})
        assert exc_info.value.category_id == "99"
        assert exc_info.value.code == "CATEGORY_NOT_FOUND"

    def test_input_not_mutated(self, two_categories):
        original = tuple(two_categories)

        apply_category_edits(two_categories, edits={1: CategoryEdit(labor=Money.of("1"))})

        assert two_categories == original

    def test_negative_edit_rejected(self, two_categories):
        with pytest.raises(ValueError, match="negative amount"):
            apply_category_edits(two_categories, edits={2: CategoryEdit(labor=Money.of("-1"))})


class TestRereconcile:

    def test_compounding_scales_on_top_of_previous_pass(
        self, service, two_category_request, first_pass
    ):
        second = service.rereconcile(two_category_request, first_pass).unwrap()

        assert second.categories[0].material_pre == Money.of("852.61")
        assert second.scaling_factor == Decimal("1.0000")
        assert second.residual_adjustment.amount == Money.of("0.01")
        assert second.categories[0].material_scaled == Money.of("852.62")
        assert second.material_tax == Money.of("89.53")
        assert second.grand_total == Money.of("5000.01")

    def test_baseline_without_edits_repeats_first_pass(
        self, service, two_category_request, first_pass
    ):
        again = service.rereconcile(
            two_category_request, first_pass, mode=ReconcileMode.BASELINE
        ).unwrap()

        assert again == first_pass

    def test_zeroed_category(self, service, two_category_request, first_pass):
        result = service.rereconcile(
            two_category_request,
            first_pass,
            edits={2: CategoryEdit(material=Money.of("0"), labor=Money.of("0"))},
            mode=ReconcileMode.BASELINE,
        ).unwrap()

        drywall, painting = result.categories
        assert drywall.material_scaled == Money.of("1140.07")
        assert drywall.labor_scaled == Money.of("2280.13")
        assert painting.total_scaled.is_zero
        assert result.material_tax == Money.of("79.80")
        assert result.grand_total == Money.of("5000.00")
        assert result.residual_adjustment is None

    def test_removed_category(self, service, two_category_request, first_pass):
        result = service.rereconcile(
            two_category_request, first_pass, remove_ids=[2], mode=ReconcileMode.BASELINE
        ).unwrap()

        assert len(result.categories) == 1
        assert result.grand_total == Money.of("5000.00")

    def test_o_and_p_change(self, service, two_category_request, first_pass):
        result = service.rereconcile(
            two_category_request,
            first_pass,
            o_and_p_percent=Decimal("0"),
            mode=ReconcileMode.BASELINE,
        ).unwrap()

        assert result.o_and_p == Money.of("0.00")
        assert result.residual_adjustment.amount == Money.of("0.01")
        assert result.categories[0].material_scaled == Money.of("1218.04")
        assert result.material_tax == Money.of("127.89")
        assert result.grand_total == Money.of("5000.00")

    def test_unknown_edit_rejected(self, service, two_category_request, first_pass):
        with pytest.raises(CategoryNotFoundError):
            service.rereconcile(two_category_request, first_pass, remove_ids=["ELECTRICAL"])

    def test_rereconcile_logged(self, service, two_category_request, first_pass, log_stream):
        service.rereconcile(
            two_category_request, first_pass, remove_ids=[2], mode=ReconcileMode.BASELINE
        )

        record = [r for r in log_stream() if r["message"] == "budget_rereconcile"][0]
        assert record["mode"] == "baseline"
        assert record["removed_count"] == 1
        assert record["logger"] == "budget_kernel.services.reconciliation"


class TestDegradedResult:

    def test_unscalable_budget_degrades(self, service, log_stream):
        request = ReconcileInput(
            definitive_total=Money.of("5000"),
            categories_pre=(
                CategoryPre.of(1, "DEMOLITION", "0", "0"),
                CategoryPre.of(2, "CLEANING", "0", "0"),
            ),
        )

        result = service.reconcile_or_degrade(request)

        assert result.scaling_factor == Decimal("0")
        assert result.o_and_p == Money.of("1500.00")
        assert result.grand_total == Money.of("1500.00")
        assert result.subtotal_lines_scaled.is_zero
        assert [c.category for c in result.categories] == ["DEMOLITION", "CLEANING"]
        assert all(c.total_scaled.is_zero for c in result.categories)
        degraded = [r for r in log_stream() if r["message"] == "budget_reconcile_degraded"]
        assert degraded[0]["error_code"] == "INVALID_RECONCILE_INPUT"

    def test_valid_budget_not_degraded(self, service, two_category_request, first_pass):
        assert service.reconcile_or_degrade(two_category_request) == first_pass

    def test_degraded_with_non_positive_total(self):
        request = ReconcileInput(
            definitive_total=Money.of("0"),
            categories_pre=(CategoryPre.of(1, "ROOFING", "100", "100"),),
        )

        result = degraded_result(request)

        assert result.o_and_p.is_zero
        assert result.grand_total.is_zero
        assert result.categories[0].material_pre == Money.of("100")
