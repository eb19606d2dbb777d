"""
Pytest fixtures for the budget reconciliation test suite.

Provides:
- Logging reset between tests
- Reusable category sets and requests
- A JSON log capture helper
"""

import json
import logging
from io import StringIO

import pytest
from decimal import Decimal

from budget_kernel.domain.budget import CategoryPre, ReconcileInput
from budget_kernel.domain.values import Money
from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def log_stream():
    """Configure structured logging at DEBUG into a StringIO; yields a parser."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    configure_logging(level=logging.DEBUG, handler=handler)

    def records() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return records


@pytest.fixture
def two_categories() -> tuple[CategoryPre, ...]:
    """Drywall 1000/2000 and painting 500/500, the canonical two-trade budget."""
    return (
        CategoryPre.of(1, "DRYWALL", "1000", "2000", description_summary="Hang, tape, finish"),
        CategoryPre.of(2, "PAINTING", "500", "500", description_summary="Walls and ceilings"),
    )


@pytest.fixture
def two_category_request(two_categories) -> ReconcileInput:
    return ReconcileInput(
        definitive_total=Money.of("5000"),
        categories_pre=two_categories,
        o_and_p_percent=Decimal("0.30"),
        tax_rate=Decimal("0.07"),
    )
