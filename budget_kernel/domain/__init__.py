"""
Pure domain layer.

This module contains immutable value objects with NO dependencies on:
- Configuration
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from budget_kernel.domain.budget import (
    DEFAULT_O_AND_P_PERCENT,
    DEFAULT_TAX_RATE,
    RESIDUAL_NOTE,
    CategoryPre,
    CategoryScaled,
    ReconcileInput,
    ReconcileOutcome,
    ReconcileResult,
    ResidualAdjustment,
    parse_fraction,
)
from budget_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from budget_kernel.domain.values import Currency, Money

__all__ = [
    "DEFAULT_O_AND_P_PERCENT",
    "DEFAULT_TAX_RATE",
    "RESIDUAL_NOTE",
    "CategoryPre",
    "CategoryScaled",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Money",
    "ReconcileInput",
    "ReconcileOutcome",
    "ReconcileResult",
    "ResidualAdjustment",
    "parse_fraction",
]
