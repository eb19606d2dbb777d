"""
Reconciliation configuration schema.

Defines the human-authored defaults the service layer applies around the
reconciliation engine. YAML is parsed into these types by the loader;
the kernel and engines never see this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from budget_kernel.domain.budget import (
    DEFAULT_O_AND_P_PERCENT,
    DEFAULT_TAX_RATE,
    RESIDUAL_NOTE,
)

MISSING_TOTAL_NOTE = "Definitive total not found; user input required."


@dataclass(frozen=True)
class ReconciliationDefaults:
    """Defaults for budget documents that omit O&P, tax rate or currency."""

    config_id: str = "builtin"
    version: int = 1
    currency: str = "USD"
    o_and_p_percent: Decimal = DEFAULT_O_AND_P_PERCENT
    tax_rate: Decimal = DEFAULT_TAX_RATE
    residual_note: str = RESIDUAL_NOTE
    missing_total_note: str = MISSING_TOTAL_NOTE
    checksum: str = ""
