#!/usr/bin/env python3
"""
Reconcile a claim budget JSON document and print the reconciled document.

Usage:
    python3 scripts/reconcile_budget.py budget.json [--filename NAME]
        [--o-and-p P] [--tax-rate R] [--config defaults.yaml]
"""

import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from budget_services.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
