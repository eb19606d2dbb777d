"""
Configuration Loader (``budget_config.loader``).

Responsibility
--------------
Loads the reconciliation defaults YAML file and parses it into the typed
``budget_config.schema.ReconciliationDefaults`` dataclass.  The single
public entry point for runtime config is
``budget_config.get_reconciliation_defaults()``.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Percentages and rates are parsed to ``Decimal`` through ``str`` so YAML
  floats never leak binary rounding into money math.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Out-of-range rate or unknown currency -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from budget_config.schema import MISSING_TOTAL_NOTE, ReconciliationDefaults
from budget_kernel.domain.budget import RESIDUAL_NOTE, parse_fraction
from budget_kernel.domain.currency import CurrencyRegistry


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_defaults(data: dict[str, Any]) -> ReconciliationDefaults:
    """
    Parse ``ReconciliationDefaults`` from a dict.

    Preconditions:
        - ``data`` contains ``config_id``, ``o_and_p_percent`` and ``tax_rate``.
    Raises:
        KeyError: if a required key is missing.
        ValueError: on an out-of-range rate or unknown currency.
    """
    notes = data.get("notes") or {}
    return ReconciliationDefaults(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        currency=CurrencyRegistry.validate(data.get("currency", "USD")),
        o_and_p_percent=parse_fraction(data["o_and_p_percent"], "o_and_p_percent"),
        tax_rate=parse_fraction(data["tax_rate"], "tax_rate"),
        residual_note=notes.get("residual", RESIDUAL_NOTE),
        missing_total_note=notes.get("missing_total", MISSING_TOTAL_NOTE),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
