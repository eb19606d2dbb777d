"""
budget_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    Provides the ONLY way to obtain reconciliation defaults at runtime
    through ``get_reconciliation_defaults()``.  YAML loading is internal
    tooling and never exposed to callers.

Architecture position:
    Configuration -- sits above ``budget_kernel`` and ``budget_engines`` and
    below ``budget_services``.  The kernel and engines MUST NEVER import from
    ``budget_config``; services pass the parsed values into engine requests.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_reconciliation_defaults()`` call emits a
    ``BUDGET_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each reconciled budget back to the defaults in force.
"""

from __future__ import annotations

from pathlib import Path

from budget_config.loader import load_yaml_file, parse_defaults
from budget_config.schema import ReconciliationDefaults
from budget_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "defaults.yaml"


def get_reconciliation_defaults(config_path: Path | None = None) -> ReconciliationDefaults:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a defaults YAML file.
            Defaults to budget_config/defaults.yaml.

    Returns:
        ReconciliationDefaults parsed from the YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a rate is out of range or the currency is unknown.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_FILE
    defaults = parse_defaults(load_yaml_file(path))

    _logger.info(
        "BUDGET_CONFIG_TRACE",
        extra={
            "trace_type": "BUDGET_CONFIG_TRACE",
            "config_id": defaults.config_id,
            "config_version": defaults.version,
            "checksum": defaults.checksum,
            "currency": defaults.currency,
            "o_and_p_percent": str(defaults.o_and_p_percent),
            "tax_rate": str(defaults.tax_rate),
        },
    )
    return defaults


__all__ = ["ReconciliationDefaults", "get_reconciliation_defaults"]
