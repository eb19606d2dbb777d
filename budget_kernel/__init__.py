"""
Budget Kernel

Value objects, typed exceptions and structured logging shared by the
claim budget reconciliation engine and the adapters around it:
- Decimal-only Money with ISO 4217 precision
- Immutable budget data model (pre-scaling and scaled categories)
- Typed, code-carrying exceptions
- JSON structured logging
"""

__version__ = "0.1.0"
