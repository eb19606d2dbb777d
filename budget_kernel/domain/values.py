"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the monetary value types for every budget computation:
    Currency and Money. These replace primitive types (float, Decimal, str)
    wherever a currency amount appears in domain logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module. No outward dependencies except
    budget_kernel.domain.currency (CurrencyRegistry).

Invariants enforced:
    - Every monetary amount is a Money value object (never a float).
    - Currency codes are validated at construction time.
    - Rounding precision is derived from the currency's decimal places,
      never hardcoded.

Failure modes:
    - ValueError on construction with invalid amounts or currencies
    - TypeError when a Money operation receives an incompatible type
    - ValueError when arithmetic mixes different currencies
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from budget_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter ISO 4217 code. Validated and normalized (uppercased)
        on construction. Unknown codes are rejected immediately.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - code is always uppercase and stripped of whitespace
        - code is always registered in CurrencyRegistry
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if self.code else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code}")
        # Override frozen to set normalized value
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        """Number of decimal places for this currency."""
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit (0.01 for USD)."""
        return Decimal(1).scaleb(-self.decimal_places)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency -- they are NEVER separated.
        This is the canonical representation of monetary values throughout
        the budget kernel and engines.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - amount is always a Decimal (never float)
        - currency is always a valid Currency
        - Arithmetic operations enforce same-currency constraint

    Non-goals:
        - Does NOT perform currency conversion
        - Does NOT auto-round -- callers must explicitly call .round()
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e
        if not self.amount.is_finite():
            raise ValueError(f"Invalid amount: {self.amount}")

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency = "USD") -> Money:
        """
        Factory method for creating Money.

        Args:
            amount: The monetary amount (no float at the call site).
            currency: ISO 4217 currency code or Currency object.

        Returns:
            Money instance.
        """
        if isinstance(amount, (str, int)):
            amount = Decimal(str(amount))
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency = "USD") -> Money:
        """Create a zero amount in the given currency."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def total(cls, values: Iterable[Money], currency: str | Currency) -> Money:
        """Sum Money values of one currency; zero for an empty iterable."""
        result = cls.zero(currency)
        for value in values:
            result = result + value
        return result

    @property
    def is_zero(self) -> bool:
        """Check if amount is zero."""
        return self.amount == Decimal("0")

    @property
    def is_positive(self) -> bool:
        """Check if amount is positive."""
        return self.amount > Decimal("0")

    @property
    def is_negative(self) -> bool:
        """Check if amount is negative."""
        return self.amount < Decimal("0")

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """
        Round to the currency's decimal places.

        Postconditions:
            - Returns a new Money rounded to the currency's decimal places.
            - Original Money is unchanged (immutable).
        """
        rounded = self.amount.quantize(self.currency.quantum, rounding=rounding)
        return Money(amount=rounded, currency=self.currency)

    def __add__(self, other: Money) -> Money:
        """Add two Money values. Must be same currency."""
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot add Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        """Subtract two Money values. Must be same currency."""
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot subtract Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __abs__(self) -> Money:
        """Absolute value."""
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar."""
        if isinstance(factor, (int, str)):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount > other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
