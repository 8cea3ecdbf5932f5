from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from functools import total_ordering
from typing import Union
from pydantic import BaseModel, Field

from recohub.domain.exceptions import CurrencyMismatchError

DEFAULT_CURRENCY = "BRL"
_CENT = Decimal("0.01")


@total_ordering
class Money(BaseModel):
    """
    Monetary quantity stored as integer minor units (cents).
    All arithmetic and comparisons stay on integers; the float/Decimal
    conversions below are explicit boundary operations.
    """
    amount: int                                  # minor units, e.g. 9990 = 99,90
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)

    model_config = {"frozen": True}  # immuable = safe

    @classmethod
    def from_cents(cls, cents: int, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=int(cents), currency=currency)

    @classmethod
    def from_decimal(cls, value: Union[Decimal, float, int, str], currency: str = DEFAULT_CURRENCY) -> "Money":
        """Convert a decimal price (e.g. '99.90') to cents, rounding half-up."""
        cents = (Decimal(str(value)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return cls(amount=int(cents), currency=currency)

    @property
    def decimal(self) -> Decimal:
        return (Decimal(self.amount) / 100).quantize(_CENT)

    def as_float(self) -> float:
        # lossy: only used where a float scalar is required (feature vectors)
        return self.amount / 100

    @property
    def formatted(self) -> str:
        """Display form with ',' as decimal and '.' as thousands separator, e.g. '1.234,56'."""
        sign = "-" if self.amount < 0 else ""
        units, cents = divmod(abs(self.amount), 100)
        return f"{sign}{units:,}".replace(",", ".") + f",{cents:02d}"

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "currency": self.currency,
            "formatted": self.formatted,
            "decimal": str(self.decimal),
        }

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(f"Currency mismatch: {self.currency} vs {other.currency}")

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __str__(self) -> str:
        return f"{self.currency} {self.formatted}"
