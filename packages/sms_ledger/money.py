"""Currency-tagged decimal amounts.

``Money`` pairs an arbitrary-precision :class:`~decimal.Decimal` with an
ISO-4217 code. Arithmetic and ordering are only defined between values of the
same currency; mixing currencies raises :class:`CurrencyMismatchError` because
it is a programming error (convert through :mod:`sms_ledger.normalize`
first). That covers equality too: ``==`` between two currencies raises
rather than quietly answering ``False``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from .errors import CurrencyMismatchError, ParseFailure


# Unsigned digits with an optional fraction; sign comes from the record nature.
_AMOUNT_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")


@dataclass(frozen=True, slots=True, eq=False)
class Money:
    amount: Decimal
    currency: str

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(Decimal(0), currency)

    @classmethod
    def parse(cls, text: str, currency: str) -> Money:
        """Parse a human-formatted amount such as ``"1,234.50"``.

        Whitespace and thousands separators are dropped. What remains must be
        unsigned digits with an optional decimal point; signs, exponents and
        anything else raise :class:`ParseFailure`.
        """

        s = text.strip().replace(",", "").replace(" ", "")
        if not s:
            raise ParseFailure("Amount", text, "amount is empty")
        if _AMOUNT_RE.fullmatch(s) is None:
            raise ParseFailure("Amount", text, "not an unsigned decimal number")
        return cls(Decimal(s), currency)

    def _check(self, other: object) -> Money:
        if not isinstance(other, Money):
            raise TypeError(f"expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(
                f"cannot combine {self.currency} with {other.currency} without normalization"
            )
        return other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount == self._check(other).amount

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def __add__(self, other: Money) -> Money:
        o = self._check(other)
        return Money(self.amount + o.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        o = self._check(other)
        return Money(self.amount - o.amount, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __mul__(self, factor: Decimal | int) -> Money:
        if not isinstance(factor, (Decimal, int)) or isinstance(factor, bool):
            return NotImplemented
        return Money(self.amount * factor, self.currency)

    __rmul__ = __mul__

    def __lt__(self, other: Money) -> bool:
        return self.amount < self._check(other).amount

    def __le__(self, other: Money) -> bool:
        return self.amount <= self._check(other).amount

    def __gt__(self, other: Money) -> bool:
        return self.amount > self._check(other).amount

    def __ge__(self, other: Money) -> bool:
        return self.amount >= self._check(other).amount

    def is_negative(self) -> bool:
        return self.amount < 0

    def __str__(self) -> str:
        return f"{self.currency} {self.amount:,.2f}"


def sum_money(values: Iterable[Money], currency: str) -> Money:
    """Sum same-currency values; an empty input sums to zero in ``currency``."""

    acc = Money.zero(currency)
    for v in values:
        acc = acc + v
    return acc


__all__ = ["Money", "sum_money"]
