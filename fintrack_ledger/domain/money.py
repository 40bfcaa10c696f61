"""Exact decimal money type used for every balance and amount in the ledger"""

from contextlib import contextmanager
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow, localcontext
from typing import Iterable, Union

from fintrack_ledger.domain.exceptions import InvalidAmountError

# Wide enough for any realistic balance; Inexact is trapped so nothing is ever rounded
_EXACT_CONTEXT = Context(prec=60, traps=[InvalidOperation, Inexact, Overflow, DivisionByZero])

MoneyLike = Union["MoneyAmount", Decimal, int, str]


@contextmanager
def _exact_arithmetic():
    """Run under the exact context; a result needing rounding is an invalid amount"""
    try:
        with localcontext(_EXACT_CONTEXT):
            yield
    except Inexact as e:
        raise InvalidAmountError("Amount is too large or too precise to handle exactly") from e


class MoneyAmount:
    """
    Immutable fixed-point money value backed by ``decimal.Decimal``.

    Floats are rejected at construction, so binary floating point can never
    leak into a balance computation. Arithmetic runs under a context that
    raises instead of rounding.
    """

    __slots__ = ("_value",)

    def __init__(self, value: MoneyLike = 0):
        if isinstance(value, MoneyAmount):
            self._value = value._value
            return
        if isinstance(value, bool) or isinstance(value, float):
            raise TypeError(f"MoneyAmount cannot be built from {type(value).__name__}")
        if isinstance(value, Decimal):
            parsed = value
        elif isinstance(value, int):
            parsed = Decimal(value)
        elif isinstance(value, str):
            try:
                parsed = Decimal(value.strip())
            except InvalidOperation as e:
                raise ValueError(f"Invalid money amount: {value!r}") from e
        else:
            raise TypeError(f"MoneyAmount cannot be built from {type(value).__name__}")

        if not parsed.is_finite():
            raise ValueError(f"Money amount must be finite: {value!r}")
        self._value = parsed

    @classmethod
    def zero(cls) -> "MoneyAmount":
        return cls(0)

    @staticmethod
    def _coerce(other: MoneyLike) -> "MoneyAmount":
        return other if isinstance(other, MoneyAmount) else MoneyAmount(other)

    def add(self, other: MoneyLike) -> "MoneyAmount":
        with _exact_arithmetic():
            return MoneyAmount(self._value + self._coerce(other)._value)

    def subtract(self, other: MoneyLike) -> "MoneyAmount":
        with _exact_arithmetic():
            return MoneyAmount(self._value - self._coerce(other)._value)

    def multiply(self, factor: Union[int, Decimal]) -> "MoneyAmount":
        """Scale by an integer or Decimal factor (never a float)"""
        if isinstance(factor, (bool, float)) or not isinstance(factor, (int, Decimal)):
            raise TypeError(f"Cannot multiply money by {type(factor).__name__}")
        with _exact_arithmetic():
            return MoneyAmount(self._value * factor)

    def negate(self) -> "MoneyAmount":
        with _exact_arithmetic():
            return MoneyAmount(-self._value)

    def is_less_than(self, other: MoneyLike) -> bool:
        return self._value < self._coerce(other)._value

    def is_greater_than_or_equal(self, other: MoneyLike) -> bool:
        return self._value >= self._coerce(other)._value

    def is_positive(self) -> bool:
        return self._value > 0

    def is_zero(self) -> bool:
        return self._value == 0

    def as_decimal(self) -> Decimal:
        return self._value

    # Operator protocol delegates to the named operations above

    def __add__(self, other: MoneyLike) -> "MoneyAmount":
        return self.add(other)

    def __sub__(self, other: MoneyLike) -> "MoneyAmount":
        return self.subtract(other)

    def __neg__(self) -> "MoneyAmount":
        return self.negate()

    def __lt__(self, other: MoneyLike) -> bool:
        return self.is_less_than(other)

    def __le__(self, other: MoneyLike) -> bool:
        return self._value <= self._coerce(other)._value

    def __gt__(self, other: MoneyLike) -> bool:
        return self._value > self._coerce(other)._value

    def __ge__(self, other: MoneyLike) -> bool:
        return self.is_greater_than_or_equal(other)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MoneyAmount):
            return self._value == other._value
        if isinstance(other, (Decimal, int)) and not isinstance(other, bool):
            return self._value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f"MoneyAmount('{self._value}')"

    def __deepcopy__(self, memo) -> "MoneyAmount":
        return self


def sum_of(amounts: Iterable[MoneyAmount]) -> MoneyAmount:
    """Exact sum of money amounts (zero for an empty iterable)"""
    total = MoneyAmount.zero()
    for amount in amounts:
        total = total.add(amount)
    return total
