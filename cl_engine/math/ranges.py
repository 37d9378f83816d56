"""
Price ranges and deposit inputs.

Tagged variants instead of isFullRange / isToken0Input flags:

    PriceRange   = ConcentratedRange(price_lower, price_upper) | FullRange
    DepositInput = Token0Input(amount) | Token1Input(amount)

Every consumer dispatches on the variant type and fails loudly on
anything else.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union

from config import get_range_preset
from ..errors import DegenerateRangeError, InvalidInputError, InvalidPriceError


def _positive_finite_price(value, name: str) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidPriceError(f"{name} must be a number, got {value!r}")
    if math.isnan(price) or math.isinf(price) or price <= 0:
        raise InvalidPriceError(f"{name} must be positive and finite, got {value!r}")
    return price


def to_positive_decimal(value, name: str = "amount") -> Decimal:
    """
    Парсинг суммы в Decimal.

    Принимает int, float, Decimal и числовые строки.

    Raises:
        InvalidInputError: не число, NaN, бесконечность или <= 0
    """
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    try:
        # str() чтобы не тащить двоичный хвост float в Decimal
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if not amount.is_finite():
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    if amount <= 0:
        raise InvalidInputError(f"{name} must be > 0, got {value!r}")
    return amount


@dataclass(frozen=True)
class ConcentratedRange:
    """Диапазон цен позиции: 0 < price_lower < price_upper."""
    price_lower: float
    price_upper: float

    def __post_init__(self):
        lower = _positive_finite_price(self.price_lower, "price_lower")
        upper = _positive_finite_price(self.price_upper, "price_upper")
        if lower >= upper:
            raise DegenerateRangeError(
                f"price_lower must be < price_upper, got [{lower}, {upper}]"
            )
        object.__setattr__(self, "price_lower", lower)
        object.__setattr__(self, "price_upper", upper)


@dataclass(frozen=True)
class FullRange:
    """Позиция на всю решётку тиков."""
    pass


FULL_RANGE = FullRange()

PriceRange = Union[ConcentratedRange, FullRange]


@dataclass(frozen=True)
class Token0Input:
    """Пользователь ввёл сумму token0."""
    amount: Decimal

    def __post_init__(self):
        object.__setattr__(self, "amount", to_positive_decimal(self.amount, "amount"))


@dataclass(frozen=True)
class Token1Input:
    """Пользователь ввёл сумму token1."""
    amount: Decimal

    def __post_init__(self):
        object.__setattr__(self, "amount", to_positive_decimal(self.amount, "amount"))


DepositInput = Union[Token0Input, Token1Input]


def as_price_range(value) -> PriceRange:
    """
    Приведение к PriceRange.

    Принимает готовый вариант, None / "full" (полный диапазон)
    или пару (price_lower, price_upper).
    """
    if isinstance(value, (ConcentratedRange, FullRange)):
        return value
    if value is None or (isinstance(value, str) and value.lower() == "full"):
        return FULL_RANGE
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return ConcentratedRange(price_lower=value[0], price_upper=value[1])
    raise InvalidInputError(f"Cannot interpret {value!r} as a price range")


def is_price_in_range(current_price: float, price_range: PriceRange) -> bool:
    """Текущая цена внутри диапазона (границы включительно)."""
    price = _positive_finite_price(current_price, "current_price")
    if isinstance(price_range, FullRange):
        return True
    if isinstance(price_range, ConcentratedRange):
        return price_range.price_lower <= price <= price_range.price_upper
    raise TypeError(f"Unsupported price range: {price_range!r}")


def preset_price_range(current_price: float, preset: str) -> ConcentratedRange:
    """
    Диапазон по пресету относительно текущей цены.

    Example:
        preset_price_range(2.0, "medium")  # ConcentratedRange(1.0, 4.0)
    """
    price = _positive_finite_price(current_price, "current_price")
    try:
        lower_mult, upper_mult = get_range_preset(preset)
    except ValueError as e:
        raise InvalidInputError(str(e))
    return ConcentratedRange(price_lower=price * lower_mult, price_upper=price * upper_mult)
