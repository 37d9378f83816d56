"""
Concentrated Liquidity Amount Mathematics

Расчёт второй суммы депозита по введённой сумме одного токена.

Виртуальная ликвидность (sqrt-цены):
- L = amount0 / (1/sqrt(a) - 1/sqrt(b))
- L = amount1 / (sqrt(b) - sqrt(a))
- amount0 = L * (1/sqrt(a) - 1/sqrt(b))
- amount1 = L * (sqrt(b) - sqrt(a))

Три режима для концентрированного диапазона [lower, upper]:
1. current <= lower: позиция целиком в token0
2. current >= upper: позиция целиком в token1
3. lower < current < upper: нужны оба токена

Полный диапазон считается отдельно: 50/50 по стоимости по текущей цене
(упрощение для UX, не предел формул выше).

Все суммы: отрицательные -> 0, затем округление до AMOUNT_PRECISION
знаков по ROUND_HALF_UP.
"""

import logging
import math
from dataclasses import dataclass
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Dict, Tuple

from config import AMOUNT_PRECISION, DECIMAL_PRECISION, EXTREME_PRICE_MIN, EXTREME_PRICE_MAX
from ..errors import DegenerateRangeError, InvalidInputError, InvalidPriceError
from .ranges import (
    ConcentratedRange,
    DepositInput,
    FullRange,
    PriceRange,
    Token0Input,
    Token1Input,
)

logger = logging.getLogger(__name__)

# Свой контекст вместо getcontext(): глобальный decimal контекст потока не трогаем
_CONTEXT = Context(prec=DECIMAL_PRECISION)
_QUANTUM = Decimal(1).scaleb(-AMOUNT_PRECISION)


@dataclass(frozen=True)
class DepositPair:
    """Пара сумм депозита в human units (с учётом decimals)."""
    amount0: Decimal
    amount1: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {"amount0": str(self.amount0), "amount1": str(self.amount1)}

    def to_base_units(self, token0_decimals: int, token1_decimals: int) -> Tuple[int, int]:
        """Суммы в минимальных единицах токенов (wei) для транзакции."""
        return (
            to_base_units(self.amount0, token0_decimals),
            to_base_units(self.amount1, token1_decimals),
        )


def decimal_sqrt(value) -> Decimal:
    """
    Высокоточный квадратный корень через Decimal.

    Args:
        value: Неотрицательное число

    Returns:
        Decimal результат с точностью DECIMAL_PRECISION
    """
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    if d < 0:
        raise InvalidInputError(f"Cannot take sqrt of negative value {value!r}")
    with localcontext(_CONTEXT):
        return d.sqrt()


def to_base_units(amount: Decimal, decimals: int) -> int:
    """
    Точное преобразование суммы в минимальные единицы токена.

    Example:
        >>> to_base_units(Decimal("1.5"), 6)
        1500000
    """
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise InvalidInputError(f"decimals must be a non-negative int, got {decimals!r}")
    amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    with localcontext(_CONTEXT):
        # Отбрасываем дробную часть (к нулю), суммы неотрицательные
        return int(amount.scaleb(decimals))


def finalize_amount(value: Decimal) -> Decimal:
    """Отрицательный шум -> 0, затем округление до AMOUNT_PRECISION (ROUND_HALF_UP)."""
    with localcontext(_CONTEXT):
        if value < 0:
            value = Decimal(0)
        try:
            return value.quantize(_QUANTUM, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise InvalidInputError(f"Amount {value} is too large to represent")


def validate_current_price(price) -> float:
    """
    Проверка текущей рыночной цены.

    Raises:
        InvalidPriceError: цена <= 0, NaN или бесконечность

    Экстремальные цены (вне [EXTREME_PRICE_MIN, EXTREME_PRICE_MAX]) только
    логируются: источник цены мог ошибиться, но решает вызывающий.
    """
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise InvalidPriceError(f"Current price must be a number, got {price!r}")
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise InvalidPriceError(f"Current price must be positive and finite, got {price!r}")
    if value < EXTREME_PRICE_MIN or value > EXTREME_PRICE_MAX:
        logger.warning(f"Extreme current price detected: {value}")
    return value


def _to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _ordered(sqrt_a: Decimal, sqrt_b: Decimal) -> Tuple[Decimal, Decimal]:
    if sqrt_a > sqrt_b:
        return sqrt_b, sqrt_a
    return sqrt_a, sqrt_b


def liquidity_for_amount0(sqrt_price_a, sqrt_price_b, amount0) -> Decimal:
    """
    Расчёт liquidity по количеству token0.

    L = amount0 / (1/sqrt_a - 1/sqrt_b)

    Raises:
        DegenerateRangeError: sqrt_a == sqrt_b
    """
    sqrt_a, sqrt_b = _ordered(_to_decimal(sqrt_price_a), _to_decimal(sqrt_price_b))
    if sqrt_a <= 0:
        raise DegenerateRangeError("sqrt prices must be > 0")
    with localcontext(_CONTEXT):
        denominator = 1 / sqrt_a - 1 / sqrt_b
        if denominator == 0:
            raise DegenerateRangeError("Zero-width range: sqrt_price_a == sqrt_price_b")
        return _to_decimal(amount0) / denominator


def liquidity_for_amount1(sqrt_price_a, sqrt_price_b, amount1) -> Decimal:
    """
    Расчёт liquidity по количеству token1.

    L = amount1 / (sqrt_b - sqrt_a)

    Raises:
        DegenerateRangeError: sqrt_a == sqrt_b
    """
    sqrt_a, sqrt_b = _ordered(_to_decimal(sqrt_price_a), _to_decimal(sqrt_price_b))
    with localcontext(_CONTEXT):
        denominator = sqrt_b - sqrt_a
        if denominator == 0:
            raise DegenerateRangeError("Zero-width range: sqrt_price_a == sqrt_price_b")
        return _to_decimal(amount1) / denominator


def amount0_for_liquidity(sqrt_price_a, sqrt_price_b, liquidity) -> Decimal:
    """amount0 = L * (1/sqrt_a - 1/sqrt_b)"""
    sqrt_a, sqrt_b = _ordered(_to_decimal(sqrt_price_a), _to_decimal(sqrt_price_b))
    if sqrt_a <= 0:
        raise DegenerateRangeError("sqrt prices must be > 0")
    with localcontext(_CONTEXT):
        return _to_decimal(liquidity) * (1 / sqrt_a - 1 / sqrt_b)


def amount1_for_liquidity(sqrt_price_a, sqrt_price_b, liquidity) -> Decimal:
    """amount1 = L * (sqrt_b - sqrt_a)"""
    sqrt_a, sqrt_b = _ordered(_to_decimal(sqrt_price_a), _to_decimal(sqrt_price_b))
    with localcontext(_CONTEXT):
        return _to_decimal(liquidity) * (sqrt_b - sqrt_a)


def calculate_full_range_amounts(deposit: DepositInput, current_price: float) -> DepositPair:
    """
    Полный диапазон: 50/50 по стоимости.

    token0 input: amount1 = amount0 * price
    token1 input: amount0 = amount1 / price
    """
    price = _to_decimal(validate_current_price(current_price))

    with localcontext(_CONTEXT):
        if isinstance(deposit, Token0Input):
            return DepositPair(
                amount0=deposit.amount,
                amount1=finalize_amount(deposit.amount * price),
            )
        if isinstance(deposit, Token1Input):
            return DepositPair(
                amount0=finalize_amount(deposit.amount / price),
                amount1=deposit.amount,
            )
    raise TypeError(f"Unsupported deposit input: {deposit!r}")


def calculate_concentrated_amounts(
    deposit: DepositInput,
    current_price: float,
    price_range: ConcentratedRange
) -> DepositPair:
    """
    Концентрированный диапазон: вторая сумма по формулам виртуальной ликвидности.

    Args:
        deposit: Token0Input или Token1Input
        current_price: Текущая цена (token1 за token0)
        price_range: Диапазон позиции

    Returns:
        DepositPair, введённая сторона без изменений

    Raises:
        DegenerateRangeError: диапазон нулевой ширины
    """
    if not isinstance(price_range, ConcentratedRange):
        raise TypeError(f"Expected ConcentratedRange, got {price_range!r}")

    price = _to_decimal(validate_current_price(current_price))
    price_lower = _to_decimal(price_range.price_lower)
    price_upper = _to_decimal(price_range.price_upper)

    sqrt_lower = decimal_sqrt(price_lower)
    sqrt_upper = decimal_sqrt(price_upper)
    sqrt_current = decimal_sqrt(price)
    if sqrt_lower == sqrt_upper:
        raise DegenerateRangeError(f"Zero-width range [{price_lower}, {price_upper}]")

    if isinstance(deposit, Token0Input):
        amount0 = deposit.amount
        if price <= price_lower:
            # Позиция выше текущей цены: token1 не нужен
            regime = "below"
            amount1 = Decimal(0)
        elif price >= price_upper:
            regime = "above"
            liquidity = liquidity_for_amount0(sqrt_lower, sqrt_upper, amount0)
            amount1 = amount1_for_liquidity(sqrt_lower, sqrt_upper, liquidity)
        else:
            regime = "in_range"
            liquidity = liquidity_for_amount0(sqrt_current, sqrt_upper, amount0)
            amount1 = amount1_for_liquidity(sqrt_lower, sqrt_current, liquidity)
        result = DepositPair(amount0=amount0, amount1=finalize_amount(amount1))

    elif isinstance(deposit, Token1Input):
        amount1 = deposit.amount
        if price <= price_lower:
            regime = "below"
            liquidity = liquidity_for_amount1(sqrt_lower, sqrt_upper, amount1)
            amount0 = amount0_for_liquidity(sqrt_lower, sqrt_upper, liquidity)
        elif price >= price_upper:
            # Позиция ниже текущей цены: token0 не нужен
            regime = "above"
            amount0 = Decimal(0)
        else:
            regime = "in_range"
            liquidity = liquidity_for_amount1(sqrt_lower, sqrt_current, amount1)
            amount0 = amount0_for_liquidity(sqrt_current, sqrt_upper, liquidity)
        result = DepositPair(amount0=finalize_amount(amount0), amount1=amount1)

    else:
        raise TypeError(f"Unsupported deposit input: {deposit!r}")

    logger.debug(
        f"Counterpart ({regime}, price {price}, range [{price_lower}, {price_upper}]): "
        f"amount0={result.amount0} amount1={result.amount1}"
    )
    return result


def calculate_counterpart_amount(
    deposit: DepositInput,
    current_price: float,
    price_range: PriceRange
) -> DepositPair:
    """
    Вторая сумма депозита для полного или концентрированного диапазона.

    Example:
        >>> calculate_counterpart_amount(Token0Input(1), 2000.0, FULL_RANGE)
        DepositPair(amount0=Decimal('1'), amount1=Decimal('2000.000000'))
    """
    if isinstance(price_range, FullRange):
        return calculate_full_range_amounts(deposit, current_price)
    if isinstance(price_range, ConcentratedRange):
        return calculate_concentrated_amounts(deposit, current_price, price_range)
    raise TypeError(f"Unsupported price range: {price_range!r}")
