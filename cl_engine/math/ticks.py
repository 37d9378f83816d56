"""
Tick Mathematics

Основные формулы:
- price(i) = 1.0001^i
- human_price(i) = 1.0001^i * 10^(decimals0 - decimals1)

Tick spacing по fee tier (в процентах):
- 0.01% -> spacing 1
- 0.05% -> spacing 10
- 0.30% -> spacing 60
- 1.00% -> spacing 200
- остальные -> 60

Соглашение о ценах: price_to_tick принимает human price (token1 за token0
с учётом decimals) вместе с decimals обоих токенов, или raw pool price если
decimals не переданы. Нормализацию делает только эта функция.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from config import MIN_TICK, MAX_TICK, TICK_BASE, DEFAULT_TICK_SPACING, lookup_tick_spacing
from ..errors import InvalidPriceError, InvalidInputError

logger = logging.getLogger(__name__)

LOG_TICK_BASE = math.log(TICK_BASE)

# ERC20 decimals - uint8
MAX_TOKEN_DECIMALS = 255


@dataclass(frozen=True)
class TickRange:
    """Выровненный диапазон тиков позиции."""
    tick_lower: int
    tick_upper: int

    @property
    def width(self) -> int:
        return self.tick_upper - self.tick_lower

    def to_dict(self) -> Dict[str, int]:
        return {"tick_lower": self.tick_lower, "tick_upper": self.tick_upper}


def _validate_spacing(tick_spacing: int) -> int:
    if isinstance(tick_spacing, bool) or not isinstance(tick_spacing, int):
        raise ValueError(f"tick_spacing must be an int, got {tick_spacing!r}")
    if tick_spacing <= 0:
        raise ValueError(f"tick_spacing must be > 0, got {tick_spacing}")
    if tick_spacing > MAX_TICK:
        raise ValueError(f"tick_spacing must be <= {MAX_TICK}, got {tick_spacing}")
    return tick_spacing


def _validate_decimals(value, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be an int, got {value!r}")
    try:
        decimals = int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be an int, got {value!r}")
    if decimals != value or not 0 <= decimals <= MAX_TOKEN_DECIMALS:
        raise InvalidInputError(f"{name} must be an int in [0, {MAX_TOKEN_DECIMALS}], got {value!r}")
    return decimals


def decimal_scale(token0_decimals: int, token1_decimals: int) -> float:
    """
    Множитель raw pool price -> human price.

    10^(decimals0 - decimals1)
    """
    d0 = _validate_decimals(token0_decimals, "token0_decimals")
    d1 = _validate_decimals(token1_decimals, "token1_decimals")
    return 10.0 ** (d0 - d1)


def price_to_tick(
    price: float,
    token0_decimals: Optional[int] = None,
    token1_decimals: Optional[int] = None
) -> int:
    """
    Конвертация цены в тик (без выравнивания и без clamp).

    i = floor(log(price) / log(1.0001))

    Args:
        price: Human price (token1 за token0), если переданы decimals,
               иначе raw pool price.
        token0_decimals: Decimals token0 (опционально)
        token1_decimals: Decimals token1 (опционально)

    Returns:
        Tick (целое число), может выходить за [MIN_TICK, MAX_TICK]

    Raises:
        InvalidPriceError: price <= 0, NaN или бесконечность

    Example:
        price_to_tick(1.0)                 # 0
        price_to_tick(3000.0, 18, 6)       # ≈ -196256 (WETH/USDT)
    """
    try:
        price = float(price)
    except (TypeError, ValueError):
        raise InvalidPriceError(f"Price must be a number, got {price!r}")
    if math.isnan(price) or math.isinf(price) or price <= 0:
        raise InvalidPriceError(f"Price must be positive and finite, got {price}")

    if (token0_decimals is None) != (token1_decimals is None):
        raise InvalidInputError("Pass both token0_decimals and token1_decimals or neither")

    scale = 1.0
    if token0_decimals is not None:
        scale = decimal_scale(token0_decimals, token1_decimals)

    # human -> raw: / 10^(decimals0 - decimals1), в лог-пространстве
    log_price = math.log(price) - math.log(scale)
    tick = math.floor(log_price / LOG_TICK_BASE)

    # floor(log/log) может ошибиться на единицу на точных степенях 1.0001
    if MIN_TICK <= tick <= MAX_TICK:
        raw_price = price / scale
        if TICK_BASE ** (tick + 1) <= raw_price:
            tick += 1
        elif TICK_BASE ** tick > raw_price:
            tick -= 1

    return tick


def tick_to_price(tick: int) -> float:
    """
    Конвертация тика в raw pool price: 1.0001^tick.

    Decimal-корректировку делает вызывающий (или tick_to_human_price).
    """
    return TICK_BASE ** tick


def tick_to_human_price(tick: int, token0_decimals: int, token1_decimals: int) -> float:
    """Цена token1 за token0 с учётом decimals."""
    return tick_to_price(tick) * decimal_scale(token0_decimals, token1_decimals)


def align_tick_to_spacing(tick: int, tick_spacing: int, round_down: bool = True) -> int:
    """
    Выравнивание тика к tick_spacing.

    Можно использовать только тики, кратные tick_spacing.

    Args:
        tick: Исходный тик
        tick_spacing: Шаг тиков (зависит от fee tier)
        round_down: True = округление вниз (к -∞), False = вверх (к +∞)

    Returns:
        Выровненный тик
    """
    _validate_spacing(tick_spacing)

    if tick % tick_spacing == 0:
        return tick

    if round_down:
        # Floor division корректна и для отрицательных тиков
        return (tick // tick_spacing) * tick_spacing
    return ((tick // tick_spacing) + 1) * tick_spacing


def align_tick_down(tick: int, tick_spacing: int) -> int:
    """floor(tick / spacing) * spacing: для нижней границы диапазона."""
    return align_tick_to_spacing(tick, tick_spacing, round_down=True)


def align_tick_up(tick: int, tick_spacing: int) -> int:
    """ceil(tick / spacing) * spacing: для верхней границы диапазона."""
    return align_tick_to_spacing(tick, tick_spacing, round_down=False)


def is_tick_aligned(tick: int, tick_spacing: int) -> bool:
    _validate_spacing(tick_spacing)
    return tick % tick_spacing == 0


def full_range_ticks(tick_spacing: int) -> TickRange:
    """
    Самый широкий выровненный диапазон внутри [MIN_TICK, MAX_TICK].

    tick_lower = ceil(MIN_TICK / spacing) * spacing
    tick_upper = floor(MAX_TICK / spacing) * spacing

    Example:
        full_range_ticks(60)  # TickRange(-887220, 887220)
    """
    _validate_spacing(tick_spacing)
    # -(-a // b) == ceil(a / b) для целых
    tick_lower = -(-MIN_TICK // tick_spacing) * tick_spacing
    tick_upper = (MAX_TICK // tick_spacing) * tick_spacing
    return TickRange(tick_lower=tick_lower, tick_upper=tick_upper)


def clamp_tick(tick: int, tick_spacing: Optional[int] = None) -> int:
    """
    Ограничение тика границами решётки.

    Без tick_spacing: [MIN_TICK, MAX_TICK].
    С tick_spacing: выровненные границы full_range_ticks(spacing), чтобы
    результат оставался кратным spacing.
    """
    if tick_spacing is None:
        return max(MIN_TICK, min(MAX_TICK, tick))
    bounds = full_range_ticks(tick_spacing)
    return max(bounds.tick_lower, min(bounds.tick_upper, tick))


def ensure_min_width(tick_lower: int, tick_upper: int, tick_spacing: int) -> TickRange:
    """
    Гарантия ненулевой ширины диапазона.

    Если tick_upper <= tick_lower, tick_upper = tick_lower + spacing.
    Если это выходит за верхнюю выровненную границу, диапазон сдвигается
    вниз на один spacing от неё.
    """
    _validate_spacing(tick_spacing)
    if tick_upper > tick_lower:
        return TickRange(tick_lower=tick_lower, tick_upper=tick_upper)

    tick_upper = tick_lower + tick_spacing
    max_aligned = full_range_ticks(tick_spacing).tick_upper
    if tick_upper > max_aligned:
        tick_upper = max_aligned
        tick_lower = max_aligned - tick_spacing
    logger.debug(f"Collapsed tick range widened to [{tick_lower}, {tick_upper}]")
    return TickRange(tick_lower=tick_lower, tick_upper=tick_upper)


def align_price_range(
    price_lower: float,
    price_upper: float,
    tick_spacing: int,
    token0_decimals: Optional[int] = None,
    token1_decimals: Optional[int] = None
) -> TickRange:
    """
    Диапазон цен -> выровненный диапазон тиков.

    Нижняя граница выравнивается вниз, верхняя вверх, так что диапазон
    после выравнивания не уже запрошенного. Затем clamp и гарантия ширины.

    Args:
        price_lower: Нижняя цена
        price_upper: Верхняя цена
        tick_spacing: Шаг тиков пула
        token0_decimals: Decimals token0 (если цены human)
        token1_decimals: Decimals token1 (если цены human)

    Returns:
        TickRange с tick_lower < tick_upper, оба кратны spacing
    """
    _validate_spacing(tick_spacing)
    raw_lower = price_to_tick(price_lower, token0_decimals, token1_decimals)
    raw_upper = price_to_tick(price_upper, token0_decimals, token1_decimals)

    tick_lower = clamp_tick(align_tick_down(raw_lower, tick_spacing), tick_spacing)
    tick_upper = clamp_tick(align_tick_up(raw_upper, tick_spacing), tick_spacing)

    result = ensure_min_width(tick_lower, tick_upper, tick_spacing)
    logger.debug(
        f"Price range [{price_lower}, {price_upper}] -> raw ticks [{raw_lower}, {raw_upper}] "
        f"-> aligned [{result.tick_lower}, {result.tick_upper}] (spacing {tick_spacing})"
    )
    return result


def get_tick_spacing(fee_tier: float) -> int:
    """
    Получение tick_spacing по fee tier.

    Args:
        fee_tier: Fee в процентах (0.05 = 0.05%, 0.3 = 0.30%)

    Returns:
        tick_spacing; для неизвестного tier - DEFAULT_TICK_SPACING (60)
    """
    spacing = lookup_tick_spacing(fee_tier)
    if spacing is None:
        logger.warning(f"Unknown fee tier {fee_tier!r}, using tick spacing {DEFAULT_TICK_SPACING}")
        return DEFAULT_TICK_SPACING
    return spacing


def get_price_range_for_tick_range(tick_lower: int, tick_upper: int) -> Tuple[float, float]:
    """
    Получение диапазона raw цен для диапазона тиков.

    Returns:
        (price_lower, price_upper)
    """
    return tick_to_price(tick_lower), tick_to_price(tick_upper)
