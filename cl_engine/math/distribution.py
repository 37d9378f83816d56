"""
Liquidity Distribution Module

Сырые per-tick дельты ликвидности -> отсортированная по цене серия
и два производных вида для графика:

- top-N: N тиков с наибольшей |liquidityNet|
- гистограмма: фиксированное число бинов по цене, линейных или
  логарифмических (если max/min цены > 10)

Пример: тики 100 (50), 100 (0), 200 (30)
- серия: [(100, 1.0100, 50), (200, 1.0202, 30)] - нулевая дельта отброшена
- top-1: [(100, 1.0100, 50)]

Агрегатор снисходительный: битые записи пропускаются с одним
MalformedSampleWarning на вызов, пустой результат - это не ошибка.
"""

import logging
import math
import warnings
from bisect import bisect_right
from dataclasses import dataclass
from decimal import Context, Decimal, InvalidOperation, localcontext
from typing import Dict, Iterable, List, Optional

from config import (
    DECIMAL_PRECISION,
    DEFAULT_NUM_BINS,
    DEFAULT_TOP_N,
    LOG_SCALE_THRESHOLD,
    MAX_TICK,
    MIN_LIQUIDITY_MAGNITUDE,
    MIN_TICK,
    PRICE_FIELDS,
)
from ..errors import InvalidInputError, MalformedSampleWarning
from .ticks import tick_to_human_price

logger = logging.getLogger(__name__)

_CONTEXT = Context(prec=DECIMAL_PRECISION)

# Порядок |liquidityNet| ограничен половиной Emax, чтобы суммы по бинам не переполнялись
_MAX_LIQUIDITY_EXPONENT = _CONTEXT.Emax // 2

# Имена полей в разных источниках: subgraph (camelCase) и backend (snake_case)
TICK_KEYS = ("tickIndex", "tick_idx", "tickIdx", "tick")
LIQUIDITY_KEYS = ("netLiquidityDelta", "liquidity_net", "liquidityNet", "liquidity")


@dataclass(frozen=True)
class LiquiditySample:
    """Одна сырая запись: тик и знаковая дельта ликвидности."""
    tick: int
    liquidity_net: Decimal


@dataclass(frozen=True)
class LiquidityPoint:
    """Точка серии: тик, human price и |liquidityNet|."""
    tick: int
    price: float
    liquidity: Decimal

    def to_dict(self) -> Dict:
        return {"tick": self.tick, "price": self.price, "liquidity": str(self.liquidity)}


@dataclass(frozen=True)
class LiquidityBin:
    """Бин гистограммы."""
    label: str                    # bin_<index>, index среди всех бинов
    price: float                  # Представительная цена (среднее или геом. среднее)
    liquidity: Decimal            # Сумма ликвидности точек бина
    price_start: float
    price_end: float
    sample_count: int

    def to_dict(self) -> Dict:
        return {
            "tick": self.label,
            "price": self.price,
            "liquidity": str(self.liquidity),
            "price_start": self.price_start,
            "price_end": self.price_end,
            "sample_count": self.sample_count,
        }


def _first_present(record: Dict, keys) -> Optional[object]:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return None


def _parse_tick(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    # Границы до int(): int(Decimal("1e3000000")) строится минутами
    if not d.is_finite() or not MIN_TICK <= d <= MAX_TICK:
        return None
    if d != d.to_integral_value():
        return None
    return int(d)


def _parse_liquidity(value) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    if d and abs(d.adjusted()) > _MAX_LIQUIDITY_EXPONENT:
        return None
    return d


def parse_liquidity_sample(record) -> Optional[LiquiditySample]:
    """
    Парсинг одной сырой записи.

    Args:
        record: dict с тиком и дельтой (tickIndex/tick_idx/tickIdx/tick,
                netLiquidityDelta/liquidity_net/liquidityNet/liquidity)
                или пара (tick, liquidity_net)

    Returns:
        LiquiditySample или None если запись битая
    """
    if isinstance(record, dict):
        raw_tick = _first_present(record, TICK_KEYS)
        raw_liquidity = _first_present(record, LIQUIDITY_KEYS)
    elif isinstance(record, (tuple, list)) and len(record) == 2:
        raw_tick, raw_liquidity = record
    else:
        logger.debug(f"Skipping unsupported liquidity record: {record!r}")
        return None

    tick = _parse_tick(raw_tick)
    liquidity_net = _parse_liquidity(raw_liquidity)
    if tick is None or liquidity_net is None:
        logger.debug(f"Skipping malformed liquidity record: {record!r}")
        return None
    if not MIN_TICK <= tick <= MAX_TICK:
        logger.debug(f"Skipping out-of-bounds tick {tick}")
        return None

    return LiquiditySample(tick=tick, liquidity_net=liquidity_net)


def parse_liquidity_samples(records: Iterable) -> List[LiquiditySample]:
    """Парсинг всех записей, битые пропускаются (одно предупреждение на вызов)."""
    samples = []
    skipped = 0
    for record in records:
        sample = parse_liquidity_sample(record)
        if sample is None:
            skipped += 1
            continue
        samples.append(sample)

    if skipped:
        logger.warning(f"Skipped {skipped} malformed liquidity records")
        warnings.warn(
            f"Skipped {skipped} malformed liquidity records",
            MalformedSampleWarning,
            stacklevel=2,
        )
    return samples


def build_liquidity_series(
    records: Iterable,
    token0_decimals: int,
    token1_decimals: int,
    price_field: str = "price0"
) -> List[LiquidityPoint]:
    """
    Базовая серия для графика.

    1. Отбросить записи с |liquidityNet| <= MIN_LIQUIDITY_MAGNITUDE
    2. price0 = 1.0001^tick * 10^(decimals0 - decimals1), price1 = 1 / price0
    3. liquidity = |liquidityNet|
    4. Сортировка по тику (по возрастанию)

    Args:
        records: Сырые записи (см. parse_liquidity_sample)
        token0_decimals: Decimals token0
        token1_decimals: Decimals token1
        price_field: "price0" (token1 за token0) или "price1" (обратная)

    Returns:
        Список LiquidityPoint, пустой если нет данных
    """
    if price_field not in PRICE_FIELDS:
        raise InvalidInputError(f"price_field must be one of {PRICE_FIELDS}, got {price_field!r}")

    series = []
    for sample in parse_liquidity_samples(records):
        magnitude = sample.liquidity_net.copy_abs()
        if magnitude <= MIN_LIQUIDITY_MAGNITUDE:
            continue

        price = tick_to_human_price(sample.tick, token0_decimals, token1_decimals)
        if price == 0 or math.isinf(price):
            logger.debug(f"Skipping tick {sample.tick}: price not representable")
            continue
        if price_field == "price1":
            price = 1 / price

        series.append(LiquidityPoint(tick=sample.tick, price=price, liquidity=magnitude))

    series.sort(key=lambda p: p.tick)
    logger.debug(f"Built liquidity series: {len(series)} points ({price_field})")
    return series


def top_liquidity(series: List[LiquidityPoint], top_n: int = DEFAULT_TOP_N) -> List[LiquidityPoint]:
    """
    N точек с наибольшей ликвидностью.

    Сортировка стабильная: при равной ликвидности сохраняется порядок серии.
    top_n = 0 даёт пустой список.
    """
    if isinstance(top_n, bool) or not isinstance(top_n, int) or top_n < 0:
        raise InvalidInputError(f"top_n must be an int >= 0, got {top_n!r}")
    ranked = sorted(series, key=lambda p: p.liquidity, reverse=True)
    return ranked[:top_n]


def is_log_scale(prices: List[float], threshold: float = LOG_SCALE_THRESHOLD) -> bool:
    """Логарифмические бины, если max/min > threshold."""
    if not prices:
        return False
    min_price = min(prices)
    max_price = max(prices)
    if min_price <= 0:
        return False
    return max_price / min_price > threshold


def bin_edges(min_price: float, max_price: float, num_bins: int, log_scale: bool) -> List[float]:
    """
    Границы бинов (num_bins + 1 значений).

    Первая граница ровно min_price, последняя ровно max_price, чтобы
    крайние точки не терялись из-за округления float.
    """
    if log_scale:
        log_min = math.log10(min_price)
        step = (math.log10(max_price) - log_min) / num_bins
        edges = [10 ** (log_min + i * step) for i in range(num_bins + 1)]
    else:
        step = (max_price - min_price) / num_bins
        edges = [min_price + i * step for i in range(num_bins + 1)]
    edges[0] = min_price
    edges[-1] = max_price
    return edges


def liquidity_histogram(
    series: List[LiquidityPoint],
    num_bins: int = DEFAULT_NUM_BINS,
    log_scale_threshold: float = LOG_SCALE_THRESHOLD
) -> List[LiquidityBin]:
    """
    Гистограмма ликвидности по цене.

    Бины [start, end), последний [start, end]. Пустые бины не выводятся.
    Сумма ликвидности по бинам равна сумме по серии.

    Args:
        series: Базовая серия (build_liquidity_series)
        num_bins: Число бинов
        log_scale_threshold: Порог max/min для логарифмических бинов

    Returns:
        Список LiquidityBin по возрастанию цены
    """
    if isinstance(num_bins, bool) or not isinstance(num_bins, int) or num_bins < 1:
        raise InvalidInputError(f"num_bins must be an int >= 1, got {num_bins!r}")
    if not series:
        return []

    prices = [p.price for p in series]
    min_price = min(prices)
    max_price = max(prices)
    log_scale = is_log_scale(prices, log_scale_threshold)
    edges = bin_edges(min_price, max_price, num_bins, log_scale)

    sums = [Decimal(0)] * num_bins
    counts = [0] * num_bins
    with localcontext(_CONTEXT):
        for point in series:
            # Цена на границе попадает в бин справа; max_price -> последний бин
            index = min(max(bisect_right(edges, point.price) - 1, 0), num_bins - 1)
            sums[index] += point.liquidity
            counts[index] += 1

    bins = []
    for i in range(num_bins):
        if sums[i] == 0:
            continue
        start, end = edges[i], edges[i + 1]
        center = math.sqrt(start * end) if log_scale else (start + end) / 2
        bins.append(LiquidityBin(
            label=f"bin_{i}",
            price=center,
            liquidity=sums[i],
            price_start=start,
            price_end=end,
            sample_count=counts[i],
        ))

    logger.debug(
        f"Histogram: {len(series)} points -> {len(bins)}/{num_bins} bins "
        f"({'log' if log_scale else 'linear'}, price {min_price:.6g}..{max_price:.6g})"
    )
    return bins


def format_price(price: float) -> str:
    """Цена для подписи: < 0.001 в экспоненциальной записи, иначе 4 знака."""
    if price < 0.001:
        return f"{price:.2e}"
    return f"{price:.4f}"


def format_liquidity(value) -> str:
    """Ликвидность с суффиксом B/M/K."""
    value = float(value)
    if value >= 1e9:
        return f"{value / 1e9:.2f}B"
    if value >= 1e6:
        return f"{value / 1e6:.2f}M"
    if value >= 1e3:
        return f"{value / 1e3:.2f}K"
    return f"{value:.2f}"


def log_liquidity_bins(bins: List[LiquidityBin]) -> None:
    """
    Вывод гистограммы в лог.

    Args:
        bins: Бины из liquidity_histogram
    """
    logger.info("\n" + "=" * 75)
    logger.info("LIQUIDITY DISTRIBUTION")
    logger.info("=" * 75)

    total = sum((b.liquidity for b in bins), Decimal(0))

    logger.info(f"\n{'Bin':<8} {'Price Range':<30} {'Liquidity':<12} {'Share'}")
    logger.info("-" * 75)

    for b in bins:
        share = float(b.liquidity / total * 100) if total else 0.0
        bar = "█" * int(share / 3)
        price_range = f"{format_price(b.price_start)} - {format_price(b.price_end)}"
        logger.info(f"{b.label:<8} {price_range:<30} {format_liquidity(b.liquidity):<12} {share:>5.1f}% {bar}")

    logger.info("-" * 75)
    logger.info(f"TOTAL: {format_liquidity(total)} across {len(bins)} bins")
