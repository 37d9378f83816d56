"""
Liquidity Engine API

Точки входа для внешних модулей (UI, backend, feed adapter):

1. compute_aligned_range - диапазон цен -> выровненные тики для mint
2. compute_counterpart_amount - вторая сумма депозита
3. liquidity_series / top_liquidity_series / histogram_series - данные
   для графика ликвидности в конверте {"status", "series"}

Математика падает с типизированными ошибками, а функции графика
возвращают status="error": UI показывает пустой график, а не трейсбек.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from config import DEFAULT_NUM_BINS, DEFAULT_TOP_N
from .errors import InvalidInputError, LiquidityMathError
from .math.distribution import build_liquidity_series, liquidity_histogram, top_liquidity
from .math.liquidity import DepositPair, calculate_counterpart_amount, validate_current_price
from .math.ranges import DepositInput, FullRange, as_price_range
from .math.ticks import (
    TickRange,
    align_price_range,
    decimal_scale,
    full_range_ticks,
    get_tick_spacing,
)

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

TRANSFORM_DEFAULT = "default"
TRANSFORM_TOP = "top"
TRANSFORM_HISTOGRAM = "histogram"

# Старое имя из фронтенда
_TRANSFORM_ALIASES = {"topLiquidity": TRANSFORM_TOP}


@dataclass(frozen=True)
class PoolMetadata:
    """Параметры пула, нужные движку."""
    token0_decimals: int
    token1_decimals: int
    fee_tier: float               # В процентах: 0.3 = 0.30%

    def __post_init__(self):
        # decimal_scale валидирует оба decimals
        decimal_scale(self.token0_decimals, self.token1_decimals)
        object.__setattr__(self, "token0_decimals", int(self.token0_decimals))
        object.__setattr__(self, "token1_decimals", int(self.token1_decimals))
        try:
            fee_tier = float(self.fee_tier)
        except (TypeError, ValueError):
            raise InvalidInputError(f"fee_tier must be a number, got {self.fee_tier!r}")
        object.__setattr__(self, "fee_tier", fee_tier)

    @property
    def tick_spacing(self) -> int:
        return get_tick_spacing(self.fee_tier)

    @classmethod
    def from_dict(cls, data: Dict) -> "PoolMetadata":
        """
        Создание из записи пула.

        Поддерживаемые формы:
            {"token0Decimals": 18, "token1Decimals": 6, "feeTier": 0.3}
            {"token0_decimals": 18, "token1_decimals": 6, "fee_tier": 0.3}
            {"token0": {"decimals": 18}, "token1": {"decimals": 6}, "fee_tier": 0.3}
        """
        def pick(*keys):
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        token0_decimals = pick("token0Decimals", "token0_decimals")
        token1_decimals = pick("token1Decimals", "token1_decimals")
        if token0_decimals is None and isinstance(data.get("token0"), dict):
            token0_decimals = data["token0"].get("decimals")
        if token1_decimals is None and isinstance(data.get("token1"), dict):
            token1_decimals = data["token1"].get("decimals")
        fee_tier = pick("feeTier", "fee_tier")

        if token0_decimals is None or token1_decimals is None or fee_tier is None:
            raise InvalidInputError(f"Incomplete pool metadata: {data!r}")
        return cls(
            token0_decimals=token0_decimals,
            token1_decimals=token1_decimals,
            fee_tier=fee_tier,
        )


@dataclass
class LiquidityResponse:
    """Конверт ответа для графика ликвидности."""
    status: str
    series: List = field(default_factory=list)
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> Dict:
        result = {
            "status": self.status,
            "series": [item.to_dict() for item in self.series],
        }
        if self.message is not None:
            result["message"] = self.message
        return result


PoolLike = Union[PoolMetadata, Dict]


def _as_pool(pool: PoolLike) -> PoolMetadata:
    if isinstance(pool, PoolMetadata):
        return pool
    if isinstance(pool, dict):
        return PoolMetadata.from_dict(pool)
    raise InvalidInputError(f"Expected PoolMetadata or dict, got {type(pool).__name__}")


def compute_aligned_range(
    price_range,
    fee_tier: float,
    token0_decimals: Optional[int] = None,
    token1_decimals: Optional[int] = None
) -> TickRange:
    """
    Выровненный диапазон тиков для позиции.

    Args:
        price_range: FULL_RANGE, ConcentratedRange или (price_lower, price_upper)
        fee_tier: Fee tier пула в процентах
        token0_decimals: Decimals token0 (если цены human)
        token1_decimals: Decimals token1 (если цены human)

    Returns:
        TickRange, кратный tick spacing пула

    Example:
        compute_aligned_range(FULL_RANGE, 0.3)   # TickRange(-887220, 887220)
    """
    price_range = as_price_range(price_range)
    tick_spacing = get_tick_spacing(fee_tier)

    if isinstance(price_range, FullRange):
        result = full_range_ticks(tick_spacing)
    else:
        result = align_price_range(
            price_range.price_lower,
            price_range.price_upper,
            tick_spacing,
            token0_decimals,
            token1_decimals,
        )

    logger.debug(f"Aligned range for fee tier {fee_tier}: [{result.tick_lower}, {result.tick_upper}]")
    return result


def compute_counterpart_amount(deposit: DepositInput, current_price: float, price_range) -> DepositPair:
    """Вторая сумма депозита. price_range принимает то же, что и compute_aligned_range."""
    validate_current_price(current_price)
    return calculate_counterpart_amount(deposit, current_price, as_price_range(price_range))


def _unwrap_records(raw) -> Optional[List]:
    """
    Записи из ответа feed или готового списка.

    Returns:
        Список записей или None если источник вернул status != success
    """
    if isinstance(raw, dict):
        status = raw.get("status", STATUS_SUCCESS)
        if status != STATUS_SUCCESS:
            return None
        records = raw.get("data")
        if records is None:
            records = raw.get("active_liquidity")
        if records is None:
            return []
        raw = records
    if isinstance(raw, (list, tuple)):
        return list(raw)
    raise InvalidInputError(f"Expected a list of records or a feed envelope, got {type(raw).__name__}")


def _respond(name: str, raw, build: Callable[[List], List]) -> LiquidityResponse:
    try:
        records = _unwrap_records(raw)
        if records is None:
            status = raw.get("status")
            logger.error(f"{name}: liquidity feed returned status {status!r}")
            return LiquidityResponse(status=STATUS_ERROR, message=f"Liquidity feed status: {status}")
        series = build(records)
    except LiquidityMathError as e:
        logger.error(f"{name} failed: {e}")
        return LiquidityResponse(status=STATUS_ERROR, message=str(e))
    return LiquidityResponse(status=STATUS_SUCCESS, series=series)


def liquidity_series(raw, pool: PoolLike, price_field: str = "price0") -> LiquidityResponse:
    """Базовая серия (тик, цена, |liquidityNet|) по возрастанию тика."""
    def build(records):
        meta = _as_pool(pool)
        return build_liquidity_series(records, meta.token0_decimals, meta.token1_decimals, price_field)

    return _respond("liquidity_series", raw, build)


def top_liquidity_series(
    raw,
    pool: PoolLike,
    top_n: int = DEFAULT_TOP_N,
    price_field: str = "price0"
) -> LiquidityResponse:
    """Top-N тиков по ликвидности."""
    def build(records):
        meta = _as_pool(pool)
        series = build_liquidity_series(records, meta.token0_decimals, meta.token1_decimals, price_field)
        return top_liquidity(series, top_n)

    return _respond("top_liquidity_series", raw, build)


def histogram_series(
    raw,
    pool: PoolLike,
    num_bins: int = DEFAULT_NUM_BINS,
    price_field: str = "price0"
) -> LiquidityResponse:
    """Гистограмма ликвидности по цене."""
    def build(records):
        meta = _as_pool(pool)
        series = build_liquidity_series(records, meta.token0_decimals, meta.token1_decimals, price_field)
        return liquidity_histogram(series, num_bins)

    return _respond("histogram_series", raw, build)


def transform_liquidity(
    raw,
    pool: PoolLike,
    transform: str = TRANSFORM_DEFAULT,
    price_field: str = "price0",
    top_n: int = DEFAULT_TOP_N,
    num_bins: int = DEFAULT_NUM_BINS
) -> LiquidityResponse:
    """
    Выбор представления по имени.

    Args:
        raw: Ответ feed или список записей
        pool: PoolMetadata или dict пула
        transform: "default", "top" ("topLiquidity") или "histogram"
        price_field: "price0" или "price1"
        top_n: Размер top-N
        num_bins: Число бинов гистограммы
    """
    transform = _TRANSFORM_ALIASES.get(transform, transform)
    if transform == TRANSFORM_DEFAULT:
        return liquidity_series(raw, pool, price_field)
    if transform == TRANSFORM_TOP:
        return top_liquidity_series(raw, pool, top_n, price_field)
    if transform == TRANSFORM_HISTOGRAM:
        return histogram_series(raw, pool, num_bins, price_field)

    logger.error(f"Unknown transform type: {transform!r}")
    return LiquidityResponse(status=STATUS_ERROR, message=f"Unknown transform type: {transform}")
