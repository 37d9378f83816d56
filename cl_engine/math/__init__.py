from .ticks import (
    TickRange,
    price_to_tick,
    tick_to_price,
    tick_to_human_price,
    align_tick_to_spacing,
    align_price_range,
    full_range_ticks,
    clamp_tick,
    ensure_min_width,
    get_tick_spacing,
)
from .ranges import (
    ConcentratedRange,
    FullRange,
    FULL_RANGE,
    Token0Input,
    Token1Input,
    as_price_range,
    is_price_in_range,
    preset_price_range,
)
from .liquidity import (
    DepositPair,
    calculate_counterpart_amount,
    calculate_full_range_amounts,
    calculate_concentrated_amounts,
)
from .distribution import (
    LiquiditySample,
    LiquidityPoint,
    LiquidityBin,
    build_liquidity_series,
    top_liquidity,
    liquidity_histogram,
    log_liquidity_bins
)
