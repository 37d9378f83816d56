"""
Concentrated liquidity math engine.

Tick math, deposit amount calculation and liquidity distribution
aggregation for Uniswap V3 style pools.
"""

import logging

from .errors import (
    LiquidityMathError,
    InvalidPriceError,
    InvalidInputError,
    DegenerateRangeError,
    MalformedSampleWarning,
)
from .math import (
    TickRange,
    ConcentratedRange,
    FullRange,
    FULL_RANGE,
    Token0Input,
    Token1Input,
    DepositPair,
    LiquidityPoint,
    LiquidityBin,
    price_to_tick,
    tick_to_price,
)
from .engine import (
    PoolMetadata,
    LiquidityResponse,
    compute_aligned_range,
    compute_counterpart_amount,
    liquidity_series,
    top_liquidity_series,
    histogram_series,
    transform_liquidity,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())
