from .liquidity_chart import (
    LiquidityChartClient,
    LiquidityFeedError,
    LiquidityFeedAPIError,
    LiquidityFeedTimeoutError,
)
