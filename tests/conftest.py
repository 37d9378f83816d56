"""
Shared fixtures for all tests.
"""

import pytest

from cl_engine.engine import PoolMetadata


@pytest.fixture
def pool():
    """Пул 18/6 decimals, fee tier 0.3%."""
    return PoolMetadata(token0_decimals=18, token1_decimals=6, fee_tier=0.3)


@pytest.fixture
def flat_pool():
    """Пул с одинаковыми decimals: human price == raw price."""
    return PoolMetadata(token0_decimals=18, token1_decimals=18, fee_tier=0.05)


@pytest.fixture
def raw_records():
    """Сырые записи в формате backend (tick_idx / liquidity_net строками)."""
    return [
        {"tick_idx": "200", "liquidity_net": "30", "price0": "0", "price1": "0"},
        {"tick_idx": "100", "liquidity_net": "50", "price0": "0", "price1": "0"},
        {"tick_idx": "100", "liquidity_net": "0", "price0": "0", "price1": "0"},
        {"tick_idx": "-300", "liquidity_net": "-120", "price0": "0", "price1": "0"},
    ]


@pytest.fixture
def feed_envelope(raw_records):
    """Ответ liquidity-chart API."""
    return {"status": "success", "active_liquidity": [], "data": raw_records}
