"""
Configuration for the concentrated-liquidity math engine

Единый источник правды для констант движка:
- границы тиков и основание 1.0001
- fee tier -> tick spacing
- точность округления сумм депозита
- параметры агрегации ликвидности (top-N, гистограмма)
- адрес внешнего сервиса с сырыми данными ликвидности
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv


# ============================================================
# TICK LATTICE
# ============================================================

MIN_TICK = -887272
MAX_TICK = 887272

# price(i) = 1.0001^i
TICK_BASE = 1.0001

# ============================================================
# FEE TIERS
# ============================================================

# Fee tier в процентах (как его отдаёт pool metadata: 0.3 = 0.30%)
FEE_TIERS = {
    "LOWEST": 0.01,   # стейблкоины
    "LOW": 0.05,      # стабильные пары
    "MEDIUM": 0.3,    # стандартный tier
    "HIGH": 1.0,      # экзотические пары
}

# Tick spacing для каждого fee tier
TICK_SPACING: Dict[float, int] = {
    0.01: 1,
    0.05: 10,
    0.3: 60,
    1.0: 200,
}

# Неизвестный fee tier -> spacing стандартного 0.30% tier
DEFAULT_TICK_SPACING = 60

# ============================================================
# AMOUNT CALCULATION
# ============================================================

# Количество знаков после запятой в суммах депозита (ROUND_HALF_UP)
AMOUNT_PRECISION = 6

# Точность Decimal контекста для sqrt/деления
DECIMAL_PRECISION = 50

# Цены вне этого диапазона почти всегда означают ошибку источника цены
EXTREME_PRICE_MIN = 1e-6
EXTREME_PRICE_MAX = 1e6

# Пресеты диапазона: множители (lower, upper) к текущей цене
RANGE_PRESETS: Dict[str, Tuple[float, float]] = {
    "wide": (0.1, 10.0),
    "medium": (0.5, 2.0),
    "tight10": (0.9, 1.1),
    "tight25": (0.75, 1.25),
    "tight50": (0.5, 1.5),
}

# ============================================================
# LIQUIDITY AGGREGATION
# ============================================================

# |liquidityNet| <= этого значения считается нулём и отбрасывается
MIN_LIQUIDITY_MAGNITUDE = Decimal(0)

DEFAULT_TOP_N = 10
DEFAULT_NUM_BINS = 20

# max(price)/min(price) выше порога -> логарифмические бины
LOG_SCALE_THRESHOLD = 10.0

PRICE_FIELDS = ("price0", "price1")

# ============================================================
# RAW LIQUIDITY FEED
# ============================================================

DEFAULT_FEED_URL = "http://localhost:8080"
DEFAULT_FEED_TIMEOUT = 15.0
DEFAULT_FEED_MAX_RETRIES = 3


@dataclass
class FeedConfig:
    """Настройки HTTP источника сырых данных ликвидности."""
    base_url: str = DEFAULT_FEED_URL
    timeout: float = DEFAULT_FEED_TIMEOUT
    max_retries: int = DEFAULT_FEED_MAX_RETRIES

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "FeedConfig":
        """
        Загрузка настроек из окружения (и .env файла, если он есть).

        Переменные:
            LIQUIDITY_FEED_URL: базовый URL сервиса
            LIQUIDITY_FEED_TIMEOUT: таймаут запроса в секундах
            LIQUIDITY_FEED_MAX_RETRIES: число повторов для GET
        """
        load_dotenv(env_file)
        base_url = os.getenv("LIQUIDITY_FEED_URL", DEFAULT_FEED_URL).rstrip("/")
        try:
            timeout = float(os.getenv("LIQUIDITY_FEED_TIMEOUT", DEFAULT_FEED_TIMEOUT))
            max_retries = int(os.getenv("LIQUIDITY_FEED_MAX_RETRIES", DEFAULT_FEED_MAX_RETRIES))
        except ValueError as e:
            raise ValueError(f"Invalid liquidity feed setting: {e}")
        if timeout <= 0:
            raise ValueError(f"LIQUIDITY_FEED_TIMEOUT must be > 0, got {timeout}")
        if max_retries < 0:
            raise ValueError(f"LIQUIDITY_FEED_MAX_RETRIES must be >= 0, got {max_retries}")
        return cls(base_url=base_url, timeout=timeout, max_retries=max_retries)


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def lookup_tick_spacing(fee_tier: float) -> Optional[int]:
    """Tick spacing для fee tier в процентах. None если tier неизвестен."""
    try:
        key = round(float(fee_tier), 4)
    except (TypeError, ValueError):
        return None
    return TICK_SPACING.get(key)


def get_range_preset(name: str) -> Tuple[float, float]:
    """Множители пресета диапазона по имени."""
    if name not in RANGE_PRESETS:
        raise ValueError(f"Unknown range preset: {name}. Valid presets: {sorted(RANGE_PRESETS)}")
    return RANGE_PRESETS[name]
