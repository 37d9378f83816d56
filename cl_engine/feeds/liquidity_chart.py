"""
Liquidity Chart Feed Client

HTTP-клиент для backend сервиса с сырыми per-tick данными ликвидности пула.

API flow:
1. GET /data/liquidity-chart?pool_address=0x... -> {"status", "data": [...]}
2. data -> engine.transform_liquidity -> серия / top-N / гистограмма

Каждый элемент data: {"tick_idx", "liquidity_net", "price0", "price1"}.
Цены из ответа не используются: движок пересчитывает их из тика и decimals.
"""

import logging
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from web3 import Web3

from config import DEFAULT_FEED_MAX_RETRIES, DEFAULT_FEED_TIMEOUT, FeedConfig
from ..engine import PoolLike, LiquidityResponse, transform_liquidity

logger = logging.getLogger(__name__)

LIQUIDITY_CHART_PATH = "/data/liquidity-chart"


# ── Exceptions ──

class LiquidityFeedError(Exception):
    """Базовая ошибка feed."""
    pass


class LiquidityFeedAPIError(LiquidityFeedError):
    """API вернул ошибку (non-200 или невалидный ответ)."""
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"Liquidity feed API error {status_code}: {message}")


class LiquidityFeedTimeoutError(LiquidityFeedError):
    """Таймаут запроса к API."""
    pass


# ── Client ──

class LiquidityChartClient:
    """
    HTTP-клиент для liquidity chart API.

    Использование:
        client = LiquidityChartClient()
        raw = client.fetch_raw_liquidity(pool_address)
        response = client.fetch_liquidity_series(pool_address, pool, transform="histogram")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_FEED_TIMEOUT,
        max_retries: int = DEFAULT_FEED_MAX_RETRIES
    ):
        if base_url is None:
            base_url = FeedConfig.from_env().base_url
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

        # Повторы только для идемпотентного GET: 429 и 5xx с backoff
        retry = Retry(
            total=max_retries,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def fetch_raw_liquidity(self, pool_address: str) -> Dict:
        """
        Получить сырые данные ликвидности пула.

        GET /data/liquidity-chart?pool_address=X

        Args:
            pool_address: Адрес пула

        Returns:
            Конверт {"status": ..., "data": [...]}

        Raises:
            LiquidityFeedError: Невалидный адрес или ошибка соединения
            LiquidityFeedAPIError: Ошибка API
            LiquidityFeedTimeoutError: Таймаут
        """
        if not Web3.is_address(pool_address):
            raise LiquidityFeedError(f"Invalid pool address: {pool_address!r}")
        pool_address = Web3.to_checksum_address(pool_address)

        url = f"{self.base_url}{LIQUIDITY_CHART_PATH}"
        try:
            resp = self.session.get(url, params={"pool_address": pool_address}, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise LiquidityFeedTimeoutError(f"Timeout fetching liquidity ({self.timeout}s)")
        except requests.exceptions.RequestException as e:
            raise LiquidityFeedError(f"Request failed: {e}")

        if resp.status_code != 200:
            raise LiquidityFeedAPIError(resp.status_code, resp.text[:500])

        try:
            body = resp.json()
        except ValueError:
            raise LiquidityFeedAPIError(resp.status_code, "Invalid JSON response")

        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise LiquidityFeedAPIError(resp.status_code, "Missing 'data' list in response")

        logger.debug(f"Fetched {len(body['data'])} liquidity records for {pool_address}")
        return body

    def fetch_liquidity_series(
        self,
        pool_address: str,
        pool: PoolLike,
        transform: str = "default",
        **options
    ) -> LiquidityResponse:
        """
        Получить данные и сразу построить серию для графика.

        Args:
            pool_address: Адрес пула
            pool: PoolMetadata или dict пула (decimals, fee tier)
            transform: "default", "top" или "histogram"
            **options: price_field, top_n, num_bins
        """
        raw = self.fetch_raw_liquidity(pool_address)
        return transform_liquidity(raw, pool, transform=transform, **options)
