"""
Tests for cl_engine.math.distribution module.

Covers:
- parse_liquidity_sample / parse_liquidity_samples (lenient parsing)
- build_liquidity_series (filter, prices, sorting)
- top_liquidity
- is_log_scale / bin_edges / liquidity_histogram (linear and log binning)
- format_price / format_liquidity / log_liquidity_bins
"""

import logging
import math
import warnings
from decimal import Context, Decimal, localcontext

import pytest

from config import MAX_TICK
from cl_engine.errors import InvalidInputError, MalformedSampleWarning
from cl_engine.math.distribution import (
    LiquidityBin,
    LiquidityPoint,
    LiquiditySample,
    bin_edges,
    build_liquidity_series,
    format_liquidity,
    format_price,
    is_log_scale,
    liquidity_histogram,
    log_liquidity_bins,
    parse_liquidity_sample,
    parse_liquidity_samples,
    top_liquidity,
)
from cl_engine.math.ticks import tick_to_price


def point(tick, price, liquidity):
    return LiquidityPoint(tick=tick, price=price, liquidity=Decimal(liquidity))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParseLiquiditySample:
    """Tests for parse_liquidity_sample(record)."""

    @pytest.mark.parametrize("record", [
        {"tickIndex": 100, "netLiquidityDelta": "50"},
        {"tick_idx": "100", "liquidity_net": "50"},
        {"tickIdx": "100", "liquidityNet": 50},
        {"tick": 100, "liquidity": Decimal(50)},
        (100, "50"),
        [100, 50.0],
    ], ids=["subgraph", "backend", "camel", "plain", "tuple", "list"])
    def test_supported_shapes(self, record):
        assert parse_liquidity_sample(record) == LiquiditySample(tick=100, liquidity_net=Decimal(50))

    def test_negative_delta_kept_signed(self):
        sample = parse_liquidity_sample({"tick_idx": "-60", "liquidity_net": "-123456789012345678901234567890"})
        assert sample.tick == -60
        assert sample.liquidity_net == Decimal("-123456789012345678901234567890")

    def test_integral_float_tick_string(self):
        assert parse_liquidity_sample({"tick": "120.0", "liquidity": "1"}).tick == 120

    @pytest.mark.parametrize("record", [
        {"tick": "abc", "liquidity": "1"},
        {"tick": "1.5", "liquidity": "1"},
        {"tick": 1, "liquidity": "NaN"},
        {"tick": 1, "liquidity": "Infinity"},
        {"tick": 1, "liquidity": "x"},
        {"tick": True, "liquidity": "1"},
        {"tick": MAX_TICK + 1, "liquidity": "1"},
        {"tick": "1e3000000", "liquidity": "1"},
        {"tick": "-1e3000000", "liquidity": "1"},
        {"tick": 1, "liquidity": "1e1000000"},
        {"tick": 1, "liquidity": "-1e600000"},
        {"liquidity": "1"},
        {"tick": 1},
        "100:50",
        (1, 2, 3),
        None,
    ], ids=["bad-tick", "fractional-tick", "nan", "inf", "bad-liq", "bool-tick", "out-of-bounds",
            "huge-tick", "huge-negative-tick", "huge-liq", "huge-negative-liq",
            "no-tick", "no-liq", "string", "triple", "none"])
    def test_malformed_returns_none(self, record):
        assert parse_liquidity_sample(record) is None


class TestParseLiquiditySamples:
    """Tests for parse_liquidity_samples(records)."""

    def test_all_valid_no_warning(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            samples = parse_liquidity_samples([{"tick": 1, "liquidity": 1}, (2, 2)])
        assert len(samples) == 2

    def test_skips_bad_records_with_single_warning(self, caplog):
        records = [{"tick": 1, "liquidity": 1}, {"tick": "x"}, None, (2, 2)]
        with caplog.at_level(logging.WARNING, logger="cl_engine.math.distribution"):
            with pytest.warns(MalformedSampleWarning) as record:
                samples = parse_liquidity_samples(records)
        assert [s.tick for s in samples] == [1, 2]
        assert len(record) == 1
        assert "Skipped 2 malformed" in caplog.text

    def test_empty(self):
        assert parse_liquidity_samples([]) == []


# ---------------------------------------------------------------------------
# build_liquidity_series
# ---------------------------------------------------------------------------

class TestBuildLiquiditySeries:
    """Tests for build_liquidity_series(records, d0, d1, price_field)."""

    SCENARIO = [
        {"tick": 100, "liq": "50"},
        {"tick": 100, "liq": "0"},
        {"tick": 200, "liq": "30"},
    ]

    @staticmethod
    def scenario_records():
        return [{"tick": r["tick"], "liquidity": r["liq"]} for r in TestBuildLiquiditySeries.SCENARIO]

    def test_zero_sample_dropped(self):
        series = build_liquidity_series(self.scenario_records(), 18, 18)
        assert [(p.tick, p.liquidity) for p in series] == [(100, Decimal(50)), (200, Decimal(30))]

    def test_prices_price0(self):
        series = build_liquidity_series(self.scenario_records(), 18, 18)
        assert series[0].price == pytest.approx(tick_to_price(100))
        assert series[1].price == pytest.approx(tick_to_price(200))

    def test_decimal_adjustment(self):
        series = build_liquidity_series([(0, 1)], 18, 6)
        assert series[0].price == pytest.approx(1e12)

    def test_price1_is_reciprocal(self):
        price0 = build_liquidity_series([(500, 1)], 18, 6, "price0")[0].price
        price1 = build_liquidity_series([(500, 1)], 18, 6, "price1")[0].price
        assert price1 == pytest.approx(1 / price0)

    def test_liquidity_is_magnitude(self):
        series = build_liquidity_series([(60, "-75")], 18, 18)
        assert series[0].liquidity == Decimal(75)

    def test_sorted_by_tick(self, raw_records):
        series = build_liquidity_series(raw_records, 18, 6)
        ticks = [p.tick for p in series]
        assert ticks == sorted(ticks)
        assert ticks == [-300, 100, 200]

    def test_duplicate_ticks_keep_order(self):
        series = build_liquidity_series([(100, 5), (100, 7), (50, 1)], 18, 18)
        assert [(p.tick, p.liquidity) for p in series] == [(50, 1), (100, 5), (100, 7)]

    def test_empty_after_filter(self):
        assert build_liquidity_series([(1, 0), (2, "0")], 18, 18) == []

    def test_invalid_price_field_raises(self):
        with pytest.raises(InvalidInputError):
            build_liquidity_series([], 18, 18, "price2")

    def test_malformed_records_skipped(self):
        with pytest.warns(MalformedSampleWarning):
            series = build_liquidity_series([(1, 1), {"tick": "bad"}], 18, 18)
        assert len(series) == 1

    def test_huge_exponent_records_skipped(self):
        records = [
            {"tickIndex": 100, "netLiquidityDelta": "50"},
            {"tickIndex": 200, "netLiquidityDelta": "1e1000000"},
            {"tickIndex": "1e3000000", "netLiquidityDelta": "10"},
        ]
        with pytest.warns(MalformedSampleWarning):
            series = build_liquidity_series(records, 18, 18)
        assert [(p.tick, p.liquidity) for p in series] == [(100, Decimal(50))]

    def test_magnitude_keeps_all_digits(self):
        series = build_liquidity_series([(60, "-123456789012345678901234567890123")], 18, 18)
        assert series[0].liquidity == Decimal("123456789012345678901234567890123")

    def test_to_dict(self):
        p = point(100, 1.01, 50)
        assert p.to_dict() == {"tick": 100, "price": 1.01, "liquidity": "50"}


# ---------------------------------------------------------------------------
# top_liquidity
# ---------------------------------------------------------------------------

class TestTopLiquidity:
    """Tests for top_liquidity(series, top_n)."""

    SERIES = [point(i, 1.0 + i, liq) for i, liq in enumerate([5, 50, 20, 50, 1, 30])]

    def test_top_one_scenario(self):
        series = build_liquidity_series(TestBuildLiquiditySeries.scenario_records(), 18, 18)
        top = top_liquidity(series, 1)
        assert len(top) == 1
        assert (top[0].tick, top[0].liquidity) == (100, Decimal(50))

    def test_descending(self):
        top = top_liquidity(self.SERIES, 4)
        assert [p.liquidity for p in top] == [50, 50, 30, 20]

    def test_ties_keep_series_order(self):
        top = top_liquidity(self.SERIES, 2)
        assert [p.tick for p in top] == [1, 3]

    @pytest.mark.parametrize("n", [1, 3, 6, 10])
    def test_subset_size_and_order(self, n):
        top = top_liquidity(self.SERIES, n)
        assert len(top) == min(n, len(self.SERIES))
        assert all(p in self.SERIES for p in top)
        assert all(a.liquidity >= b.liquidity for a, b in zip(top, top[1:]))

    def test_default_ten(self):
        series = [point(i, 1.0 + i, i + 1) for i in range(25)]
        assert len(top_liquidity(series)) == 10

    def test_does_not_mutate_series(self):
        series = list(self.SERIES)
        top_liquidity(series, 3)
        assert series == self.SERIES

    def test_empty(self):
        assert top_liquidity([], 5) == []

    def test_zero_gives_empty(self):
        assert top_liquidity(self.SERIES, 0) == []

    @pytest.mark.parametrize("n", [-1, 2.5, True])
    def test_invalid_n_raises(self, n):
        with pytest.raises(InvalidInputError):
            top_liquidity(self.SERIES, n)


# ---------------------------------------------------------------------------
# Histogram
# ---------------------------------------------------------------------------

class TestBinEdges:
    """Tests for is_log_scale and bin_edges."""

    def test_is_log_scale(self):
        assert is_log_scale([1.0, 10.5])
        assert not is_log_scale([1.0, 10.0])
        assert not is_log_scale([])

    def test_linear_edges(self):
        assert bin_edges(0.0, 10.0, 5, False) == pytest.approx([0.0, 2.0, 4.0, 6.0, 8.0, 10.0])

    def test_log_edges_geometric(self):
        edges = bin_edges(0.001, 1000.0, 6, True)
        assert edges == pytest.approx([0.001, 0.01, 0.1, 1.0, 10.0, 100.0, 1000.0])
        ratios = [b / a for a, b in zip(edges, edges[1:])]
        assert ratios == pytest.approx([10.0] * 6)

    def test_endpoints_exact(self):
        edges = bin_edges(0.3, 7.7, 7, False)
        assert edges[0] == 0.3
        assert edges[-1] == 7.7
        log_edges = bin_edges(0.0123, 456.7, 9, True)
        assert log_edges[0] == 0.0123
        assert log_edges[-1] == 456.7


class TestLiquidityHistogram:
    """Tests for liquidity_histogram(series, num_bins)."""

    def test_empty_series(self):
        assert liquidity_histogram([], 10) == []

    def test_linear_binning(self):
        series = [point(i, price, 10) for i, price in enumerate([1.0, 1.5, 2.0, 2.5, 3.0])]
        bins = liquidity_histogram(series, 4)
        # [1, 1.5) [1.5, 2) [2, 2.5) [2.5, 3]
        assert [b.label for b in bins] == ["bin_0", "bin_1", "bin_2", "bin_3"]
        assert [b.liquidity for b in bins] == [10, 10, 10, 20]
        assert bins[0].price == pytest.approx(1.25)
        assert bins[-1].price_end == 3.0

    def test_max_price_in_last_bin(self):
        series = [point(0, 1.0, 1), point(1, 2.0, 2)]
        bins = liquidity_histogram(series, 2)
        assert bins[-1].label == "bin_1"
        assert bins[-1].liquidity == 2

    def test_log_binning_geometric(self):
        prices = [0.001, 0.005, 0.05, 0.5, 5.0, 50.0, 500.0, 1000.0]
        series = [point(i, p, 1) for i, p in enumerate(prices)]
        bins = liquidity_histogram(series, 6)

        for b in bins:
            assert b.price == pytest.approx(math.sqrt(b.price_start * b.price_end))
            assert b.price_end / b.price_start == pytest.approx(10.0)
        # Линейные границы дали бы ширину ~166.7, а не рост в 10 раз
        assert bins[0].price_end == pytest.approx(0.01)

    def test_empty_bins_dropped(self):
        series = [point(0, 1.0, 5), point(1, 100.0, 7)]
        bins = liquidity_histogram(series, 20)
        assert [b.label for b in bins] == ["bin_0", "bin_19"]
        assert all(b.liquidity > 0 for b in bins)

    def test_single_price(self):
        series = [point(0, 2.0, 3), point(1, 2.0, 4)]
        bins = liquidity_histogram(series, 5)
        assert len(bins) == 1
        assert bins[0].liquidity == 7
        assert bins[0].sample_count == 2
        assert bins[0].price == 2.0

    @pytest.mark.parametrize("num_bins", [1, 3, 10, 20, 50])
    def test_conservation(self, raw_records, num_bins):
        series = build_liquidity_series(raw_records * 5, 18, 6)
        bins = liquidity_histogram(series, num_bins)
        assert sum(b.liquidity for b in bins) == sum(p.liquidity for p in series)
        assert sum(b.sample_count for b in bins) == len(series)

    def test_conservation_large_values(self):
        series = [point(i, 1.0001 ** (i * 1000), 10**30 + i) for i in range(40)]
        bins = liquidity_histogram(series, 7)
        with localcontext(Context(prec=50)):
            assert sum(b.liquidity for b in bins) == sum(p.liquidity for p in series)

    @pytest.mark.parametrize("num_bins", [0, -3, 1.5])
    def test_invalid_num_bins_raises(self, num_bins):
        with pytest.raises(InvalidInputError):
            liquidity_histogram([point(0, 1.0, 1)], num_bins)

    def test_to_dict(self):
        b = LiquidityBin(label="bin_3", price=1.5, liquidity=Decimal(12),
                         price_start=1.0, price_end=2.0, sample_count=2)
        assert b.to_dict()["tick"] == "bin_3"
        assert b.to_dict()["liquidity"] == "12"


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

class TestFormatting:
    """Tests for format_price, format_liquidity, log_liquidity_bins."""

    @pytest.mark.parametrize("price,expected", [
        (0.0001234, "1.23e-04"),
        (0.001, "0.0010"),
        (1.23456, "1.2346"),
        (3000.0, "3000.0000"),
    ])
    def test_format_price(self, price, expected):
        assert format_price(price) == expected

    @pytest.mark.parametrize("value,expected", [
        (Decimal("2500000000"), "2.50B"),
        (1_500_000, "1.50M"),
        (1500, "1.50K"),
        (12, "12.00"),
    ])
    def test_format_liquidity(self, value, expected):
        assert format_liquidity(value) == expected

    def test_log_liquidity_bins(self, caplog):
        bins = liquidity_histogram([point(0, 1.0, 1000), point(1, 2.0, 3000)], 2)
        with caplog.at_level(logging.INFO, logger="cl_engine.math.distribution"):
            log_liquidity_bins(bins)
        assert "LIQUIDITY DISTRIBUTION" in caplog.text
        assert "bin_0" in caplog.text
        assert "TOTAL: 4.00K across 2 bins" in caplog.text

    def test_log_empty_bins(self, caplog):
        with caplog.at_level(logging.INFO, logger="cl_engine.math.distribution"):
            log_liquidity_bins([])
        assert "across 0 bins" in caplog.text
