"""Unit tests for PriceAggregator."""

from decimal import Decimal

import pytest

from jumbo_oracle.src.PriceAggregator import AggregationResult, PriceAggregator


def D(value: str) -> Decimal:
    return Decimal(value)


class TestPriceAggregatorInit:
    """Test PriceAggregator initialization."""

    def test_default_values(self) -> None:
        """A single fiat source is enough by default."""
        agg = PriceAggregator()
        assert agg.min_sources == 1
        assert agg.max_deviation_percent == Decimal(5)

    def test_custom_values(self) -> None:
        """Custom values should be stored."""
        agg = PriceAggregator(min_sources=3, max_deviation_percent=Decimal(10))
        assert agg.min_sources == 3
        assert agg.max_deviation_percent == Decimal(10)

    def test_invalid_min_sources(self) -> None:
        """min_sources < 1 should raise ValueError."""
        with pytest.raises(ValueError, match="min_sources must be at least 1"):
            PriceAggregator(min_sources=0)

    def test_invalid_max_deviation(self) -> None:
        """max_deviation_percent <= 0 should raise ValueError."""
        with pytest.raises(ValueError, match="max_deviation_percent must be positive"):
            PriceAggregator(max_deviation_percent=Decimal(0))

        with pytest.raises(ValueError, match="max_deviation_percent must be positive"):
            PriceAggregator(max_deviation_percent=Decimal(-1))


class TestPriceAggregatorBasicAggregation:
    """Test basic aggregation scenarios."""

    def test_simple_median_odd(self) -> None:
        """Median of odd number of values."""
        agg = PriceAggregator(min_sources=2)
        result = agg.aggregate({"a": D("5.00"), "b": D("5.01"), "c": D("5.02")})

        assert result.success
        assert result.price == D("5.01")
        assert result.metadata["count"] == 3

    def test_simple_median_even(self) -> None:
        """Median of even number of values is exact."""
        agg = PriceAggregator(min_sources=2)
        result = agg.aggregate({"a": D("5.00"), "b": D("5.01")})

        assert result.success
        assert result.price == D("5.005")
        assert result.metadata["count"] == 2

    def test_single_source(self) -> None:
        """A single source passes through unchanged."""
        result = PriceAggregator().aggregate({"helper": D("5.00")})

        assert result.success
        assert result.price == D("5.00")

    def test_sources_list_in_metadata(self) -> None:
        """Metadata should contain list of sources used."""
        agg = PriceAggregator(min_sources=2)
        result = agg.aggregate({"coinbase": D("5.00"), "helper": D("5.01")})

        assert set(result.metadata["sources"]) == {"coinbase", "helper"}


class TestPriceAggregatorInsufficientSources:
    """Test insufficient source handling."""

    def test_empty_prices(self) -> None:
        result = PriceAggregator().aggregate({})

        assert not result.success
        assert result.error == "insufficient_sources"
        assert result.metadata["available"] == 0

    def test_all_none_prices(self) -> None:
        """Failed fetches contribute nothing."""
        result = PriceAggregator().aggregate({"a": None, "b": None})

        assert not result.success
        assert result.error == "insufficient_sources"

    def test_zero_and_negative_filtered(self) -> None:
        agg = PriceAggregator(min_sources=2)
        result = agg.aggregate(
            {"zero": D("0"), "negative": D("-5"), "a": D("5.00"), "b": D("5.02")}
        )

        assert result.success
        assert result.price == D("5.01")
        assert result.metadata["count"] == 2

    def test_insufficient_after_filtering_invalid(self) -> None:
        agg = PriceAggregator(min_sources=2)
        result = agg.aggregate({"valid": D("5"), "none": None, "zero": D("0")})

        assert not result.success
        assert result.metadata["available"] == 1


class TestPriceAggregatorOutlierDetection:
    """Test outlier detection functionality."""

    def test_outlier_excluded(self) -> None:
        """Outlier beyond deviation threshold should be excluded."""
        agg = PriceAggregator(min_sources=2)

        # 100, 101, 200 -> median=101, 200 deviates ~98% from median
        result = agg.aggregate({"a": D("100"), "b": D("101"), "rogue": D("200")})

        assert result.success
        assert result.metadata["dropped"] == {"rogue": D("200")}
        assert result.price == D("100.5")
        assert result.metadata["initial_median"] == D("101")

    def test_too_many_outliers_fails(self) -> None:
        """median of [100, 150] = 125, both deviate 20%."""
        agg = PriceAggregator(min_sources=2, max_deviation_percent=Decimal(1))
        result = agg.aggregate({"a": D("100"), "b": D("150")})

        assert not result.success
        assert result.error == "too_many_outliers"

    def test_borderline_deviation(self) -> None:
        """Price exactly at deviation threshold should be included."""
        agg = PriceAggregator(min_sources=3)

        # median=100, 105 and 95 deviate exactly 5%
        result = agg.aggregate({"a": D("95"), "b": D("100"), "c": D("105")})

        assert result.success
        assert result.metadata["count"] == 3
        assert result.metadata["dropped"] == {}


class TestAggregationResult:
    """Test AggregationResult properties."""

    def test_success_property(self) -> None:
        assert AggregationResult(price=D("5"), metadata={"sources": ["a"]}).success is True
        assert AggregationResult(price=None, metadata={"error": "test"}).success is False

    def test_error_property(self) -> None:
        assert AggregationResult(price=D("5"), metadata={"sources": ["a"]}).error is None
        error_result = AggregationResult(price=None, metadata={"error": "insufficient_sources"})
        assert error_result.error == "insufficient_sources"
