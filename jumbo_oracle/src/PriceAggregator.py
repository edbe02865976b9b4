"""PriceAggregator: Median of fiat anchor quotes with outlier rejection.

Algorithm:
    1. Filter out None/zero/negative prices
    2. Calculate initial median across all valid sources
    3. Exclude outliers (prices deviating > max_deviation_percent from initial median)
    4. Recalculate median from filtered set
    5. Return None if fewer than min_sources remain

.. code-block:: python

    >>> aggregator = PriceAggregator(min_sources=2, max_deviation_percent=Decimal(5))
    >>> result = aggregator.aggregate(
    ...     {"helper": Decimal("5.00"), "coinbase": Decimal("5.02"), "rogue": Decimal("9")}
    ... )
    >>> result.price
    Decimal('5.01')
    >>> result.metadata["dropped"]
    {'rogue': Decimal('9')}
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from statistics import median as _median
from typing import TypedDict


class AggregationError(TypedDict, total=False):
    """Error information when aggregation fails.

    :ivar error: Error type identifier.
    :ivar available: Number of valid sources available.
    :ivar dropped: Dict of sources dropped as outliers.
    """

    error: str
    available: int
    dropped: dict[str, Decimal]


class AggregationMetadata(TypedDict, total=False):
    """Metadata about a successful aggregation.

    :ivar sources: List of sources used in final calculation.
    :ivar dropped: Dict of sources dropped as outliers.
    :ivar count: Number of sources used.
    :ivar initial_median: Median before outlier filtering.
    """

    sources: list[str]
    dropped: dict[str, Decimal]
    count: int
    initial_median: Decimal


@dataclass
class AggregationResult:
    """Result of price aggregation.

    :ivar price: Aggregated price, or None if aggregation failed.
    :ivar metadata: Additional information about the aggregation.
    """

    price: Decimal | None
    metadata: AggregationMetadata | AggregationError

    @property
    def success(self) -> bool:
        """Check if aggregation was successful."""
        return self.price is not None

    @property
    def error(self) -> str | None:
        """Get error type if aggregation failed."""
        if self.price is None:
            return self.metadata.get("error")
        return None


class PriceAggregator:
    """Aggregates anchor quotes from multiple sources with outlier detection.

    :ivar min_sources: Minimum sources required for valid aggregation.
    :ivar max_deviation_percent: Max allowed deviation from median.
    """

    def __init__(
        self,
        min_sources: int = 1,
        max_deviation_percent: Decimal = Decimal(5),
    ) -> None:
        """Initialize the aggregator.

        :param min_sources: Minimum number of valid sources required.
        :param max_deviation_percent: Maximum allowed deviation from median
            before a source is considered an outlier (default 5%).
        :raises ValueError: If parameters are invalid.
        """
        if min_sources < 1:
            raise ValueError("min_sources must be at least 1")
        if max_deviation_percent <= 0:
            raise ValueError("max_deviation_percent must be positive")

        self.min_sources = min_sources
        self.max_deviation_percent = Decimal(max_deviation_percent)

    def aggregate(self, prices: dict[str, Decimal | None]) -> AggregationResult:
        """Aggregate quotes into a single median price.

        :param prices: Dict mapping source name to price (or None if fetch failed).
        :returns: AggregationResult with price and metadata, or None price with error info.
        """
        valid: dict[str, Decimal] = {
            k: v for k, v in prices.items() if v is not None and v > 0
        }

        if len(valid) < self.min_sources:
            return AggregationResult(
                price=None,
                metadata={"error": "insufficient_sources", "available": len(valid)},
            )

        initial_median = _median(list(valid.values()))

        filtered: dict[str, Decimal] = {}
        dropped: dict[str, Decimal] = {}
        for source, price in valid.items():
            deviation = abs(price - initial_median) / initial_median * 100
            if deviation <= self.max_deviation_percent:
                filtered[source] = price
            else:
                dropped[source] = price

        if len(filtered) < self.min_sources:
            return AggregationResult(
                price=None,
                metadata={"error": "too_many_outliers", "dropped": dropped},
            )

        return AggregationResult(
            price=_median(list(filtered.values())),
            metadata={
                "sources": list(filtered.keys()),
                "dropped": dropped,
                "count": len(filtered),
                "initial_median": initial_median,
            },
        )
