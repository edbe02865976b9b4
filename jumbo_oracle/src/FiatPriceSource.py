"""FiatPriceSource: USD price of the external anchor token.

Queries every configured fetcher concurrently (each under its own
timeout) and combines the quotes with :class:`PriceAggregator`. With a
single configured fetcher this degenerates to "use that fetcher's price".
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from .FetchResult import gather_results
from .PriceAggregator import PriceAggregator

if TYPE_CHECKING:
    from .fetchers import BaseFetcher

logger = logging.getLogger(__name__)


class FiatPriceSource:
    """Fetches and aggregates the anchor token's fiat price.

    :ivar fetchers: Dict mapping source names to fetcher instances.
    :ivar quote: Fiat currency symbol.
    :ivar fetch_timeout: Timeout for each fetch in seconds.
    """

    def __init__(
        self,
        fetchers: dict[str, BaseFetcher],
        quote: str = "usd",
        fetch_timeout: float = 10.0,
        aggregator: PriceAggregator | None = None,
    ) -> None:
        """Initialize the fiat price source.

        :param fetchers: Dict mapping source names to fetcher instances.
        :param quote: Fiat currency symbol (default: "usd").
        :param fetch_timeout: Timeout for each fetch (default: 10.0).
        :param aggregator: Aggregator combining quotes (default: median, 1 source).
        """
        self.fetchers = fetchers
        self.quote = quote
        self.fetch_timeout = fetch_timeout
        self.aggregator = aggregator or PriceAggregator(min_sources=1)

    async def get_fiat_price(self, symbol: str) -> Decimal | None:
        """Return the aggregated fiat price of ``symbol``.

        :param symbol: Anchor token symbol (e.g., "near").
        :returns: Price, or None when no usable quote was obtained.
        """
        names = list(self.fetchers)
        results = await gather_results(
            (self.fetchers[name].fetch(symbol, self.quote) for name in names),
            timeout=self.fetch_timeout,
        )

        quotes: dict[str, Decimal | None] = {}
        for name, result in zip(names, results):
            if not result.ok:
                logger.warning(f"[{name}] Error fetching {symbol}/{self.quote}: {result.error!r}")
            quotes[name] = result.value_or(None)

        aggregated = self.aggregator.aggregate(quotes)
        if not aggregated.success:
            logger.warning(
                f"{symbol}/{self.quote}: fiat price unavailable "
                f"({aggregated.error}): {aggregated.metadata}"
            )
            return None

        breakdown = ", ".join(f"{s}=${quotes[s]}" for s in aggregated.metadata.get("sources", []))
        logger.info(f"{symbol}/{self.quote}: ${aggregated.price} (median of [{breakdown}])")
        return aggregated.price
