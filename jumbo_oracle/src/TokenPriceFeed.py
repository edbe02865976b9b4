"""TokenPriceFeed: External per-token USD price list.

The price service answers with a JSON object keyed by token id::

    {"wrap.near": {"decimal": 24, "symbol": "wNEAR", "price": "5.01"}, ...}
"""

from __future__ import annotations

import logging
from decimal import InvalidOperation

import httpx

from .HttpSource import HttpSource, SourceError
from .Records import ExternalTokenPrice
from .TokenMath import to_decimal

logger = logging.getLogger(__name__)


class TokenPriceFeed(HttpSource):
    """Client for the external token price service.

    :ivar price_api: Service URL, or None when no feed is configured.
    """

    def __init__(
        self,
        price_api: str | None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.price_api = price_api

    async def get_token_prices(self) -> dict[str, ExternalTokenPrice]:
        """Fetch the external price list.

        Never raises: a failed request yields an empty mapping and
        malformed entries are dropped.

        :returns: Token id to external price entry.
        """
        if not self.price_api:
            return {}

        try:
            response = await self._get(self.price_api)
            data = response.json()
        except (SourceError, ValueError) as e:
            logger.warning(f"Data request error from price service: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Unexpected price service payload type {type(data).__name__}")
            return {}

        prices: dict[str, ExternalTokenPrice] = {}
        for token_id, entry in data.items():
            try:
                raw_price = entry["price"]
                if raw_price is None:
                    raise ValueError("price is null")
                price = to_decimal(str(raw_price))
                if not price.is_finite() or price < 0:
                    raise ValueError(f"price {raw_price!r} is not a non-negative number")
                prices[token_id] = ExternalTokenPrice(
                    decimals=int(entry["decimal"]),
                    symbol=str(entry["symbol"]),
                    price=str(raw_price).strip(),
                )
            except (KeyError, TypeError, ValueError, InvalidOperation) as e:
                logger.debug(f"Skipping malformed price entry for {token_id}: {e}")
        return prices
