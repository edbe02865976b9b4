"""CoinGecko fetcher.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies={quote}
Rate Limit: 30 calls/min (free), higher with API key
NEAR Support: Yes (id: "near")
"""

import logging
from decimal import Decimal

from ..HttpSource import SourceError
from .base import BaseFetcher, parse_price, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for CoinGecko API.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    """

    name = "coingecko"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    # Map symbols to CoinGecko IDs
    COIN_IDS = {
        "near": "near",
        "usn": "usn",
        "usdt": "tether",
        "usdc": "usd-coin",
    }

    def __init__(self, api_key: str | None = None, **kwargs) -> None:
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]
        super().__init__(api_key=api_key, **kwargs)

    @property
    def api_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if self.base_url:
            return self.base_url
        if not self.has_api_key or self._is_demo:
            return self.BASE_URL_FREE
        return self.BASE_URL_PRO

    @property
    def api_headers(self) -> dict[str, str] | None:
        """Return the API key header, if a key is configured."""
        if not self.api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return {header_name: self.api_key}

    async def fetch(self, base: str, quote: str) -> Decimal | None:
        """Fetch price from CoinGecko.

        :param base: Base currency (e.g., "near").
        :param quote: Quote currency (e.g., "usd").
        :returns: Current price or None on failure.
        """
        coin_id = self.COIN_IDS.get(base.lower())
        if not coin_id:
            logger.warning(f"[coingecko] Unknown coin: {base}")
            return None

        quote_lower = quote.lower()
        try:
            response = await self._get(
                f"{self.api_url}/simple/price",
                params={"ids": coin_id, "vs_currencies": quote_lower},
                headers=self.api_headers,
            )
            data = response.json()
            return parse_price(data[coin_id][quote_lower])

        except SourceError as e:
            logger.warning(f"[coingecko] Failed to fetch {base}/{quote}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[coingecko] Failed to parse response: {e}")
            return None
