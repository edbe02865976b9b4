"""Jumbo helper service fetcher.

Endpoint: {HELPER_URL}/fiat
Response: {"near": {"usd": 5.01}, "usn": {"usd": 1.0}}
"""

import logging
from decimal import Decimal

from ..HttpSource import SourceError
from .base import BaseFetcher, parse_price, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class HelperFetcher(BaseFetcher):
    """Fetcher for the exchange's own helper service.

    Serves the fiat price of the NEAR anchor. ``base_url`` is required.
    """

    name = "helper"

    async def fetch(self, base: str, quote: str) -> Decimal | None:
        """Fetch price from the helper ``/fiat`` endpoint.

        :param base: Base currency (e.g., "near").
        :param quote: Quote currency (e.g., "usd").
        :returns: Current price or None on failure.
        """
        if not self.base_url:
            logger.warning("[helper] No helper URL configured")
            return None

        url = f"{self.base_url.rstrip('/')}/fiat"
        try:
            response = await self._get(url)
            data = response.json()
            price = parse_price(data[base.lower()][quote.lower()])
        except SourceError as e:
            logger.warning(f"[helper] Data request error from helper: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[helper] Failed to parse response for {base}/{quote}: {e}")
            return None

        if price is None:
            logger.warning(f"[helper] Invalid price for {base}/{quote}")
        return price
