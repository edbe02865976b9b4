"""
Fiat price fetchers for the anchor token.

Usage:
    from jumbo_oracle.src.fetchers import get_fetcher, get_available_fetchers

    available = get_available_fetchers()
    # ['coinbase', 'coingecko', 'helper']

    fetcher = get_fetcher("helper", base_url="https://helper.example.com")
    price = await fetcher.fetch("near", "usd")
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    get_available_fetchers,
    get_fetcher,
    parse_price,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .coinbase import CoinbaseFetcher
from .coingecko import CoinGeckoFetcher
from .helper import HelperFetcher

__all__ = [
    "BaseFetcher",
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "parse_price",
    "FETCHER_REGISTRY",
    "CoinbaseFetcher",
    "CoinGeckoFetcher",
    "HelperFetcher",
]
