"""Base fiat price fetcher interface and registry.

All fiat price fetchers inherit from BaseFetcher and implement the fetch()
method. HTTP plumbing and the shared ``httpx.AsyncClient`` come from
:class:`~jumbo_oracle.src.HttpSource.HttpSource`.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"

        async def fetch(self, base: str, quote: str) -> Decimal | None:
            response = await self._get(f"https://api.example.com/{base}/{quote}")
            return Decimal(str(response.json()["price"]))
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import ClassVar

import httpx

from ..HttpSource import HttpSource

logger = logging.getLogger(__name__)


def parse_price(value: object) -> Decimal | None:
    """Convert a JSON price value into a positive Decimal.

    Floats are converted through their shortest ``repr`` so that ``5.01``
    becomes ``Decimal('5.01')`` rather than its binary expansion.

    :returns: Decimal price, or None if missing, invalid or not positive.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


class BaseFetcher(HttpSource, ABC):
    """Abstract base class for fiat price fetchers.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "coingecko")
        - fetch(): Async method to fetch the price of ``base`` in ``quote``

    :cvar name: Unique identifier for this fetcher.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar base_url: Optional endpoint override.
    """

    name: ClassVar[str] = ""

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
    ) -> None:
        """Initialize the fetcher.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        :param client: Optional HTTP client overriding the shared one.
        :param base_url: Optional endpoint override.
        """
        super().__init__(timeout=timeout, client=client)
        self.api_key = api_key
        self.base_url = base_url

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @abstractmethod
    async def fetch(self, base: str, quote: str) -> Decimal | None:
        """Fetch the current price of ``base`` in ``quote``.

        :param base: Base currency symbol (e.g., "near").
        :param quote: Quote currency symbol (e.g., "usd").
        :returns: Current price, or None if the fetch failed.
        """
        pass


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str,
    api_key: str | None = None,
    timeout: float | None = None,
    base_url: str | None = None,
) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "helper", "coingecko").
    :param api_key: Optional API key.
    :param timeout: Optional request timeout in seconds.
    :param base_url: Optional endpoint override.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](api_key=api_key, timeout=timeout, base_url=base_url)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
