"""OracleConfig: Immutable configuration shared by all pipeline components.

Built once in ``main.py`` from CLI arguments and environment variables and
passed explicitly into every component constructor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

DEFAULT_PAGE_SIZE = 100
DEFAULT_LOW_LIQUIDITY_FLOOR = Decimal(1000)


@dataclass(frozen=True)
class OracleConfig:
    """Settings for one oracle process.

    :ivar node_url: NEAR JSON-RPC endpoint.
    :ivar contract_id: AMM contract account id.
    :ivar graph_api: Swap-history GraphQL endpoint.
    :ivar near_address: NEAR-equivalent anchor token (external fiat price).
    :ivar jumbo_address: JUMBO-equivalent anchor token (bootstrapped price).
    :ivar jumbo_pool_id: Reference pool used to bootstrap the JUMBO price.
    :ivar price_api: External token price feed URL, or None to skip it.
    :ivar helper_url: Helper service base URL serving ``/fiat``.
    :ivar deny_list: Token ids whose pools are ignored.
    :ivar low_liquidity_floor: Minimum corroboration volume for a price.
    :ivar page_size: Pools requested per ``get_pools`` page.
    :ivar fiat_sources: Fetcher names used for the fiat anchor price.
    :ivar fiat_symbol: Symbol queried from fiat fetchers.
    :ivar database_url: SQLAlchemy async database URL.
    :ivar period: Seconds between aggregation cycles.
    :ivar fetch_timeout: Timeout for each external call in seconds.
    """

    node_url: str
    contract_id: str
    graph_api: str
    near_address: str
    jumbo_address: str
    jumbo_pool_id: int
    price_api: str | None = None
    helper_url: str | None = None
    deny_list: frozenset[str] = field(default_factory=frozenset)
    low_liquidity_floor: Decimal = DEFAULT_LOW_LIQUIDITY_FLOOR
    page_size: int = DEFAULT_PAGE_SIZE
    fiat_sources: tuple[str, ...] = ("helper",)
    fiat_symbol: str = "near"
    database_url: str = "sqlite+aiosqlite:///jumbo_oracle.db"
    period: int = 30
    fetch_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate settings.

        :raises ValueError: If any setting is out of range.
        """
        if not self.contract_id:
            raise ValueError("contract_id must be set")
        if not self.graph_api:
            raise ValueError("graph_api must be set")
        if self.near_address == self.jumbo_address:
            raise ValueError("near_address and jumbo_address must differ")
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if self.low_liquidity_floor < 0:
            raise ValueError("low_liquidity_floor must not be negative")
        if self.period < 1:
            raise ValueError("period must be at least 1 second")
        if self.fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        if not self.fiat_sources:
            raise ValueError("At least one fiat source must be specified")
        if "helper" in self.fiat_sources and not self.helper_url:
            raise ValueError("helper_url is required by the 'helper' fiat source")


def parse_deny_list(value: str | None) -> frozenset[str]:
    """Parse a space- or comma-separated list of token ids.

    .. code-block:: python

        >>> sorted(parse_deny_list("a.near b.near,c.near"))
        ['a.near', 'b.near', 'c.near']
    """
    if not value:
        return frozenset()
    return frozenset(t for t in value.replace(",", " ").split() if t)
