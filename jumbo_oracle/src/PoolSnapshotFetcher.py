"""PoolSnapshotFetcher: All AMM pools from the chain, page by page.

Pages are requested concurrently. A page that fails contributes no pools
instead of failing the whole fetch, so a cycle proceeds on best-effort
data.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Protocol

from .FetchResult import gather_results
from .OracleConfig import DEFAULT_PAGE_SIZE
from .Records import ContractPool

logger = logging.getLogger(__name__)


class PoolSource(Protocol):
    async def get_pool_count(self) -> int:
        ...

    async def get_pools(self, from_index: int, limit: int) -> list[ContractPool]:
        ...


class PoolSnapshotFetcher:
    """Fetches and filters pool snapshots.

    :ivar source: Chain pool collaborator.
    :ivar deny_list: Token ids whose pools are dropped.
    :ivar page_size: Default pools per page.
    """

    def __init__(
        self,
        source: PoolSource,
        deny_list: Iterable[str] = (),
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.source = source
        self.deny_list = frozenset(deny_list)
        self.page_size = page_size

    async def fetch_all_pools(self, page_size: int | None = None) -> list[ContractPool]:
        """Fetch every pool, skipping failed pages and denylisted pools.

        :param page_size: Pools per page (default: configured page size).
        :returns: Pools in contract order.
        :raises SourceError: If the pool count itself cannot be fetched.
        """
        limit = page_size or self.page_size
        total = await self.source.get_pool_count()
        pages = math.ceil(total / limit)

        results = await gather_results(
            self.source.get_pools(page * limit, limit) for page in range(pages)
        )

        pools: list[ContractPool] = []
        for page, result in enumerate(results):
            if not result.ok:
                logger.warning(
                    f"Pool page {page} (from {page * limit}) failed: {result.error!r}"
                )
            pools.extend(result.value_or([]))

        allowed = [pool for pool in pools if self.is_allowed(pool)]
        logger.info(
            f"Fetched {len(pools)}/{total} pools in {pages} pages, "
            f"{len(pools) - len(allowed)} denylisted"
        )
        return allowed

    def is_allowed(self, pool: ContractPool) -> bool:
        """Check that no token of ``pool`` is denylisted."""
        return not any(token in self.deny_list for token in pool.token_account_ids)
