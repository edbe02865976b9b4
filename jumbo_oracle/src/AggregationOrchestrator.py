"""AggregationOrchestrator: One price/volume aggregation cycle per tick.

Cycle:
    - Fetch the external token price feed, the fiat anchor price, the chain
      pool snapshots and the 24h swap rollup concurrently
    - Reconcile internal token prices against the anchors
    - Merge token prices with the external feed
    - Merge pool reserves with rollup volumes
    - Upsert all tokens and pools in one batch

Only one cycle runs at a time; a tick arriving while a cycle is in
progress is skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Mapping

from .FetchResult import gather_results
from .FiatPriceSource import FiatPriceSource
from .HttpSource import HttpSource
from .NearRpcClient import NearRpcClient
from .OracleConfig import OracleConfig
from .PoolSnapshotFetcher import PoolSnapshotFetcher
from .PriceReconciler import PriceReconciler
from .PriceStore import PriceStore
from .Records import ContractPool, Pool, PoolVolume, utc_now
from .SwapFeedClient import SwapFeedClient
from .SwapVolumeRollup import SwapVolumeRollup
from .TokenMath import ZERO, quantize, to_plain_string
from .TokenPriceFeed import TokenPriceFeed
from .TokenResolver import TokenResolver
from .fetchers import get_fetcher

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Outcome of one aggregation cycle.

    :ivar success: True if the batch write completed.
    :ivar skipped: True if the cycle did not run because another was in progress.
    :ivar tokens_written: Number of token records upserted.
    :ivar pools_written: Number of pool records upserted.
    :ivar error: Failure description when unsuccessful.
    """

    success: bool
    skipped: bool = False
    tokens_written: int = 0
    pools_written: int = 0
    error: str | None = None


def _amount(value: Decimal) -> str:
    return to_plain_string(quantize(value, 0))


class AggregationOrchestrator:
    """Sequences the pipeline components once per tick.

    :ivar config: Oracle configuration.
    :ivar store: Token/pool storage.
    """

    def __init__(
        self,
        config: OracleConfig,
        store: PriceStore,
        pool_fetcher: PoolSnapshotFetcher,
        rollup: SwapVolumeRollup,
        reconciler: PriceReconciler,
        fiat_source: FiatPriceSource,
        token_feed: TokenPriceFeed,
    ) -> None:
        self.config = config
        self.store = store
        self.pool_fetcher = pool_fetcher
        self.rollup = rollup
        self.reconciler = reconciler
        self.fiat_source = fiat_source
        self.token_feed = token_feed
        self._cycle_lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: OracleConfig,
        store: PriceStore,
        api_keys: Mapping[str, str] | None = None,
    ) -> AggregationOrchestrator:
        """Wire every component from the configuration.

        :param config: Oracle configuration.
        :param store: Token/pool storage.
        :param api_keys: Optional API keys for fiat fetchers, by fetcher name.
        """
        api_keys = api_keys or {}
        rpc = NearRpcClient(config.node_url, config.contract_id, timeout=config.fetch_timeout)
        fetchers = {
            name: get_fetcher(
                name,
                api_key=api_keys.get(name),
                timeout=config.fetch_timeout,
                base_url=config.helper_url if name == "helper" else None,
            )
            for name in config.fiat_sources
        }
        resolver = TokenResolver(store, rpc)
        return cls(
            config=config,
            store=store,
            pool_fetcher=PoolSnapshotFetcher(rpc, config.deny_list, config.page_size),
            rollup=SwapVolumeRollup(
                SwapFeedClient(config.graph_api, timeout=config.fetch_timeout)
            ),
            reconciler=PriceReconciler.from_config(config, resolver),
            fiat_source=FiatPriceSource(fetchers, fetch_timeout=config.fetch_timeout),
            token_feed=TokenPriceFeed(config.price_api, timeout=config.fetch_timeout),
        )

    @property
    def in_progress(self) -> bool:
        """Check if a cycle is currently running."""
        return self._cycle_lock.locked()

    async def run_cycle(self) -> CycleReport:
        """Run one cycle unless another one is in progress.

        Never raises: a failed cycle is logged and reported, and the next
        tick starts again from scratch.
        """
        if self._cycle_lock.locked():
            logger.warning("Previous aggregation cycle still in progress, skipping tick")
            return CycleReport(success=False, skipped=True)

        async with self._cycle_lock:
            try:
                return await self._cycle()
            except Exception as e:
                logger.error(f"Aggregation cycle failed: {e!r}")
                return CycleReport(success=False, error=str(e) or repr(e))

    async def _cycle(self) -> CycleReport:
        now = utc_now()
        feed_result, fiat_result, pools_result, rollup_result = await gather_results(
            [
                self.token_feed.get_token_prices(),
                self.fiat_source.get_fiat_price(self.config.fiat_symbol),
                self.pool_fetcher.fetch_all_pools(),
                self.rollup.rollup_24h(now),
            ]
        )
        for name, result in (
            ("token price feed", feed_result),
            ("fiat price", fiat_result),
            ("pool snapshot", pools_result),
            ("swap rollup", rollup_result),
        ):
            if not result.ok:
                logger.warning(f"Using empty {name}: {result.error!r}")

        external_prices = feed_result.value_or({})
        near_price = fiat_result.value_or(None)
        snapshots: list[ContractPool] = pools_result.value_or([])
        volumes: dict[str, PoolVolume] = rollup_result.value_or({})

        internal_prices = await self.reconciler.reconcile(snapshots, near_price)
        tokens = self.reconciler.merge_token_prices(external_prices, internal_prices, now)

        previous_pools = {pool.id: pool for pool in await self.store.find_all_pools()}
        pools = self.build_pool_records(snapshots, volumes, previous_pools, now)

        await self.store.upsert_batch(tokens, pools)
        logger.info(f"Cycle complete: {len(tokens)} tokens, {len(pools)} pools written")
        return CycleReport(success=True, tokens_written=len(tokens), pools_written=len(pools))

    def build_pool_records(
        self,
        snapshots: list[ContractPool],
        volumes: Mapping[str, PoolVolume],
        previous: Mapping[str, Pool],
        now: datetime,
    ) -> list[Pool]:
        """Merge chain reserves with rolling volumes into pool records.

        Chain order of the tokens is authoritative. Pools seen only in the
        rollup keep their previously stored reserves, or ``"0"``.
        """
        records: dict[str, Pool] = {}

        for snapshot in snapshots:
            if len(snapshot.token_account_ids) < 2:
                logger.debug(f"Skipping pool {snapshot.id} with fewer than two tokens")
                continue
            pool_id = str(snapshot.id)
            first, second = snapshot.token_account_ids[:2]
            supplies = snapshot.supplies
            volume = volumes.get(pool_id)
            records[pool_id] = Pool(
                id=pool_id,
                token_first=first,
                token_second=second,
                volume_first=_amount(supplies.get(first, ZERO)),
                volume_second=_amount(supplies.get(second, ZERO)),
                volume_24h_first=_amount(volume.volume_for(first) if volume else ZERO),
                volume_24h_second=_amount(volume.volume_for(second) if volume else ZERO),
                updated_at=now,
            )

        deny_list = self.config.deny_list
        for pool_id, volume in volumes.items():
            if pool_id in records:
                continue
            if volume.token_first in deny_list or volume.token_second in deny_list:
                continue
            stored = previous.get(pool_id)
            if stored is not None and {stored.token_first, stored.token_second} == {
                volume.token_first,
                volume.token_second,
            }:
                first, second = stored.token_first, stored.token_second
                reserve_first, reserve_second = stored.volume_first, stored.volume_second
            else:
                first, second = volume.token_first, volume.token_second
                reserve_first = reserve_second = "0"
            records[pool_id] = Pool(
                id=pool_id,
                token_first=first,
                token_second=second,
                volume_first=reserve_first,
                volume_second=reserve_second,
                volume_24h_first=_amount(volume.volume_for(first)),
                volume_24h_second=_amount(volume.volume_for(second)),
                updated_at=now,
            )

        return list(records.values())

    async def run(self) -> None:
        """Run cycles every ``config.period`` seconds until cancelled."""
        logger.info(f"Starting aggregation loop, period {self.config.period}s")
        try:
            while True:
                report = await self.run_cycle()
                if not report.success and not report.skipped:
                    logger.warning(f"Cycle failed, retrying in {self.config.period}s")
                await asyncio.sleep(self.config.period)
        finally:
            await HttpSource.close_shared_client()
