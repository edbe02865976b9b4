"""SwapVolumeRollup: 24h traded volume per pool, recomputed from raw swaps.

The window is split on hour boundaries (UTC). Each consecutive pair of
boundaries is queried concurrently; the flattened swaps are then folded
per pool. Nothing is carried over from previous cycles.

.. code-block:: python

    >>> rollup = SwapVolumeRollup(swap_feed)
    >>> volumes = await rollup.rollup_24h()
    >>> volumes["42"].volume_24h_first
    Decimal('1500000')
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Protocol

from .FetchResult import gather_results
from .Records import PoolVolume, Swap
from .TokenMath import DECIMAL_CONTEXT

logger = logging.getLogger(__name__)

HOUR_IN_SECONDS = 60 * 60
HOURS_IN_DAY = 24


class SwapSource(Protocol):
    async def get_swaps(self, ts_from: int, ts_to: int) -> list[Swap]:
        ...


def hour_boundaries(now: datetime, hours: int = HOURS_IN_DAY) -> list[int]:
    """Return ``hours`` hour-aligned unix timestamps, newest first.

    .. code-block:: python

        >>> hour_boundaries(datetime(2024, 1, 1, 5, 30, tzinfo=timezone.utc), 3)
        [1704085200, 1704081600, 1704078000]
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    hour_now = now.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)
    start = int(hour_now.timestamp())
    return [start - i * HOUR_IN_SECONDS for i in range(hours)]


def fold_swaps(swaps: Iterable[Swap]) -> dict[str, PoolVolume]:
    """Fold swaps into per-pool directional volume.

    The first swap seen for a pool fixes its token order (``token_in``
    first). Each swap adds its ``token_in_amount`` to the side of its
    ``token_in``. Swaps without a pool id, or that fail to apply, are
    skipped.

    :param swaps: Swaps in any order.
    :returns: Pool id to rolling volume.
    """
    volumes: dict[str, PoolVolume] = {}
    for swap in swaps:
        pool_id = swap.pool_id
        if pool_id is None:
            logger.debug(f"Dropping swap with malformed id {swap.id!r}")
            continue
        try:
            entry = volumes.get(pool_id)
            if entry is None:
                entry = PoolVolume(token_first=swap.token_in, token_second=swap.token_out)
            if entry.token_first == swap.token_in:
                first = DECIMAL_CONTEXT.add(entry.volume_24h_first, swap.token_in_amount)
                second = entry.volume_24h_second
            else:
                first = entry.volume_24h_first
                second = DECIMAL_CONTEXT.add(entry.volume_24h_second, swap.token_in_amount)
        except (ArithmeticError, TypeError) as e:
            logger.warning(f"Skipping swap {swap.id!r}: {e}")
            continue
        entry.volume_24h_first = first
        entry.volume_24h_second = second
        volumes[pool_id] = entry
    return volumes


class SwapVolumeRollup:
    """Computes rolling 24h volume per pool from the swap feed.

    :ivar source: Swap feed collaborator.
    :ivar hours: Number of hour boundaries in the window.
    """

    def __init__(self, source: SwapSource, hours: int = HOURS_IN_DAY) -> None:
        self.source = source
        self.hours = hours

    async def fetch_window(self, now: datetime | None = None) -> list[list[Swap]]:
        """Fetch swaps of every hour bucket; a failed bucket is empty.

        :param now: Reference time (default: current UTC time).
        :returns: One list of swaps per bucket, newest bucket first.
        """
        bounds = hour_boundaries(now or datetime.now(timezone.utc), self.hours)
        ranges = [(bounds[i + 1], bounds[i]) for i in range(len(bounds) - 1)]

        results = await gather_results(
            self.source.get_swaps(gte, lte) for gte, lte in ranges
        )

        buckets: list[list[Swap]] = []
        for (gte, lte), result in zip(ranges, results):
            if not result.ok:
                logger.warning(f"Swap request [{gte}, {lte}] failed: {result.error!r}")
            bucket = result.value_or([])
            logger.debug(f"Results length for [{gte}, {lte}]: {len(bucket)}")
            buckets.append(bucket)
        return buckets

    async def rollup_24h(self, now: datetime | None = None) -> dict[str, PoolVolume]:
        """Recompute the rolling volume of every pool traded in the window.

        :param now: Reference time (default: current UTC time).
        :returns: Pool id to rolling volume.
        """
        buckets = await self.fetch_window(now)
        swaps = [swap for bucket in buckets for swap in bucket]
        volumes = fold_swaps(swaps)
        logger.info(f"Rolled up {len(swaps)} swaps into {len(volumes)} pools")
        return volumes
