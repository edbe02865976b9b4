"""SwapFeedClient: Historical swap events from the indexer GraphQL API."""

from __future__ import annotations

import logging
from decimal import InvalidOperation

import httpx

from .HttpSource import HttpSource, SourceError
from .Records import Swap
from .TokenMath import to_decimal

logger = logging.getLogger(__name__)

# The indexer caps every query at this many swaps.
SWAP_PAGE_LIMIT = 1000

SWAPS_QUERY = """
query Swaps($gte: BigInt!, $lte: BigInt!, $first: Int!) {
    swaps(
        first: $first,
        where: {
            blockTimestamp_gte: $gte
            blockTimestamp_lte: $lte
        }
        orderBy: blockTimestamp
        orderDirection: asc
    ) {
        id
        tokenIn
        tokenInAmount
        poolId
        tokenOut
        tokenOutAmount
        receiptId
        blockTimestamp
    }
}
"""


class SwapFeedClient(HttpSource):
    """Client for the swap-history GraphQL endpoint.

    :ivar graph_api: GraphQL endpoint URL.
    """

    def __init__(
        self,
        graph_api: str,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.graph_api = graph_api

    async def get_swaps(self, ts_from: int, ts_to: int) -> list[Swap]:
        """Fetch swaps with ``ts_from <= blockTimestamp <= ts_to``.

        Results are ascending by timestamp and capped at
        :data:`SWAP_PAGE_LIMIT`; a full page may be missing swaps.

        :param ts_from: Inclusive lower bound, unix seconds.
        :param ts_to: Inclusive upper bound, unix seconds.
        :returns: Parsed swaps. Entries that cannot be parsed are skipped.
        :raises SourceError: If the request or the query fails.
        """
        response = await self._post(
            self.graph_api,
            json={
                "query": SWAPS_QUERY,
                "variables": {
                    "gte": str(ts_from),
                    "lte": str(ts_to),
                    "first": SWAP_PAGE_LIMIT,
                },
            },
        )
        try:
            body = response.json()
        except ValueError as e:
            raise SourceError(f"Swap feed returned invalid JSON: {e}") from e

        if body.get("errors"):
            raise SourceError(f"Swap feed query failed: {body['errors']}")

        raw_swaps = (body.get("data") or {}).get("swaps") or []
        if len(raw_swaps) >= SWAP_PAGE_LIMIT:
            logger.warning(
                f"Swap feed returned {len(raw_swaps)} swaps for [{ts_from}, {ts_to}]; "
                "results may be truncated"
            )

        swaps: list[Swap] = []
        for raw in raw_swaps:
            try:
                swaps.append(
                    Swap(
                        id=raw.get("id") or "",
                        token_in=raw["tokenIn"],
                        token_out=raw["tokenOut"],
                        token_in_amount=to_decimal(raw["tokenInAmount"]),
                        token_out_amount=to_decimal(raw["tokenOutAmount"]),
                        block_timestamp=int(raw["blockTimestamp"]),
                    )
                )
            except (AttributeError, KeyError, TypeError, ValueError, InvalidOperation) as e:
                logger.debug(f"Skipping unparsable swap {raw!r}: {e}")
        return swaps
