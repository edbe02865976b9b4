"""PriceReconciler: USD prices implied by pools paired with an anchor token.

Algorithm:
    1. Bootstrap the JUMBO price from the reference NEAR/JUMBO pool
    2. Keep pools that contain NEAR or JUMBO
    3. For each pool, imply the counterpart's price from the anchor side's
       reserves and fiat price, and score the pool by corroboration volume
    4. Drop candidates whose volume is zero or below the liquidity floor;
       for each token keep the candidate with the strictly greatest volume
    5. Merge with the external price feed, preferring positive internal prices

A token quoted by several pools is priced from the best corroborated pool,
never averaged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping

from .FetchResult import gather_results
from .OracleConfig import DEFAULT_LOW_LIQUIDITY_FLOOR, OracleConfig
from .Records import ContractPool, ExternalTokenPrice, Token, utc_now
from .TokenMath import (
    calculate_price_for_token,
    calculate_volume,
    format_token_amount,
    to_plain_string,
)
from .TokenResolver import TokenResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceCandidate:
    """Price of one token implied by one pool.

    :ivar pool_id: Pool the price was derived from.
    :ivar token: Metadata of the priced token.
    :ivar price: Implied USD price, five fractional digits.
    :ivar volume: Corroboration volume of the pool.
    """

    pool_id: int
    token: Token
    price: Decimal
    volume: Decimal


class PriceReconciler:
    """Derives and arbitrates internal token prices.

    :ivar resolver: Token metadata resolver.
    :ivar near_address: Anchor token with an external fiat price.
    :ivar jumbo_address: Anchor token bootstrapped from the reference pool.
    :ivar jumbo_pool_id: Id of the reference NEAR/JUMBO pool.
    :ivar low_liquidity_floor: Minimum volume for a candidate to count.
    """

    def __init__(
        self,
        resolver: TokenResolver,
        near_address: str,
        jumbo_address: str,
        jumbo_pool_id: int,
        low_liquidity_floor: Decimal = DEFAULT_LOW_LIQUIDITY_FLOOR,
    ) -> None:
        self.resolver = resolver
        self.near_address = near_address
        self.jumbo_address = jumbo_address
        self.jumbo_pool_id = jumbo_pool_id
        self.low_liquidity_floor = low_liquidity_floor

    @classmethod
    def from_config(cls, config: OracleConfig, resolver: TokenResolver) -> PriceReconciler:
        return cls(
            resolver=resolver,
            near_address=config.near_address,
            jumbo_address=config.jumbo_address,
            jumbo_pool_id=config.jumbo_pool_id,
            low_liquidity_floor=config.low_liquidity_floor,
        )

    async def price_from_pool(
        self,
        pool: ContractPool,
        fiat_price: Decimal | None,
        fiat_token_id: str,
    ) -> tuple[Decimal, Token]:
        """Imply the price of the non-anchor side of a two-token pool.

        Both reserves are scaled to whole units (rounded to integers)
        before taking their ratio.

        :param pool: Pool snapshot.
        :param fiat_price: USD price of ``fiat_token_id``.
        :param fiat_token_id: Anchor side of the pool.
        :returns: Tuple of (implied price, counterpart token).
        :raises ValueError: If the pool is not a two-token pool holding the anchor.
        """
        if len(pool.token_account_ids) != 2:
            raise ValueError(
                f"Pool {pool.id} has {len(pool.token_account_ids)} tokens, expected 2"
            )
        first, second = pool.token_account_ids
        if fiat_token_id not in (first, second):
            raise ValueError(f"Pool {pool.id} does not contain {fiat_token_id}")
        fiat_token_id, fungible_token_id = (
            (first, second) if first == fiat_token_id else (second, first)
        )

        fungible_token, fiat_token = await asyncio.gather(
            self.resolver.resolve(fungible_token_id),
            self.resolver.resolve(fiat_token_id),
        )

        supplies = pool.supplies
        fiat_amount = format_token_amount(supplies.get(fiat_token_id), fiat_token.decimals, 0)
        fungible_amount = format_token_amount(
            supplies.get(fungible_token_id), fungible_token.decimals, 0
        )
        price = calculate_price_for_token(fiat_amount, fungible_amount, fiat_price)
        return price, fungible_token

    async def bootstrap_jumbo_price(
        self,
        pools: Iterable[ContractPool],
        near_price: Decimal | None,
    ) -> Decimal | None:
        """Derive the JUMBO price from the reference pool.

        :param pools: Pool snapshots.
        :param near_price: USD price of NEAR.
        :returns: JUMBO price, or None if the reference pool is missing or fails.
        """
        pool = next((p for p in pools if p.id == self.jumbo_pool_id), None)
        if pool is None:
            logger.warning(f"Reference pool {self.jumbo_pool_id} not found in snapshot")
            return None

        try:
            price, token = await self.price_from_pool(pool, near_price, self.near_address)
        except Exception as e:
            logger.warning(f"Cannot bootstrap price from pool {pool.id}: {e!r}")
            return None

        logger.info(f"Bootstrapped {token.id} price ${to_plain_string(price)} from pool {pool.id}")
        return price

    def candidate_pools(self, pools: Iterable[ContractPool]) -> list[ContractPool]:
        """Keep pools paired against NEAR or JUMBO."""
        anchors = (self.near_address, self.jumbo_address)
        return [
            pool for pool in pools
            if any(anchor in pool.token_account_ids for anchor in anchors)
        ]

    async def price_pool(
        self,
        pool: ContractPool,
        near_price: Decimal | None,
        jumbo_price: Decimal | None,
    ) -> PriceCandidate:
        """Price the counterpart of one anchor pool and score the pool.

        NEAR is used as the anchor when present, JUMBO otherwise.
        """
        if self.near_address in pool.token_account_ids:
            fiat_price, fiat_id = near_price, self.near_address
        else:
            fiat_price, fiat_id = jumbo_price, self.jumbo_address

        price, token = await self.price_from_pool(pool, fiat_price, fiat_id)
        volume = calculate_volume(pool.supplies, {token.id: price, fiat_id: fiat_price})
        return PriceCandidate(pool_id=pool.id, token=token, price=price, volume=volume)

    def arbitrate(self, candidates: Iterable[PriceCandidate]) -> dict[str, PriceCandidate]:
        """Pick one candidate per token by greatest corroboration volume.

        Candidates with zero volume or volume below the floor are dropped.
        Ties keep the earlier candidate.
        """
        best: dict[str, PriceCandidate] = {}
        for candidate in candidates:
            if candidate.volume.is_zero() or candidate.volume < self.low_liquidity_floor:
                logger.debug(
                    f"Pool {candidate.pool_id}: volume {candidate.volume} too low "
                    f"to price {candidate.token.id}"
                )
                continue
            previous = best.get(candidate.token.id)
            if previous is None or candidate.volume > previous.volume:
                best[candidate.token.id] = candidate
        return best

    async def reconcile(
        self,
        pools: list[ContractPool],
        near_price: Decimal | None,
    ) -> dict[str, PriceCandidate]:
        """Derive internal prices for every token paired with an anchor.

        A pool whose pricing fails is excluded; it never aborts the batch.

        :param pools: Pool snapshots.
        :param near_price: USD price of NEAR, or None if unavailable.
        :returns: Token id to winning candidate.
        """
        jumbo_price = await self.bootstrap_jumbo_price(pools, near_price)
        candidate_pools = self.candidate_pools(pools)

        results = await gather_results(
            self.price_pool(pool, near_price, jumbo_price) for pool in candidate_pools
        )

        candidates: list[PriceCandidate] = []
        for pool, result in zip(candidate_pools, results):
            if not result.ok:
                logger.error(f"Error while pricing pool {pool.id}: {result.error!r}")
                continue
            candidates.append(result.value)

        prices = self.arbitrate(candidates)
        logger.info(
            f"Priced {len(prices)} tokens from {len(candidates)}/{len(candidate_pools)} anchor pools"
        )
        return prices

    def merge_token_prices(
        self,
        external: Mapping[str, ExternalTokenPrice],
        internal: Mapping[str, PriceCandidate],
        now: datetime | None = None,
    ) -> list[Token]:
        """Combine external feed entries with internally derived prices.

        A token in both sets takes the internal price only when it is
        strictly positive. Tokens only priced internally are added.

        :returns: Token records to persist.
        """
        now = now or utc_now()
        tokens: list[Token] = []

        for token_id, entry in external.items():
            candidate = internal.get(token_id)
            if candidate is not None and candidate.price > 0:
                price = to_plain_string(candidate.price)
                logger.info(f"Token {token_id} internal price {price} (external {entry.price})")
            else:
                price = entry.price
                logger.info(f"Token {token_id} external price {price}")
            tokens.append(
                Token(
                    id=token_id,
                    decimals=entry.decimals,
                    symbol=entry.symbol,
                    price=price,
                    updated_at=now,
                )
            )

        for token_id, candidate in internal.items():
            if token_id in external:
                continue
            price = to_plain_string(candidate.price)
            logger.info(f"Token {token_id} internal price {price}")
            tokens.append(
                Token(
                    id=token_id,
                    decimals=candidate.token.decimals,
                    symbol=candidate.token.symbol,
                    price=price,
                    updated_at=now,
                )
            )

        return tokens
