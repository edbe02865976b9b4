"""Records: Token, pool and swap value types shared across the pipeline.

``Token`` and ``Pool`` are persisted between cycles; ``Swap``,
``ContractPool`` and ``PoolVolume`` only live for the duration of one
aggregation cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from .TokenMath import ZERO, to_decimal


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class Token:
    """A fungible token with its latest USD price.

    :ivar id: Token contract account id (primary key).
    :ivar decimals: On-chain decimals, immutable once observed.
    :ivar symbol: Display symbol, immutable once observed.
    :ivar price: USD price per whole unit as a plain decimal string.
    :ivar updated_at: Time of the last write.
    """

    id: str
    decimals: int
    symbol: str
    price: str = "0"
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Pool:
    """Liquidity and rolling volume of one AMM pool.

    ``token_first``/``token_second`` mirror on-chain reserve ordering.
    Reserve and volume fields are raw integer amounts as strings.
    """

    id: str
    token_first: str
    token_second: str
    volume_first: str = "0"
    volume_second: str = "0"
    volume_24h_first: str = "0"
    volume_24h_second: str = "0"
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class Swap:
    """One historical trade from the swap feed.

    :ivar id: Composite id, ``"<receipt> <pool_id>"``.
    """

    id: str
    token_in: str
    token_out: str
    token_in_amount: Decimal
    token_out_amount: Decimal
    block_timestamp: int

    @property
    def pool_id(self) -> str | None:
        """Extract the pool id from the composite swap id.

        :returns: Second whitespace-separated part of ``id``, or None.

        .. code-block:: python

            >>> Swap("abc 42", "a", "b", Decimal(1), Decimal(1), 0).pool_id
            '42'
            >>> Swap("malformed", "a", "b", Decimal(1), Decimal(1), 0).pool_id is None
            True
        """
        if not self.id:
            return None
        parts = self.id.split()
        if len(parts) < 2:
            return None
        return parts[1]


@dataclass(frozen=True)
class ContractPool:
    """Raw pool snapshot as returned by the AMM contract.

    :ivar id: Positional pool id on the contract.
    :ivar token_account_ids: Ordered token ids.
    :ivar amounts: Raw reserves aligned with ``token_account_ids``.
    """

    id: int
    token_account_ids: tuple[str, ...]
    amounts: tuple[Decimal, ...]

    @property
    def supplies(self) -> dict[str, Decimal]:
        """Map each token id to its raw reserve."""
        return dict(zip(self.token_account_ids, self.amounts))

    @classmethod
    def from_contract(cls, pool_id: int, raw: dict) -> ContractPool:
        """Build a snapshot from one ``get_pools`` entry.

        :param pool_id: Id assigned by position on the contract.
        :param raw: Contract JSON with ``token_account_ids`` and ``amounts``.
        :raises ValueError: If the two lists are not aligned.
        """
        token_ids = tuple(raw["token_account_ids"])
        amounts = tuple(to_decimal(a) for a in raw["amounts"])
        if len(token_ids) != len(amounts):
            raise ValueError(
                f"Pool {pool_id}: {len(token_ids)} tokens but {len(amounts)} amounts"
            )
        return cls(id=pool_id, token_account_ids=token_ids, amounts=amounts)


@dataclass
class PoolVolume:
    """Rolling 24h traded amount per side of one pool."""

    token_first: str
    token_second: str
    volume_24h_first: Decimal = ZERO
    volume_24h_second: Decimal = ZERO

    def volume_for(self, token: str) -> Decimal:
        """Return the rolling volume booked against ``token``."""
        if token == self.token_first:
            return self.volume_24h_first
        if token == self.token_second:
            return self.volume_24h_second
        return ZERO


@dataclass(frozen=True)
class ExternalTokenPrice:
    """One entry of the external token price feed."""

    decimals: int
    symbol: str
    price: str
