"""TokenResolver: Lazy, storage-memoized token metadata lookup."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from .PriceStore import PriceStore
from .Records import Token, utc_now

logger = logging.getLogger(__name__)


class MetadataSource(Protocol):
    async def get_fungible_token_metadata(self, address: str) -> dict[str, Any]:
        ...


class TokenResolver:
    """Resolves token decimals and symbol, fetching from chain on first use.

    A token missing from storage is fetched from the chain and written
    through immediately with price ``"0"``. Concurrent first resolutions of
    the same token may fetch its metadata twice; both writes converge.

    :ivar store: Token storage.
    :ivar metadata_source: Chain metadata collaborator.
    """

    def __init__(self, store: PriceStore, metadata_source: MetadataSource) -> None:
        self.store = store
        self.metadata_source = metadata_source

    async def resolve(self, address: str) -> Token:
        """Return the stored token, creating it from chain metadata if absent.

        :param address: Token contract account id.
        :returns: Stored token record, unmodified if it already existed.
        :raises SourceError: If metadata cannot be fetched.
        :raises KeyError: If the metadata lacks ``decimals`` or ``symbol``.
        """
        token = await self.store.find_token(address)
        if token is not None:
            return token

        metadata = await self.metadata_source.get_fungible_token_metadata(address)
        token = Token(
            id=address,
            decimals=int(metadata["decimals"]),
            symbol=str(metadata["symbol"]),
            price="0",
            updated_at=utc_now(),
        )
        await self.store.upsert_tokens([token])
        logger.info(f"Token {address} registered ({token.symbol}, {token.decimals} decimals)")
        return token
