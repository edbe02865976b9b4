"""NearRpcClient: Read-only view calls against the NEAR JSON-RPC API.

Serves as both the Chain Pool Source (pool count and pool pages of the AMM
contract) and the Chain Metadata Source (``ft_metadata`` of a token
contract). Only ``call_function`` view queries at ``final`` finality are
issued; nothing is ever signed or submitted.

.. code-block:: python

    >>> rpc = NearRpcClient("https://rpc.mainnet.near.org", "v1.jumbo_exchange.near")
    >>> await rpc.get_pool_count()
    412
    >>> pools = await rpc.get_pools(0, 100)
    >>> await rpc.get_fungible_token_metadata("wrap.near")
    {'decimals': 24, 'symbol': 'wNEAR'}
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

import httpx

from .HttpSource import HttpSource, SourceError
from .Records import ContractPool

logger = logging.getLogger(__name__)


class ChainRpcError(SourceError):
    """Raised when the node answers with a JSON-RPC or contract error."""

    pass


class NearRpcClient(HttpSource):
    """JSON-RPC client for view calls on NEAR contracts.

    :ivar node_url: RPC endpoint.
    :ivar contract_id: AMM contract account id.
    """

    def __init__(
        self,
        node_url: str,
        contract_id: str,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        :param node_url: NEAR RPC endpoint.
        :param contract_id: AMM contract account id.
        :param timeout: Request timeout in seconds.
        :param client: Optional HTTP client overriding the shared one.
        """
        super().__init__(timeout=timeout, client=client)
        self.node_url = node_url
        self.contract_id = contract_id

    async def view_function(
        self,
        account_id: str,
        method_name: str,
        args: dict | None = None,
    ) -> Any:
        """Call a view method and decode its JSON result.

        :param account_id: Contract account to call.
        :param method_name: View method name.
        :param args: JSON-serializable method arguments.
        :returns: Decoded JSON return value.
        :raises ChainRpcError: If the node or the contract reports an error.
        :raises SourceError: On transport failures.
        """
        args_base64 = base64.b64encode(json.dumps(args or {}).encode()).decode()
        payload = {
            "jsonrpc": "2.0",
            "id": "dontcare",
            "method": "query",
            "params": {
                "request_type": "call_function",
                "finality": "final",
                "account_id": account_id,
                "method_name": method_name,
                "args_base64": args_base64,
            },
        }
        response = await self._post(self.node_url, json=payload)

        try:
            body = response.json()
        except ValueError as e:
            raise ChainRpcError(f"{account_id}.{method_name}: invalid JSON: {e}") from e

        if "error" in body:
            raise ChainRpcError(f"{account_id}.{method_name}: {body['error']}")

        result = body.get("result") or {}
        if "error" in result:
            raise ChainRpcError(f"{account_id}.{method_name}: {result['error']}")
        if "result" not in result:
            raise ChainRpcError(f"{account_id}.{method_name}: empty result")

        try:
            return json.loads(bytes(result["result"]).decode())
        except (ValueError, TypeError) as e:
            raise ChainRpcError(
                f"{account_id}.{method_name}: undecodable result: {e}"
            ) from e

    async def get_pool_count(self) -> int:
        """Return the total number of pools on the AMM contract."""
        return int(await self.view_function(self.contract_id, "get_number_of_pools"))

    async def get_pools(self, from_index: int, limit: int) -> list[ContractPool]:
        """Fetch one page of pools.

        The contract returns pools positionally, so each pool's id is its
        index on the contract.

        :param from_index: Index of the first pool.
        :param limit: Maximum number of pools to return.
        :returns: Pool snapshots with ids ``from_index`` onward.
        """
        raw_pools = await self.view_function(
            self.contract_id,
            "get_pools",
            {"from_index": from_index, "limit": limit},
        )
        pools: list[ContractPool] = []
        for offset, raw in enumerate(raw_pools):
            pool_id = from_index + offset
            try:
                pools.append(ContractPool.from_contract(pool_id, raw))
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                logger.warning(f"Skipping malformed pool {pool_id}: {e}")
        return pools

    async def get_fungible_token_metadata(self, address: str) -> dict[str, Any]:
        """Fetch NEP-148 metadata of a fungible token contract.

        :param address: Token contract account id.
        :returns: Metadata dict containing at least ``decimals`` and ``symbol``.
        :raises ChainRpcError: If the account is not a fungible token.
        """
        metadata = await self.view_function(address, "ft_metadata")
        if not isinstance(metadata, dict) or "decimals" not in metadata:
            raise ChainRpcError(f"{address} returned no fungible token metadata")
        return metadata
