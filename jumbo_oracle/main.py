#!/usr/bin/env python3
"""Jumbo Price Oracle.

Derives USD prices for the exchange's tokens from on-chain pool reserves,
computes 24h pool volumes from the swap history and stores the results in
the database served by the read-only API.

Configure with CLI arguments or environment variables (CLI args take precedence).
"""

import argparse
import asyncio
import logging
import os
import sys
from decimal import Decimal, InvalidOperation

from .src.AggregationOrchestrator import AggregationOrchestrator
from .src.OracleConfig import OracleConfig, parse_deny_list
from .src.PriceStore import SqlPriceStore
from .src.fetchers import get_available_fetchers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_env_api_keys() -> dict[str, str]:
    """Parse fiat fetcher API keys from individual environment variables.

    Looks for: API_KEY_COINGECKO, etc.

    :returns: Dict mapping source names to API keys.
    """
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]

    for key, value in os.environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                source = key[len(prefix):].lower()
                api_keys[source] = value
                break

    return api_keys


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser with environment-backed defaults."""
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        description="Jumbo Price Oracle: token prices and pool volumes for the AMM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available fiat price sources:
  {', '.join(available_sources)}

Examples:
  # Run forever against mainnet, one cycle every 30 seconds
  python -m jumbo_oracle.main --contract-id v1.jumbo_exchange.near \\
      --graph-api https://indexer.example.com/graphql --jumbo-pool-id 0 \\
      --helper-url https://helper.example.com

  # Single cycle with a median of several fiat sources
  python -m jumbo_oracle.main --once --fiat-sources helper,coingecko,coinbase

Environment variables (CLI args take precedence):
  NODE_URL, CONTRACT_URL, GRAPH_API, PRICE_API, HELPER_URL,
  WRAP_NEAR_ADDRESS, JUMBO_TOKEN_ADDRESS, JUMBO_POOL_ID, BLACK_LIST,
  LOW_LIQUIDITY_FLOOR, PAGE_SIZE, FIAT_SOURCES, FIAT_SYMBOL,
  DATABASE_URL, CYCLE_PERIOD, FETCH_TIMEOUT, API_KEY_COINGECKO, etc.
""",
    )

    parser.add_argument(
        "--node-url",
        dest="node_url",
        type=str,
        help="NEAR JSON-RPC endpoint",
        default=os.environ.get("NODE_URL") or "https://rpc.mainnet.near.org",
    )

    parser.add_argument(
        "--contract-id",
        dest="contract_id",
        type=str,
        help="AMM contract account id",
        default=os.environ.get("CONTRACT_URL"),
    )

    parser.add_argument(
        "--graph-api",
        dest="graph_api",
        type=str,
        help="Swap history GraphQL endpoint",
        default=os.environ.get("GRAPH_API"),
    )

    parser.add_argument(
        "--price-api",
        dest="price_api",
        type=str,
        help="External token price feed URL (optional)",
        default=os.environ.get("PRICE_API"),
    )

    parser.add_argument(
        "--helper-url",
        dest="helper_url",
        type=str,
        help="Helper service base URL serving /fiat",
        default=os.environ.get("HELPER_URL"),
    )

    parser.add_argument(
        "--near-address",
        dest="near_address",
        type=str,
        help="NEAR anchor token address (default: wrap.near)",
        default=os.environ.get("WRAP_NEAR_ADDRESS") or "wrap.near",
    )

    parser.add_argument(
        "--jumbo-address",
        dest="jumbo_address",
        type=str,
        help="JUMBO anchor token address (default: token.jumbo_exchange.near)",
        default=os.environ.get("JUMBO_TOKEN_ADDRESS") or "token.jumbo_exchange.near",
    )

    parser.add_argument(
        "--jumbo-pool-id",
        dest="jumbo_pool_id",
        type=int,
        help="Reference NEAR/JUMBO pool id used to bootstrap the JUMBO price",
        default=os.environ.get("JUMBO_POOL_ID"),
    )

    parser.add_argument(
        "--deny-list",
        dest="deny_list",
        type=str,
        help="Space- or comma-separated token ids whose pools are ignored",
        default=os.environ.get("BLACK_LIST") or "",
    )

    parser.add_argument(
        "--low-liquidity-floor",
        dest="low_liquidity_floor",
        type=str,
        help="Minimum pool volume for an internal price (default: 1000)",
        default=os.environ.get("LOW_LIQUIDITY_FLOOR") or "1000",
    )

    parser.add_argument(
        "--page-size",
        dest="page_size",
        type=int,
        help="Pools per get_pools page (default: 100)",
        default=int(os.environ.get("PAGE_SIZE") or "100"),
    )

    parser.add_argument(
        "--fiat-sources",
        dest="fiat_sources",
        type=str,
        help=f"Comma-separated fiat price sources. Available: {', '.join(available_sources)}",
        default=os.environ.get("FIAT_SOURCES") or "helper",
    )

    parser.add_argument(
        "--fiat-symbol",
        dest="fiat_symbol",
        type=str,
        help="Anchor symbol queried from fiat sources (default: near)",
        default=os.environ.get("FIAT_SYMBOL") or "near",
    )

    parser.add_argument(
        "--database-url",
        dest="database_url",
        type=str,
        help="SQLAlchemy async database URL",
        default=os.environ.get("DATABASE_URL") or "sqlite+aiosqlite:///jumbo_oracle.db",
    )

    parser.add_argument(
        "--period",
        type=int,
        help="Seconds between aggregation cycles (minimum: 1, default: 30)",
        default=int(os.environ.get("CYCLE_PERIOD") or "30"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual external requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single aggregation cycle and exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def config_from_args(
    parser: argparse.ArgumentParser, args: argparse.Namespace
) -> OracleConfig:
    """Validate parsed arguments and freeze them into an OracleConfig."""
    if not args.contract_id:
        parser.error("--contract-id (or CONTRACT_URL) is required")
    if not args.graph_api:
        parser.error("--graph-api (or GRAPH_API) is required")
    if args.jumbo_pool_id is None:
        parser.error("--jumbo-pool-id (or JUMBO_POOL_ID) is required")

    try:
        jumbo_pool_id = int(args.jumbo_pool_id)
    except ValueError:
        parser.error(f"--jumbo-pool-id must be an integer, got {args.jumbo_pool_id!r}")

    try:
        low_liquidity_floor = Decimal(args.low_liquidity_floor)
    except InvalidOperation:
        parser.error(f"--low-liquidity-floor must be a number, got {args.low_liquidity_floor!r}")

    available_sources = get_available_fetchers()
    fiat_sources = tuple(s.strip().lower() for s in args.fiat_sources.split(",") if s.strip())
    invalid_sources = [s for s in fiat_sources if s not in available_sources]
    if invalid_sources:
        parser.error(
            f"Unknown fiat sources: {invalid_sources}. "
            f"Available: {', '.join(available_sources)}"
        )

    try:
        return OracleConfig(
            node_url=args.node_url,
            contract_id=args.contract_id,
            graph_api=args.graph_api,
            near_address=args.near_address,
            jumbo_address=args.jumbo_address,
            jumbo_pool_id=jumbo_pool_id,
            price_api=args.price_api or None,
            helper_url=args.helper_url or None,
            deny_list=parse_deny_list(args.deny_list),
            low_liquidity_floor=low_liquidity_floor,
            page_size=args.page_size,
            fiat_sources=fiat_sources,
            fiat_symbol=args.fiat_symbol.lower(),
            database_url=args.database_url,
            period=args.period,
            fetch_timeout=args.fetch_timeout,
        )
    except ValueError as e:
        parser.error(str(e))


async def run_oracle(config: OracleConfig, once: bool, api_keys: dict[str, str]) -> bool:
    """Create storage, then run one cycle or loop forever.

    :returns: False if a single requested cycle failed.
    """
    store = SqlPriceStore(config.database_url)
    await store.create_all()
    orchestrator = AggregationOrchestrator.from_config(config, store, api_keys=api_keys)
    try:
        if once:
            report = await orchestrator.run_cycle()
            return report.success
        await orchestrator.run()
        return True
    finally:
        await store.dispose()


def main() -> None:
    """Main entry point for the Jumbo Price Oracle CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = config_from_args(parser, args)
    api_keys = parse_env_api_keys()

    # Log configuration
    logger.info("=" * 60)
    logger.info("Jumbo Price Oracle")
    logger.info("=" * 60)
    logger.info(f"Node:              {config.node_url}")
    logger.info(f"Contract:          {config.contract_id}")
    logger.info(f"Swap Feed:         {config.graph_api}")
    logger.info(f"Price Feed:        {config.price_api or 'disabled'}")
    logger.info(f"Anchors:           {config.near_address}, {config.jumbo_address}")
    logger.info(f"Reference Pool:    {config.jumbo_pool_id}")
    logger.info(f"Fiat Sources:      {', '.join(config.fiat_sources)}")
    logger.info(f"Deny List:         {len(config.deny_list)} tokens")
    logger.info(f"Liquidity Floor:   {config.low_liquidity_floor}")
    logger.info(f"Page Size:         {config.page_size}")
    logger.info(f"Period:            {config.period}s")
    logger.info(f"Fetch Timeout:     {config.fetch_timeout}s")
    if api_keys:
        logger.info(f"API Keys:          {', '.join(api_keys.keys())}")
    logger.info("=" * 60)

    try:
        ok = asyncio.run(run_oracle(config, args.once, api_keys))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        return
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
