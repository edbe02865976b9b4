"""
Jumbo Price Oracle - Price & Volume Aggregation Module

This module derives USD token prices and pool volume metrics for the AMM:
- TokenMath: Exact decimal arithmetic over raw on-chain amounts
- TokenResolver: Lazy token metadata lookup memoized in storage
- PoolSnapshotFetcher: Paginated pool snapshots from the chain
- SwapVolumeRollup: 24h per-pool volume from the swap feed
- PriceReconciler: Anchor-implied prices arbitrated by pool liquidity
- AggregationOrchestrator: Per-cycle pipeline and batch persistence
- fetchers: Fiat price fetcher implementations for the anchor token
"""

from .AggregationOrchestrator import AggregationOrchestrator, CycleReport
from .FetchResult import FetchResult, gather_results
from .OracleConfig import OracleConfig
from .PoolSnapshotFetcher import PoolSnapshotFetcher
from .PriceReconciler import PriceCandidate, PriceReconciler
from .PriceStore import PriceStore, SqlPriceStore
from .Records import ContractPool, Pool, PoolVolume, Swap, Token
from .SwapVolumeRollup import SwapVolumeRollup
from .TokenResolver import TokenResolver

__all__ = [
    "AggregationOrchestrator",
    "ContractPool",
    "CycleReport",
    "FetchResult",
    "OracleConfig",
    "Pool",
    "PoolSnapshotFetcher",
    "PoolVolume",
    "PriceCandidate",
    "PriceReconciler",
    "PriceStore",
    "SqlPriceStore",
    "Swap",
    "SwapVolumeRollup",
    "Token",
    "TokenResolver",
    "gather_results",
]
