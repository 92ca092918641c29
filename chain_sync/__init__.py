"""
Chain Sync Package.

Sequential block ingestion and the per-block derivations:

- BlockIngestor: the sync loop
- ValidatorResolver: proposer consensus address -> operator address
- decompose: distribution events -> RewardFact
- Periodic aggregators run at every minute boundary
"""

from chain_sync.aggregators import (
    GeneralInfoAggregator,
    NetworkAggregator,
    PriceAggregator,
    RewardWindowAggregator,
)
from chain_sync.block_ingestor import BlockIngestor
from chain_sync.collaborators import (
    PeriodicAggregator,
    TransactionCollector,
    TransactionFactHandler,
)
from chain_sync.config import SyncConfig
from chain_sync.reward_decomposer import decompose, parse_coins, split_denom_and_amount
from chain_sync.types import RewardFact, SyncResult, SyncState
from chain_sync.validator_resolver import PubkeyMatchMode, ValidatorResolver


__all__ = [
    "BlockIngestor",
    "GeneralInfoAggregator",
    "NetworkAggregator",
    "PeriodicAggregator",
    "PriceAggregator",
    "PubkeyMatchMode",
    "RewardFact",
    "RewardWindowAggregator",
    "SyncConfig",
    "SyncResult",
    "SyncState",
    "TransactionCollector",
    "TransactionFactHandler",
    "ValidatorResolver",
    "decompose",
    "parse_coins",
    "split_denom_and_amount",
]
