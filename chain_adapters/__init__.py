"""
Chain Adapters Package - Read access to the remote chain.

The sync loop and the aggregators only talk to the abstract ports
defined here; the aiohttp light-client implementation lives in
chain_adapters.providers.

Quick Start:
    from chain_adapters import LcdClient

    async def head_height():
        async with LcdClient(lcd_uri, rpc_uri=rpc_uri) as lcd:
            block = await lcd.get_latest_block()
            return block.height if block else None

Conventions:
- Data that does not exist yet is returned as None
- Pruned history raises PrunedDataError
- Other remote failures raise FetchError
"""

from chain_adapters.base import ChainReadPort, ChainStatsPort
from chain_adapters.encoding import (
    consensus_address_to_hex,
    get_tx_hash,
    get_tx_hashes_from_block,
)
from chain_adapters.exceptions import (
    ChainAdapterError,
    FetchError,
    InvalidRequestError,
    PrunedDataError,
    is_pruned_data_error,
)
from chain_adapters.models import (
    Block,
    BlockHeader,
    ConsensusValidator,
    PublicKey,
    RawRewardEvent,
    RewardEventType,
    StakingPool,
    ValidatorDescriptor,
)
from chain_adapters.providers.lcd import LcdClient


__all__ = [
    # Ports
    "ChainReadPort",
    "ChainStatsPort",
    # Models
    "Block",
    "BlockHeader",
    "ConsensusValidator",
    "PublicKey",
    "RawRewardEvent",
    "RewardEventType",
    "StakingPool",
    "ValidatorDescriptor",
    # Encoding
    "consensus_address_to_hex",
    "get_tx_hash",
    "get_tx_hashes_from_block",
    # Exceptions
    "ChainAdapterError",
    "FetchError",
    "InvalidRequestError",
    "PrunedDataError",
    "is_pruned_data_error",
    # Providers
    "LcdClient",
]
