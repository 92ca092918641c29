"""
Chain Read Ports - Abstract interfaces to the remote chain.

The sync loop only depends on these interfaces; the HTTP client that
implements them lives in chain_adapters.providers.

Conventions for every implementation:
- "Not produced yet" / "not found" is returned as None, never raised
- Pruned historical data raises PrunedDataError
- Any other remote failure raises FetchError
- Heights are plain ints; None means "latest"
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from chain_adapters.models import (
    Block,
    ConsensusValidator,
    RawRewardEvent,
    StakingPool,
    ValidatorDescriptor,
)


class ChainReadPort(ABC):
    """
    Block and validator reads needed by the sync loop.
    """

    @abstractmethod
    async def get_latest_block(self) -> Optional[Block]:
        """
        Fetch the chain head.

        Returns:
            Latest block, or None if the node has no block yet
        """
        pass

    @abstractmethod
    async def get_block(self, height: int) -> Optional[Block]:
        """
        Fetch a block by height.

        Returns:
            Block, or None if the node has not produced/caught up to it
        """
        pass

    @abstractmethod
    async def get_raw_reward_events(self, height: int) -> List[RawRewardEvent]:
        """Fetch the rewards/commission distribution events of a block."""
        pass

    @abstractmethod
    async def get_validator_descriptors(
        self,
        height: Optional[int] = None,
    ) -> List[ValidatorDescriptor]:
        """Fetch every validator (bonded, unbonding and unbonded)."""
        pass

    @abstractmethod
    async def get_validator_consensus_set(
        self,
        height: Optional[int] = None,
    ) -> List[ConsensusValidator]:
        """
        Fetch the consensus set.

        Implementations read at least three pages and merge them,
        de-duplicated by address.
        """
        pass


class ChainStatsPort(ABC):
    """
    Chain-wide statistics read by the periodic aggregators and the
    staking-return job.
    """

    @abstractmethod
    async def get_total_supply(self, height: Optional[int] = None) -> Dict[str, str]:
        """Total supply per denom."""
        pass

    @abstractmethod
    async def get_staking_pool(self, height: Optional[int] = None) -> Optional[StakingPool]:
        """Bonded / not-bonded totals."""
        pass

    @abstractmethod
    async def get_oracle_prices(self, height: Optional[int] = None) -> Dict[str, str]:
        """Oracle exchange rates: amount of denom per one native unit."""
        pass

    async def get_issuance(self, denom: str) -> str:
        """Current total supply of one denom ("0" if unknown)."""
        supply = await self.get_total_supply()
        return supply.get(denom, "0")
