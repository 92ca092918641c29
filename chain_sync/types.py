"""
Chain Sync - Models.

============================================================
RESPONSIBILITY
============================================================
Data models shared by the sync loop and its collaborators.

- Sync states
- Result of one sync pass
- Decomposed per-block reward fact

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# ============================================================
# SYNC STATES
# ============================================================

class SyncState(Enum):
    """States of the block ingestor."""

    AWAITING_HEAD = "awaiting_head"
    """Chain head not available yet; polling."""

    SYNCING = "syncing"
    """Ingesting heights last_indexed+1 .. head."""

    IDLE_CAUGHT_UP = "idle_caught_up"
    """Reached the head (or the next block is not produced yet)."""

    HALTED_ON_ERROR = "halted_on_error"
    """A block failed; nothing of it was persisted."""

    @property
    def is_terminal(self) -> bool:
        """Whether a pass ends in this state."""
        return self in (SyncState.IDLE_CAUGHT_UP, SyncState.HALTED_ON_ERROR)


# ============================================================
# SYNC RESULT
# ============================================================

@dataclass
class SyncResult:
    """Outcome of one sync pass."""

    state: SyncState
    start_height: int = 0
    last_indexed_height: int = 0
    blocks_ingested: int = 0

    error: Optional[BaseException] = None
    """Failure that halted the pass (None when pruned or successful)."""

    pruned: bool = False
    """The pass stopped because the node pruned the next height."""

    @property
    def halted(self) -> bool:
        return self.state == SyncState.HALTED_ON_ERROR

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "start_height": self.start_height,
            "last_indexed_height": self.last_indexed_height,
            "blocks_ingested": self.blocks_ingested,
            "error": repr(self.error) if self.error else None,
            "pruned": self.pruned,
        }


# ============================================================
# REWARD FACT
# ============================================================

DenomAmounts = Dict[str, str]


@dataclass
class RewardFact:
    """
    Rewards and commissions of one block.

    Amounts are exact decimal strings. For every denom the total
    equals the sum of the per-validator entries.
    """

    reward: DenomAmounts = field(default_factory=dict)
    commission: DenomAmounts = field(default_factory=dict)

    reward_per_val: Dict[str, DenomAmounts] = field(default_factory=dict)
    """operator address -> denom -> amount"""

    commission_per_val: Dict[str, DenomAmounts] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.reward or self.commission)
