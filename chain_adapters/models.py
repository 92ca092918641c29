"""
Chain Data Models - Typed views of the light-client API payloads.

Each model knows how to build itself from the raw LCD JSON so the
rest of the system never touches untyped dictionaries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from core.clock import parse_chain_time


class RewardEventType:
    """Event types carried by per-block distribution events."""
    REWARDS = "rewards"
    COMMISSION = "commission"

    ALL = (REWARDS, COMMISSION)


@dataclass(frozen=True)
class PublicKey:
    """
    A consensus public key.

    Older chain versions expose the key as one bech32 string
    (type is None); newer ones as {"type": ..., "value": base64}.
    """
    key: str
    type: Optional[str] = None

    @classmethod
    def from_lcd(cls, raw: Any) -> "PublicKey":
        """Create from an LCD pub_key / consensus_pubkey field."""
        if isinstance(raw, str):
            return cls(key=raw)
        if isinstance(raw, dict):
            key = raw.get("value", raw.get("key"))
            if not isinstance(key, str):
                raise ValueError(f"Unsupported public key payload: {raw!r}")
            return cls(key=key, type=raw.get("type", raw.get("@type")))
        raise ValueError(f"Unsupported public key payload: {raw!r}")


@dataclass(frozen=True)
class BlockHeader:
    """The subset of a block header the indexer needs."""
    chain_id: str
    height: int
    time: datetime
    proposer_address: str


@dataclass(frozen=True)
class Block:
    """A block as returned by the light client."""
    header: BlockHeader
    txs: List[str] = field(default_factory=list)
    """Raw transactions, base64 encoded."""

    @property
    def height(self) -> int:
        return self.header.height

    @property
    def chain_id(self) -> str:
        return self.header.chain_id

    @property
    def time(self) -> datetime:
        return self.header.time

    @classmethod
    def from_lcd(cls, raw: dict) -> "Block":
        """Create from an LCD /blocks response."""
        block = raw["block"]
        header = block["header"]
        txs = (block.get("data") or {}).get("txs") or []
        return cls(
            header=BlockHeader(
                chain_id=header["chain_id"],
                height=int(header["height"]),
                time=parse_chain_time(header["time"]),
                proposer_address=header["proposer_address"],
            ),
            txs=list(txs),
        )


@dataclass(frozen=True)
class RawRewardEvent:
    """
    One distribution event for one validator.

    amount is the chain's comma-separated coin list, e.g.
    "1234.5uluna,10.1ukrw".
    """
    validator: str
    type: str
    amount: str


@dataclass(frozen=True)
class ValidatorDescriptor:
    """Staking-module view of a validator."""
    operator_address: str
    consensus_pubkey: PublicKey
    moniker: str = ""
    status: Optional[str] = None

    @classmethod
    def from_lcd(cls, raw: dict) -> "ValidatorDescriptor":
        """Create from an LCD /staking/validators entry."""
        description = raw.get("description") or {}
        status = raw.get("status")
        return cls(
            operator_address=raw["operator_address"],
            consensus_pubkey=PublicKey.from_lcd(raw["consensus_pubkey"]),
            moniker=description.get("moniker", ""),
            status=str(status) if status is not None else None,
        )


@dataclass(frozen=True)
class ConsensusValidator:
    """Consensus-set view of a validator at a height."""
    address: str
    """Consensus address: bech32 (valcons) or hex."""
    pub_key: PublicKey
    voting_power: str = "0"

    @classmethod
    def from_lcd(cls, raw: dict) -> "ConsensusValidator":
        """Create from an LCD /validatorsets entry."""
        return cls(
            address=raw["address"],
            pub_key=PublicKey.from_lcd(raw["pub_key"]),
            voting_power=str(raw.get("voting_power", "0")),
        )


@dataclass(frozen=True)
class StakingPool:
    """Bonded / not-bonded token totals."""
    bonded_tokens: str
    not_bonded_tokens: str

    @classmethod
    def from_lcd(cls, raw: dict) -> "StakingPool":
        """Create from an LCD /staking/pool response."""
        pool = raw.get("pool", raw)
        return cls(
            bonded_tokens=str(pool["bonded_tokens"]),
            not_bonded_tokens=str(pool["not_bonded_tokens"]),
        )
