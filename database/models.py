"""
Database ORM Models - Chain Index Tables.

============================================================
CHAIN INDEX SCHEMA
============================================================

Defines the six chain index tables with:
- Primary keys
- Chain id on every row
- Timestamps (naive UTC)
- Decimal amounts stored as exact strings
- Proper indexes

============================================================
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, JSON, ForeignKey, Index,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .engine import Base


# =============================================================
# COLUMN TYPES
# =============================================================

# SQLite only autoincrements INTEGER primary keys
PrimaryKeyType = BigInteger().with_variant(Integer, "sqlite")

JsonType = JSON().with_variant(JSONB, "postgresql")

# Exact decimal strings, e.g. "6000.06006"
AmountType = String(100)


def utc_now():
    """Get current UTC timestamp."""
    return datetime.utcnow()


# =============================================================
# 1. BLOCK REWARD TABLE
# =============================================================

class BlockRewardEntity(Base):
    """
    Per-block reward and commission totals.

    Source: chain_sync.block_ingestor
    Update Frequency: One row per indexed block
    Invariant: reward[denom] == sum of reward_per_val[*][denom]
    """
    __tablename__ = "block_reward"

    id = Column(PrimaryKeyType, primary_key=True, autoincrement=True)
    chain_id = Column(String(64), nullable=False)
    timestamp = Column(DateTime, nullable=False)

    # denom -> amount
    reward = Column(JsonType, nullable=False, default=dict)
    commission = Column(JsonType, nullable=False, default=dict)

    # operator -> denom -> amount
    reward_per_val = Column(JsonType, nullable=False, default=dict)
    commission_per_val = Column(JsonType, nullable=False, default=dict)

    __table_args__ = (
        Index("idx_block_reward_chain_time", "chain_id", "timestamp"),
    )


# =============================================================
# 2. BLOCK TABLE
# =============================================================

class BlockEntity(Base):
    """
    One row per ingested height.

    Source: chain_sync.block_ingestor
    Written exactly once, never updated.
    """
    __tablename__ = "block"

    id = Column(PrimaryKeyType, primary_key=True, autoincrement=True)
    chain_id = Column(String(64), nullable=False)
    height = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    proposer = Column(String(128), nullable=False)

    reward_id = Column(PrimaryKeyType, ForeignKey("block_reward.id"), nullable=True)
    reward = relationship(BlockRewardEntity)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("chain_id", "height", name="uq_block_chain_height"),
        Index("idx_block_chain_time", "chain_id", "timestamp"),
    )


# =============================================================
# 3. REWARD TABLE (per minute)
# =============================================================

class RewardEntity(Base):
    """
    Minute-bucketed reward sums per denom.

    Source: chain_sync.aggregators.RewardWindowAggregator
    Update Frequency: Every minute boundary crossed by the chain
    """
    __tablename__ = "reward"

    id = Column(PrimaryKeyType, primary_key=True, autoincrement=True)
    chain_id = Column(String(64), nullable=False)
    datetime = Column(DateTime, nullable=False)
    denom = Column(String(128), nullable=False)

    tax = Column(AmountType, nullable=False, default="0")
    gas = Column(AmountType, nullable=False, default="0")
    oracle = Column(AmountType, nullable=False, default="0")
    sum = Column(AmountType, nullable=False, default="0")
    commission = Column(AmountType, nullable=False, default="0")

    __table_args__ = (
        UniqueConstraint("chain_id", "datetime", "denom", name="uq_reward_minute_denom"),
    )


# =============================================================
# 4. NETWORK TABLE (per minute)
# =============================================================

class NetworkEntity(Base):
    """
    Minute snapshots of total supply per denom.

    Source: chain_sync.aggregators.NetworkAggregator
    """
    __tablename__ = "network"

    id = Column(PrimaryKeyType, primary_key=True, autoincrement=True)
    chain_id = Column(String(64), nullable=False)
    datetime = Column(DateTime, nullable=False)
    denom = Column(String(128), nullable=False)
    total_supply = Column(AmountType, nullable=False, default="0")

    __table_args__ = (
        UniqueConstraint("chain_id", "datetime", "denom", name="uq_network_minute_denom"),
    )


# =============================================================
# 5. PRICE TABLE (per minute)
# =============================================================

class PriceEntity(Base):
    """
    Minute snapshots of oracle exchange rates.

    price is the amount of denom per one unit of the native denom.

    Source: chain_sync.aggregators.PriceAggregator
    """
    __tablename__ = "price"

    id = Column(PrimaryKeyType, primary_key=True, autoincrement=True)
    chain_id = Column(String(64), nullable=False)
    datetime = Column(DateTime, nullable=False)
    denom = Column(String(128), nullable=False)
    price = Column(AmountType, nullable=False)

    __table_args__ = (
        UniqueConstraint("chain_id", "datetime", "denom", name="uq_price_minute_denom"),
        Index("idx_price_denom_time", "denom", "datetime"),
    )


# =============================================================
# 6. GENERAL INFO TABLE (per minute)
# =============================================================

class GeneralInfoEntity(Base):
    """
    Minute snapshots of staking state.

    Source: chain_sync.aggregators.GeneralInfoAggregator
    """
    __tablename__ = "general_info"

    id = Column(PrimaryKeyType, primary_key=True, autoincrement=True)
    chain_id = Column(String(64), nullable=False)
    datetime = Column(DateTime, nullable=False)

    bonded_tokens = Column(AmountType, nullable=True)
    not_bonded_tokens = Column(AmountType, nullable=True)
    issuance = Column(AmountType, nullable=True)
    staking_ratio = Column(AmountType, nullable=True)

    __table_args__ = (
        UniqueConstraint("chain_id", "datetime", name="uq_general_info_minute"),
    )


__all__ = [
    "BlockRewardEntity",
    "BlockEntity",
    "RewardEntity",
    "NetworkEntity",
    "PriceEntity",
    "GeneralInfoEntity",
]
