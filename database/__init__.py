"""
Database Package Initialization.

============================================================
CHAIN INDEX PERSISTENCE LAYER
============================================================

Blocks, per-block rewards and the minute aggregates are written
through SQLAlchemy with explicit commit/rollback.

REQUIRED:
- Every write is logged with structured format
- Every failure raises hard exceptions
- One block = one transaction

============================================================
"""

# Core engine and session management
from .engine import (
    Base,
    create_database_engine,
    create_session_factory,
    get_database_url,
    initialize_database,
    transaction_scope,
)

# ORM Models
from .models import (
    BlockEntity,
    BlockRewardEntity,
    GeneralInfoEntity,
    NetworkEntity,
    PriceEntity,
    RewardEntity,
)

# Persistence functions and port
from .persistence import (
    ChainStore,
    persist_block,
    persist_block_reward,
    persist_general_info,
    persist_network,
    persist_prices,
    persist_rewards,
)


__all__ = [
    # Engine
    "Base",
    "create_database_engine",
    "create_session_factory",
    "get_database_url",
    "initialize_database",
    "transaction_scope",

    # Models
    "BlockEntity",
    "BlockRewardEntity",
    "GeneralInfoEntity",
    "NetworkEntity",
    "PriceEntity",
    "RewardEntity",

    # Persistence
    "ChainStore",
    "persist_block",
    "persist_block_reward",
    "persist_general_info",
    "persist_network",
    "persist_prices",
    "persist_rewards",
]
