"""
Reporting Package.

Read-only views over the chain index.

Modules:
- staking_return: Daily staking-return series
- price_history: Daily average prices
- validator_rewards: Per-validator window sums, block reward series
"""

from .price_history import DatabasePriceHistory, PriceHistoryPort, StaticPriceHistory
from .staking_return import DailyReturn, StakingReturnCalculator
from .validator_rewards import (
    BlockRewardPoint,
    BlockRewardSeries,
    get_block_reward_series,
    get_validator_reward_and_commission_sum,
    normalize_reward_and_commission_to_native,
)


__all__ = [
    "BlockRewardPoint",
    "BlockRewardSeries",
    "DailyReturn",
    "DatabasePriceHistory",
    "PriceHistoryPort",
    "StakingReturnCalculator",
    "StaticPriceHistory",
    "get_block_reward_series",
    "get_validator_reward_and_commission_sum",
    "normalize_reward_and_commission_to_native",
]
