"""
Periodic Aggregators.

============================================================
RESPONSIBILITY
============================================================
Minute snapshots written when the chain crosses a minute
boundary:

- RewardWindowAggregator: block rewards/commissions of the minute
- NetworkAggregator: total supply per denom
- PriceAggregator: oracle exchange rates
- GeneralInfoAggregator: staking pool and staking ratio

Every row is stored under the start of the aggregated minute.

============================================================
"""

import logging
from datetime import datetime
from typing import Dict

from sqlalchemy import select
from sqlalchemy.orm import Session

from chain_adapters.base import ChainStatsPort
from chain_sync.collaborators import PeriodicAggregator
from core.clock import last_minute_window
from core.decimal_math import div, is_zero, plus
from database.models import BlockRewardEntity
from database.persistence import (
    persist_general_info,
    persist_network,
    persist_prices,
    persist_rewards,
)


logger = logging.getLogger(__name__)


# ============================================================
# REWARD WINDOW
# ============================================================

class RewardWindowAggregator(PeriodicAggregator):
    """Sums the per-block reward facts of the previous minute per denom."""

    name = "reward"

    def __init__(self, chain_id: str) -> None:
        self._chain_id = chain_id

    def summarize(self, session: Session, start: datetime, end: datetime) -> Dict[str, Dict[str, str]]:
        """
        Per-denom sums of block rewards in [start, end).

        Returns:
            denom -> {"sum": reward total, "commission": commission total}
        """
        rewards = session.execute(
            select(BlockRewardEntity.reward, BlockRewardEntity.commission)
            .where(BlockRewardEntity.chain_id == self._chain_id)
            .where(BlockRewardEntity.timestamp >= start)
            .where(BlockRewardEntity.timestamp < end)
        ).all()

        rows: Dict[str, Dict[str, str]] = {}
        for reward, commission in rewards:
            for denom, amount in (reward or {}).items():
                row = rows.setdefault(denom, {"sum": "0", "commission": "0"})
                row["sum"] = plus(row["sum"], amount)
            for denom, amount in (commission or {}).items():
                row = rows.setdefault(denom, {"sum": "0", "commission": "0"})
                row["commission"] = plus(row["commission"], amount)

        return rows

    async def run(self, session: Session, window_end: datetime, height: int) -> None:
        start, end = last_minute_window(window_end)
        rows = self.summarize(session, start, end)
        persist_rewards(session, self._chain_id, start, rows)


# ============================================================
# NETWORK
# ============================================================

class NetworkAggregator(PeriodicAggregator):
    """Total supply per denom at the boundary height."""

    name = "network"

    def __init__(self, chain: ChainStatsPort, chain_id: str) -> None:
        self._chain = chain
        self._chain_id = chain_id

    async def run(self, session: Session, window_end: datetime, height: int) -> None:
        start, _ = last_minute_window(window_end)
        supply = await self._chain.get_total_supply(height)
        persist_network(session, self._chain_id, start, supply)


# ============================================================
# PRICE
# ============================================================

class PriceAggregator(PeriodicAggregator):
    """Oracle exchange rates at the boundary height."""

    name = "price"

    def __init__(self, chain: ChainStatsPort, chain_id: str) -> None:
        self._chain = chain
        self._chain_id = chain_id

    async def run(self, session: Session, window_end: datetime, height: int) -> None:
        start, _ = last_minute_window(window_end)
        prices = await self._chain.get_oracle_prices(height)
        persist_prices(session, self._chain_id, start, prices)


# ============================================================
# GENERAL INFO
# ============================================================

class GeneralInfoAggregator(PeriodicAggregator):
    """
    Staking pool snapshot at the boundary height.

    staking_ratio = bonded_tokens / issuance of the native denom
    """

    name = "general_info"

    def __init__(self, chain: ChainStatsPort, chain_id: str, native_denom: str) -> None:
        self._chain = chain
        self._chain_id = chain_id
        self._native_denom = native_denom

    async def run(self, session: Session, window_end: datetime, height: int) -> None:
        start, _ = last_minute_window(window_end)

        pool = await self._chain.get_staking_pool(height)
        supply = await self._chain.get_total_supply(height)
        issuance = supply.get(self._native_denom)

        if pool is None:
            logger.warning(f"No staking pool at height {height}, general info skipped")
            return

        staking_ratio = None
        if issuance and not is_zero(issuance):
            staking_ratio = div(pool.bonded_tokens, issuance)

        persist_general_info(session, self._chain_id, start, {
            "bonded_tokens": pool.bonded_tokens,
            "not_bonded_tokens": pool.not_bonded_tokens,
            "issuance": issuance,
            "staking_ratio": staking_ratio,
        })
