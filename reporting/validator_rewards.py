"""
Reporting - Validator Rewards and Block Reward Series.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.decimal_math import div, is_zero, plus
from database.models import BlockEntity, BlockRewardEntity, RewardEntity


logger = logging.getLogger(__name__)


# ============================================================
# PER-VALIDATOR WINDOW SUMS
# ============================================================

def get_validator_reward_and_commission_sum(
    session: Session,
    chain_id: str,
    operator_address: str,
    from_ts: datetime,
    to_ts: datetime,
    denoms: Optional[Iterable[str]] = None,
) -> Dict[str, Dict[str, str]]:
    """
    Sum one validator's per-block reward and commission in [from_ts, to_ts).

    Only reward rows attached to an indexed block are counted.

    Args:
        denoms: Denoms always present in the result ("0" when absent)

    Returns:
        {"reward": {denom: amount}, "commission": {denom: amount}}
    """
    rows = session.execute(
        select(BlockRewardEntity.reward_per_val, BlockRewardEntity.commission_per_val)
        .join(BlockEntity, BlockEntity.reward_id == BlockRewardEntity.id)
        .where(BlockRewardEntity.chain_id == chain_id)
        .where(BlockRewardEntity.timestamp >= from_ts)
        .where(BlockRewardEntity.timestamp < to_ts)
    ).all()

    reward: Dict[str, str] = {denom: "0" for denom in denoms or []}
    commission: Dict[str, str] = {denom: "0" for denom in denoms or []}

    for reward_per_val, commission_per_val in rows:
        for denom, amount in ((reward_per_val or {}).get(operator_address) or {}).items():
            reward[denom] = plus(reward.get(denom), amount)
        for denom, amount in ((commission_per_val or {}).get(operator_address) or {}).items():
            commission[denom] = plus(commission.get(denom), amount)

    return {"reward": reward, "commission": commission}


def _to_native(amounts: Dict[str, str], avg_prices: Dict[str, str], native_denom: str) -> str:
    total = "0"
    for denom, amount in amounts.items():
        if denom == native_denom:
            total = plus(total, amount)
            continue

        if is_zero(amount):
            continue

        price = avg_prices.get(denom)
        if not price or is_zero(price):
            logger.warning(f"No average price for {denom}, {amount} left out of native total")
            continue

        total = plus(total, div(amount, price))
    return total


def normalize_reward_and_commission_to_native(
    sums: Dict[str, Dict[str, str]],
    avg_prices: Dict[str, str],
    native_denom: str = "uluna",
) -> Dict[str, str]:
    """
    Collapse per-denom reward/commission sums into native-denom totals.

    Args:
        sums: Output of get_validator_reward_and_commission_sum
        avg_prices: denom -> average price (denom per native unit)

    Returns:
        {"reward": amount, "commission": amount}
    """
    return {
        "reward": _to_native(sums.get("reward") or {}, avg_prices, native_denom),
        "commission": _to_native(sums.get("commission") or {}, avg_prices, native_denom),
    }


# ============================================================
# BLOCK REWARD SERIES
# ============================================================

@dataclass
class BlockRewardPoint:
    datetime: datetime
    block_reward: str


@dataclass
class BlockRewardSeries:
    """Per-minute block rewards and their running total."""
    periodic: List[BlockRewardPoint] = field(default_factory=list)
    cumulative: List[BlockRewardPoint] = field(default_factory=list)


def get_block_reward_series(
    session: Session,
    chain_id: str,
    denom: Optional[str] = None,
) -> BlockRewardSeries:
    """
    Periodic and cumulative block reward series from the minute table.

    Args:
        denom: Restrict to one denom (None = every denom summed per minute)
    """
    query = (
        select(RewardEntity.datetime, RewardEntity.sum)
        .where(RewardEntity.chain_id == chain_id)
        .order_by(RewardEntity.datetime)
    )
    if denom is not None:
        query = query.where(RewardEntity.denom == denom)

    per_minute: Dict[datetime, str] = {}
    for minute, amount in session.execute(query).all():
        per_minute[minute] = plus(per_minute.get(minute), amount)

    series = BlockRewardSeries()
    running = "0"
    for minute in sorted(per_minute):
        running = plus(running, per_minute[minute])
        series.periodic.append(BlockRewardPoint(minute, per_minute[minute]))
        series.cumulative.append(BlockRewardPoint(minute, running))

    return series
