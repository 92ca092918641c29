"""
Reporting - Staking Return.

============================================================
RESPONSIBILITY
============================================================
Daily nominal staking-return series.

- Sums the minute reward rows per day and denom
- Converts every denom into the native denom with that day's price
- Pairs each day with its average staked amount

============================================================
RULES
============================================================
- Only complete days (before start of today, UTC)
- Daily reward = summed reward, or tax + gas + oracle when the
  summed reward is zero
- Non-native denom without a price that day: pair skipped
- Average staked amount zero: day omitted
- Reward data without any staking snapshot: error

============================================================
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from chain_adapters.base import ChainStatsPort
from core.clock import ClockProtocol, SystemClock
from core.decimal_math import div, is_zero, plus, sum_all, times
from core.exceptions import StakingDataMissingError
from database.models import GeneralInfoEntity, RewardEntity
from reporting.price_history import PriceHistoryPort


logger = logging.getLogger(__name__)


REWARD_COMPONENTS = ("tax", "gas", "oracle", "sum", "commission")


@dataclass(frozen=True)
class DailyReturn:
    """Reward and average stake of one UTC day, both in the native denom."""
    date: date
    reward: str
    avg_staking: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "date": self.date.isoformat(),
            "reward": self.reward,
            "avg_staking": self.avg_staking,
        }


class StakingReturnCalculator:
    """
    Computes the daily staking-return series from persisted aggregates.

    Example:
        calculator = StakingReturnCalculator(factory, lcd, prices, "columbus-5")
        returns = await calculator.compute_daily_returns(days_before=30)
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        chain_stats: ChainStatsPort,
        price_history: PriceHistoryPort,
        chain_id: str,
        native_denom: str = "uluna",
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._session_factory = session_factory
        self._chain_stats = chain_stats
        self._price_history = price_history
        self._chain_id = chain_id
        self._native_denom = native_denom
        self._clock = clock or SystemClock()

    async def compute_daily_returns(self, days_before: Optional[int] = None) -> Dict[date, DailyReturn]:
        """
        Daily returns for every complete day with reward data.

        Args:
            days_before: Only the last N complete days (None = all history)

        Raises:
            StakingDataMissingError: A day has rewards but no staking snapshot
        """
        end = self._clock.start_of_today()
        start = end - timedelta(days=days_before) if days_before else None

        session = self._session_factory()
        try:
            reward_rows = self._query(session, RewardEntity, start, end)
            staking_rows = self._query(session, GeneralInfoEntity, start, end)
        finally:
            session.close()

        rewards_by_day = self._rewards_in_native(reward_rows)
        staked_by_day = await self._average_staking(staking_rows)

        returns: Dict[date, DailyReturn] = {}
        for day in sorted(rewards_by_day):
            if day not in staked_by_day:
                raise StakingDataMissingError(day)

            staked = staked_by_day[day]
            if is_zero(staked):
                logger.debug(f"No stake on {day}, day omitted")
                continue

            components = rewards_by_day[day]
            reward = components["sum"]
            if is_zero(reward):
                reward = sum_all([components["tax"], components["gas"], components["oracle"]])

            returns[day] = DailyReturn(date=day, reward=reward, avg_staking=staked)

        logger.info(f"Computed staking returns: days={len(returns)}")
        return returns

    def _query(self, session, entity, start: Optional[datetime], end: datetime) -> List:
        query = (
            select(entity)
            .where(entity.chain_id == self._chain_id)
            .where(entity.datetime < end)
        )
        if start is not None:
            query = query.where(entity.datetime >= start)
        return session.execute(query.order_by(entity.datetime)).scalars().all()

    def _rewards_in_native(self, rows: List[RewardEntity]) -> Dict[date, Dict[str, str]]:
        """Per-day component totals converted into the native denom."""
        per_pair: Dict[tuple, Dict[str, str]] = {}
        for row in rows:
            key = (row.datetime.date(), row.denom)
            totals = per_pair.setdefault(key, {c: "0" for c in REWARD_COMPONENTS})
            for component in REWARD_COMPONENTS:
                totals[component] = plus(totals[component], getattr(row, component))

        per_day: Dict[date, Dict[str, str]] = {}
        for (day, denom), totals in sorted(per_pair.items()):
            if denom != self._native_denom:
                price = self._price_history.get_price(day, denom)
                if not price or is_zero(price):
                    logger.debug(f"No price for {denom} on {day}, skipped")
                    continue
                totals = {c: div(amount, price) for c, amount in totals.items()}

            day_totals = per_day.setdefault(day, {c: "0" for c in REWARD_COMPONENTS})
            for component, amount in totals.items():
                day_totals[component] = plus(day_totals[component], amount)

        return per_day

    async def _average_staking(self, rows: List[GeneralInfoEntity]) -> Dict[date, str]:
        """
        Average bonded tokens per day.

        Days without a bonded figure fall back to issuance * avg(staking_ratio).
        """
        bonded: Dict[date, List[str]] = {}
        ratios: Dict[date, List[str]] = {}
        for row in rows:
            day = row.datetime.date()
            if row.bonded_tokens is not None:
                bonded.setdefault(day, []).append(row.bonded_tokens)
            if row.staking_ratio is not None:
                ratios.setdefault(day, []).append(row.staking_ratio)

        averages = {
            day: div(sum_all(values), len(values))
            for day, values in bonded.items()
        }

        missing = [day for day in ratios if day not in averages]
        if missing:
            issuance = await self._chain_stats.get_issuance(self._native_denom)
            for day in missing:
                avg_ratio = div(sum_all(ratios[day]), len(ratios[day]))
                averages[day] = times(issuance, avg_ratio)

        return averages
