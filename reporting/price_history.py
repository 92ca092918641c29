"""
Reporting - Price History.

Daily prices used to convert non-native denoms into the native
denom. A price is the amount of the denom per one native unit.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from core.decimal_math import div, sum_all
from database.models import PriceEntity


logger = logging.getLogger(__name__)


class PriceHistoryPort(ABC):
    """Historical price lookup."""

    @abstractmethod
    def get_price(self, day: date, denom: str) -> Optional[str]:
        """
        Price of `denom` on `day`.

        Returns:
            Decimal string, or None when no price is known
        """
        pass


class StaticPriceHistory(PriceHistoryPort):
    """In-memory prices: {(day, denom): price}."""

    def __init__(self, prices: Optional[Dict[tuple, str]] = None) -> None:
        self._prices = dict(prices or {})

    def set_price(self, day: date, denom: str, price: str) -> None:
        self._prices[(day, denom)] = price

    def get_price(self, day: date, denom: str) -> Optional[str]:
        return self._prices.get((day, denom))


class DatabasePriceHistory(PriceHistoryPort):
    """
    Daily average of the minute price snapshots.

    Averages are computed once per day and cached.
    """

    def __init__(self, session_factory: sessionmaker, chain_id: str) -> None:
        self._session_factory = session_factory
        self._chain_id = chain_id
        self._cache: Dict[date, Dict[str, str]] = {}

    def get_price(self, day: date, denom: str) -> Optional[str]:
        if day not in self._cache:
            self._cache[day] = self._load_day(day)
        return self._cache[day].get(denom)

    def _load_day(self, day: date) -> Dict[str, str]:
        start = datetime(day.year, day.month, day.day)
        end = start + timedelta(days=1)

        session = self._session_factory()
        try:
            rows = session.execute(
                select(PriceEntity.denom, PriceEntity.price)
                .where(PriceEntity.chain_id == self._chain_id)
                .where(PriceEntity.datetime >= start)
                .where(PriceEntity.datetime < end)
            ).all()
        finally:
            session.close()

        by_denom: Dict[str, List[str]] = {}
        for denom, price in rows:
            by_denom.setdefault(denom, []).append(price)

        averages = {
            denom: div(sum_all(prices), len(prices))
            for denom, prices in by_denom.items()
        }
        logger.debug(f"Loaded daily prices for {day}: {len(averages)} denoms")
        return averages
