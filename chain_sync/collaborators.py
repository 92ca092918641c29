"""
Chain Sync - Collaborator Interfaces.

Work the block ingestor delegates. Every collaborator receives the
session of the in-flight atomic unit; whatever it writes commits or
rolls back together with the block.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List

from sqlalchemy.orm import Session

from chain_adapters.models import Block


class PeriodicAggregator(ABC):
    """
    Job run once per minute boundary crossed by the chain.

    window_end is the timestamp of the first block of the new minute;
    the aggregated window is the minute before it.
    """

    name: str = "aggregator"

    @abstractmethod
    async def run(self, session: Session, window_end: datetime, height: int) -> None:
        pass


class TransactionCollector(ABC):
    """Turns a block's transaction hashes into transaction facts."""

    @abstractmethod
    async def collect(
        self,
        session: Session,
        tx_hashes: List[str],
        height: int,
        block: Block,
    ) -> List[Any]:
        """
        Fetch, parse and persist the block's transactions.

        Returns:
            Transaction facts handed to every TransactionFactHandler
        """
        pass


class TransactionFactHandler(ABC):
    """Consumes transaction facts (contract events, governance proposals)."""

    @abstractmethod
    async def handle(self, session: Session, tx_facts: List[Any], height: int) -> None:
        pass
