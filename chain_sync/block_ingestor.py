"""
Chain Sync - Block Ingestor.

============================================================
RESPONSIBILITY
============================================================
Sequentially ingests the chain from the next unindexed height
up to the current head.

- One block = one atomic unit (rewards, block, txs, aggregates)
- Strictly ascending heights, no gaps, no parallelism
- Minute-boundary trigger for the periodic aggregators
- Halts on the first failure; the next pass resumes from the
  last committed height

============================================================
STATE MACHINE
============================================================
AWAITING_HEAD ──head known──> SYNCING
SYNCING ──block absent / reached head──> IDLE_CAUGHT_UP
SYNCING ──failure──> HALTED_ON_ERROR

============================================================
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.orm import Session

from chain_adapters.base import ChainReadPort
from chain_adapters.encoding import get_tx_hashes_from_block
from chain_adapters.exceptions import is_pruned_data_error
from chain_adapters.models import Block
from chain_sync.collaborators import (
    PeriodicAggregator,
    TransactionCollector,
    TransactionFactHandler,
)
from chain_sync.reward_decomposer import decompose
from chain_sync.types import SyncResult, SyncState
from chain_sync.validator_resolver import ValidatorResolver
from core.clock import crossed_minute_boundary
from core.exceptions import ChainMismatchError
from database.persistence import ChainStore, persist_block, persist_block_reward
from monitoring.telemetry import ErrorReporter, LoggingErrorReporter


logger = logging.getLogger(__name__)


SleepFunc = Callable[[float], Awaitable[None]]


class BlockIngestor:
    """
    Sequential chain-sync loop for one chain.

    Callers must not run two passes concurrently for the same chain.

    Example:
        ingestor = BlockIngestor(lcd, store, resolver, chain_id="columbus-5")
        result = await ingestor.run_sync_pass()
    """

    def __init__(
        self,
        chain: ChainReadPort,
        store: ChainStore,
        resolver: ValidatorResolver,
        chain_id: str,
        aggregators: Optional[List[PeriodicAggregator]] = None,
        tx_collector: Optional[TransactionCollector] = None,
        tx_fact_handlers: Optional[List[TransactionFactHandler]] = None,
        error_reporter: Optional[ErrorReporter] = None,
        head_poll_interval_seconds: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._chain = chain
        self._store = store
        self._resolver = resolver
        self._chain_id = chain_id

        self._aggregators = list(aggregators or [])
        self._tx_collector = tx_collector
        self._tx_fact_handlers = list(tx_fact_handlers or [])
        self._error_reporter = error_reporter or LoggingErrorReporter()

        self._head_poll_interval = head_poll_interval_seconds
        self._sleep = sleep

        self._state = SyncState.AWAITING_HEAD

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def chain_id(self) -> str:
        return self._chain_id

    # ─────────────────────────────────────────────────────────────
    # Pass
    # ─────────────────────────────────────────────────────────────

    async def wait_for_head(self) -> int:
        """Poll the chain head until one is available; return its height."""
        self._state = SyncState.AWAITING_HEAD

        while True:
            latest = await self._chain.get_latest_block()
            if latest is not None and latest.height:
                return latest.height

            logger.debug(f"Chain head unavailable, retrying in {self._head_poll_interval}s")
            await self._sleep(self._head_poll_interval)

    async def run_sync_pass(self) -> SyncResult:
        """
        Ingest every height after the last indexed one up to the head.

        Returns:
            SyncResult with the terminal state of the pass
        """
        result = SyncResult(state=SyncState.AWAITING_HEAD)

        try:
            latest_height = await self.wait_for_head()
        except Exception as e:
            return await self._halt(result, e, height=None)

        latest_indexed = self._store.get_latest_indexed_block(self._chain_id)
        last_indexed_height = latest_indexed.height if latest_indexed else 0
        previous_timestamp = latest_indexed.timestamp if latest_indexed else None

        next_height = last_indexed_height + 1
        result.start_height = next_height
        result.last_indexed_height = last_indexed_height

        self._state = SyncState.SYNCING
        logger.info(
            f"Sync pass started: chain={self._chain_id} "
            f"next={next_height} head={latest_height}"
        )

        while next_height <= latest_height:
            try:
                block = await self._chain.get_block(next_height)
                if block is None:
                    logger.info(f"Block {next_height} not available yet")
                    break

                await self._store.run_atomic(
                    lambda session, b=block, prev=previous_timestamp: self.ingest_block(session, b, prev)
                )
            except Exception as e:
                return await self._halt(result, e, height=next_height)

            previous_timestamp = block.time
            result.last_indexed_height = next_height
            result.blocks_ingested += 1
            next_height += 1

        self._state = SyncState.IDLE_CAUGHT_UP
        result.state = self._state
        logger.info(
            f"Sync pass finished: chain={self._chain_id} "
            f"ingested={result.blocks_ingested} last={result.last_indexed_height}"
        )
        return result

    async def _halt(self, result: SyncResult, error: Exception, height: Optional[int]) -> SyncResult:
        self._state = SyncState.HALTED_ON_ERROR
        result.state = self._state

        if is_pruned_data_error(error):
            logger.warning(f"Height {height} pruned on the remote node, stopping: {error}")
            result.pruned = True
            return result

        logger.error(f"Sync halted at height {height}: {error!r}")
        result.error = error
        await self._error_reporter.capture_exception(error, {
            "chain_id": self._chain_id,
            "height": height,
        })
        return result

    # ─────────────────────────────────────────────────────────────
    # Block
    # ─────────────────────────────────────────────────────────────

    async def ingest_block(
        self,
        session: Session,
        block: Block,
        previous_timestamp: Optional[datetime],
    ) -> None:
        """
        Write one block and everything derived from it into `session`.

        The caller owns the transaction; any exception leaves nothing behind.
        """
        height = block.height
        logger.info(f"Ingesting block {height}")

        # Rows are keyed by the configured chain id, which is also the resume key
        if block.chain_id != self._chain_id:
            raise ChainMismatchError(self._chain_id, block.chain_id, height)

        # Rewards
        events = await self._chain.get_raw_reward_events(height)
        fact = decompose(events)
        reward = persist_block_reward(session, self._chain_id, block.time, fact)

        # Block
        proposer = await self._resolver.resolve(block.header.proposer_address, height)
        persist_block(session, self._chain_id, height, block.time, proposer, reward)

        # Transactions
        tx_hashes = get_tx_hashes_from_block(block)
        if tx_hashes and self._tx_collector is not None:
            tx_facts = await self._tx_collector.collect(session, tx_hashes, height, block)
            for handler in self._tx_fact_handlers:
                await handler.handle(session, tx_facts, height)

        # Minute aggregates
        if previous_timestamp is not None and crossed_minute_boundary(previous_timestamp, block.time):
            for aggregator in self._aggregators:
                logger.debug(f"Running {aggregator.name} aggregator at height {height}")
                await aggregator.run(session, block.time, height)
