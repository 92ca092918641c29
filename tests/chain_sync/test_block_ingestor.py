"""
Block Ingestor Tests.

============================================================
PURPOSE
============================================================
State machine, atomicity and resumability of the sync loop.

TEST CATEGORIES:
- End-to-end pass
- Failure handling (halt, rollback, resume)
- Pruned-data stop
- Minute-boundary trigger
- Transaction collaborators

============================================================
"""

import base64
from datetime import datetime, timedelta
from typing import Any, List

import pytest
from sqlalchemy import func, select, text

from chain_adapters.exceptions import PrunedDataError
from chain_adapters.models import RawRewardEvent
from chain_sync.aggregators import RewardWindowAggregator
from chain_sync.block_ingestor import BlockIngestor
from chain_sync.collaborators import (
    PeriodicAggregator,
    TransactionCollector,
    TransactionFactHandler,
)
from chain_sync.types import SyncState
from chain_sync.validator_resolver import ValidatorResolver
from core.exceptions import ChainMismatchError, PersistenceFailure, ValidatorResolutionError
from database.models import BlockEntity, BlockRewardEntity, RewardEntity
from database.persistence import persist_block
from monitoring.telemetry import LoggingErrorReporter

from conftest import CHAIN_ID, PROPOSER_OPERATOR, make_block


BASE_TIME = datetime(2021, 10, 1, 12, 0, 0)


# ============================================================
# HELPERS
# ============================================================

class RecordingAggregator(PeriodicAggregator):
    name = "recording"

    def __init__(self):
        self.calls = []

    async def run(self, session, window_end, height):
        self.calls.append((window_end, height))


class RecordingCollector(TransactionCollector):
    def __init__(self):
        self.calls = []

    async def collect(self, session, tx_hashes, height, block) -> List[Any]:
        self.calls.append((list(tx_hashes), height))
        return [{"txhash": h} for h in tx_hashes]


class RecordingHandler(TransactionFactHandler):
    def __init__(self):
        self.calls = []

    async def handle(self, session, tx_facts, height):
        self.calls.append((list(tx_facts), height))


class BrokenSqlCollector(TransactionCollector):
    async def collect(self, session, tx_hashes, height, block):
        session.execute(text("INSERT INTO missing_table VALUES (1)"))
        return []


class FailingAggregator(PeriodicAggregator):
    name = "failing"

    async def run(self, session, window_end, height):
        raise RuntimeError("aggregation failed")


def _count(session_factory, entity) -> int:
    session = session_factory()
    try:
        return session.execute(select(func.count()).select_from(entity)).scalar()
    finally:
        session.close()


def _seed_indexed_block(session_factory, height: int, timestamp: datetime) -> None:
    session = session_factory()
    try:
        persist_block(session, CHAIN_ID, height, timestamp, PROPOSER_OPERATOR)
        session.commit()
    finally:
        session.close()


def _add_blocks(chain, heights, start=BASE_TIME, step_seconds=6, txs=None):
    for i, height in enumerate(heights):
        chain.add_block(
            make_block(height, start + timedelta(seconds=step_seconds * i), txs=txs),
            [RawRewardEvent(PROPOSER_OPERATOR, "rewards", "100.5uluna")],
        )


def _ingestor(chain, store, **kwargs) -> BlockIngestor:
    kwargs.setdefault("error_reporter", LoggingErrorReporter())
    return BlockIngestor(
        chain=chain,
        store=store,
        resolver=ValidatorResolver(chain),
        chain_id=CHAIN_ID,
        **kwargs,
    )


# ============================================================
# END-TO-END
# ============================================================

class TestSyncPass:
    """Tests for run_sync_pass()."""

    def test_new_ingestor_awaits_head(self, chain, store):
        assert _ingestor(chain, store).state == SyncState.AWAITING_HEAD

    @pytest.mark.asyncio
    async def test_ingests_from_last_indexed_to_head(self, chain, store, session_factory):
        _seed_indexed_block(session_factory, 95, BASE_TIME - timedelta(seconds=2))
        _add_blocks(chain, range(96, 101))

        ingestor = _ingestor(chain, store)
        result = await ingestor.run_sync_pass()

        assert result.state == SyncState.IDLE_CAUGHT_UP
        assert result.start_height == 96
        assert result.blocks_ingested == 5
        assert result.last_indexed_height == 100
        assert result.error is None
        assert store.get_last_indexed_height(CHAIN_ID) == 100
        assert _count(session_factory, BlockRewardEntity) == 5

        block = store.get_latest_indexed_block(CHAIN_ID)
        assert block.proposer == PROPOSER_OPERATOR
        assert block.reward_id is not None

    @pytest.mark.asyncio
    async def test_empty_database_starts_at_height_one(self, chain, store):
        _add_blocks(chain, range(1, 4))

        result = await _ingestor(chain, store).run_sync_pass()

        assert result.start_height == 1
        assert result.last_indexed_height == 3

    @pytest.mark.asyncio
    async def test_already_caught_up(self, chain, store, session_factory):
        _seed_indexed_block(session_factory, 10, BASE_TIME)
        _add_blocks(chain, [10])

        result = await _ingestor(chain, store).run_sync_pass()

        assert result.state == SyncState.IDLE_CAUGHT_UP
        assert result.blocks_ingested == 0

    @pytest.mark.asyncio
    async def test_absent_block_stops_cleanly(self, chain, store):
        _add_blocks(chain, range(1, 6))
        del chain.blocks[3]

        result = await _ingestor(chain, store).run_sync_pass()

        assert result.state == SyncState.IDLE_CAUGHT_UP
        assert result.last_indexed_height == 2
        assert result.error is None

    @pytest.mark.asyncio
    async def test_waits_for_head(self, chain, store):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 2:
                _add_blocks(chain, [1])

        ingestor = _ingestor(chain, store, head_poll_interval_seconds=0.5, sleep=fake_sleep)
        result = await ingestor.run_sync_pass()

        assert sleeps == [0.5, 0.5]
        assert result.last_indexed_height == 1


# ============================================================
# FAILURES
# ============================================================

class TestFailureHandling:
    """Tests for halting, rollback and resume."""

    @pytest.mark.asyncio
    async def test_block_from_other_chain_halts_and_writes_nothing(self, chain, store, session_factory):
        for height in (1, 2):
            chain.add_block(
                make_block(height, BASE_TIME + timedelta(seconds=6 * height), chain_id="other-1"),
                [RawRewardEvent(PROPOSER_OPERATOR, "rewards", "100.5uluna")],
            )
        ingestor = _ingestor(chain, store)

        first = await ingestor.run_sync_pass()
        second = await ingestor.run_sync_pass()

        for result in (first, second):
            assert result.state == SyncState.HALTED_ON_ERROR
            assert isinstance(result.error, ChainMismatchError)
            assert result.error.actual == "other-1"
            assert result.last_indexed_height == 0
        assert second.start_height == 1
        assert _count(session_factory, BlockRewardEntity) == 0
        assert _count(session_factory, BlockEntity) == 0

    @pytest.mark.asyncio
    async def test_failure_halts_and_next_pass_resumes(self, chain, store, session_factory):
        _seed_indexed_block(session_factory, 95, BASE_TIME - timedelta(seconds=2))
        _add_blocks(chain, range(96, 101))
        chain.fail_events_at[98] = RuntimeError("node exploded")
        reporter = LoggingErrorReporter()

        ingestor = _ingestor(chain, store, error_reporter=reporter)
        first = await ingestor.run_sync_pass()

        assert first.state == SyncState.HALTED_ON_ERROR
        assert first.last_indexed_height == 97
        assert isinstance(first.error, RuntimeError)
        assert not first.pruned
        assert len(reporter.captured) == 1
        assert reporter.captured[0]["context"]["height"] == 98
        assert _count(session_factory, BlockRewardEntity) == 2

        del chain.fail_events_at[98]
        second = await ingestor.run_sync_pass()

        assert second.start_height == 98
        assert second.last_indexed_height == 100
        assert store.get_last_indexed_height(CHAIN_ID) == 100

        session = session_factory()
        try:
            heights = session.execute(
                select(BlockEntity.height).order_by(BlockEntity.height)
            ).scalars().all()
        finally:
            session.close()
        assert heights == [95, 96, 97, 98, 99, 100]

    @pytest.mark.asyncio
    async def test_resolution_failure_rolls_back_reward(self, chain, store, session_factory):
        _add_blocks(chain, [1])
        chain.descriptors = []

        result = await _ingestor(chain, store).run_sync_pass()

        assert result.state == SyncState.HALTED_ON_ERROR
        assert isinstance(result.error, ValidatorResolutionError)
        assert _count(session_factory, BlockRewardEntity) == 0
        assert _count(session_factory, BlockEntity) == 0

    @pytest.mark.asyncio
    async def test_persistence_failure_rolls_back_block(self, chain, store, session_factory):
        tx = base64.b64encode(b"tx").decode()
        _add_blocks(chain, [1], txs=[tx])

        ingestor = _ingestor(chain, store, tx_collector=BrokenSqlCollector())
        result = await ingestor.run_sync_pass()

        assert result.state == SyncState.HALTED_ON_ERROR
        assert isinstance(result.error, PersistenceFailure)
        assert _count(session_factory, BlockEntity) == 0
        assert _count(session_factory, BlockRewardEntity) == 0

    @pytest.mark.asyncio
    async def test_pruned_data_stops_without_reporting(self, chain, store):
        _add_blocks(chain, range(1, 4))
        chain.fail_events_at[2] = PrunedDataError("transaction not found on node")
        reporter = LoggingErrorReporter()

        result = await _ingestor(chain, store, error_reporter=reporter).run_sync_pass()

        assert result.state == SyncState.HALTED_ON_ERROR
        assert result.pruned
        assert result.error is None
        assert result.last_indexed_height == 1
        assert reporter.captured == []

    @pytest.mark.asyncio
    async def test_pruned_message_on_generic_error(self, chain, store):
        _add_blocks(chain, range(1, 3))
        chain.fail_events_at[1] = RuntimeError("rpc error: transaction not found on node")
        reporter = LoggingErrorReporter()

        result = await _ingestor(chain, store, error_reporter=reporter).run_sync_pass()

        assert result.pruned
        assert reporter.captured == []


# ============================================================
# MINUTE TRIGGER
# ============================================================

class TestMinuteTrigger:
    """Tests for the minute-boundary aggregation trigger."""

    @pytest.mark.asyncio
    async def test_aggregator_failure_rolls_back_whole_block(self, chain, store, session_factory):
        for height, ts in ((1, datetime(2021, 10, 1, 12, 0, 30)), (2, datetime(2021, 10, 1, 12, 1, 10))):
            chain.add_block(make_block(height, ts), [RawRewardEvent(PROPOSER_OPERATOR, "rewards", "100.5uluna")])
        aggregators = [RewardWindowAggregator(CHAIN_ID), FailingAggregator()]

        result = await _ingestor(chain, store, aggregators=aggregators).run_sync_pass()

        assert result.state == SyncState.HALTED_ON_ERROR
        assert result.last_indexed_height == 1
        assert isinstance(result.error, RuntimeError)
        assert _count(session_factory, RewardEntity) == 0
        assert _count(session_factory, BlockEntity) == 1
        assert _count(session_factory, BlockRewardEntity) == 1

    @pytest.mark.asyncio
    async def test_fires_once_per_crossed_boundary(self, chain, store):
        times = [
            datetime(2021, 10, 1, 12, 0, 30),
            datetime(2021, 10, 1, 12, 0, 45),
            datetime(2021, 10, 1, 12, 1, 10),
            datetime(2021, 10, 1, 12, 1, 59),
            datetime(2021, 10, 1, 12, 2, 5),
        ]
        for height, ts in enumerate(times, start=1):
            chain.add_block(make_block(height, ts))
        aggregator = RecordingAggregator()

        await _ingestor(chain, store, aggregators=[aggregator]).run_sync_pass()

        assert aggregator.calls == [(times[2], 3), (times[4], 5)]

    @pytest.mark.asyncio
    async def test_boundary_against_previously_indexed_block(self, chain, store, session_factory):
        _seed_indexed_block(session_factory, 9, datetime(2021, 10, 1, 12, 0, 59))
        chain.add_block(make_block(10, datetime(2021, 10, 1, 12, 1, 1)))
        aggregator = RecordingAggregator()

        await _ingestor(chain, store, aggregators=[aggregator]).run_sync_pass()

        assert aggregator.calls == [(datetime(2021, 10, 1, 12, 1, 1), 10)]

    @pytest.mark.asyncio
    async def test_first_block_ever_does_not_fire(self, chain, store):
        chain.add_block(make_block(1, datetime(2021, 10, 1, 12, 0, 30)))
        aggregator = RecordingAggregator()

        await _ingestor(chain, store, aggregators=[aggregator]).run_sync_pass()

        assert aggregator.calls == []


# ============================================================
# TRANSACTIONS
# ============================================================

class TestTransactions:
    """Tests for the transaction collaborators."""

    @pytest.mark.asyncio
    async def test_collector_and_handlers_invoked_for_blocks_with_txs(self, chain, store):
        tx = base64.b64encode(b"tx").decode()
        chain.add_block(make_block(1, BASE_TIME, txs=[tx]))
        chain.add_block(make_block(2, BASE_TIME + timedelta(seconds=6)))
        collector = RecordingCollector()
        handlers = [RecordingHandler(), RecordingHandler()]

        await _ingestor(chain, store, tx_collector=collector, tx_fact_handlers=handlers).run_sync_pass()

        assert len(collector.calls) == 1
        hashes, height = collector.calls[0]
        assert height == 1
        assert len(hashes) == 1 and hashes[0] == hashes[0].upper()
        for handler in handlers:
            assert handler.calls == [([{"txhash": hashes[0]}], 1)]
