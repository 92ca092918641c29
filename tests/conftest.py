"""
Shared Test Fixtures.

============================================================
PURPOSE
============================================================
In-memory SQLite persistence and an in-memory chain used by
the sync, aggregation and reporting tests.

============================================================
"""

import base64
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from chain_adapters.base import ChainReadPort, ChainStatsPort
from chain_adapters.models import (
    Block,
    BlockHeader,
    ConsensusValidator,
    PublicKey,
    RawRewardEvent,
    StakingPool,
    ValidatorDescriptor,
)
from database.engine import create_all_tables, create_database_engine, create_session_factory
from database.persistence import ChainStore


CHAIN_ID = "test-1"

PROPOSER_HEX = "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA"
PROPOSER_OPERATOR = "terravaloper1proposer"
OTHER_HEX = "BBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBB"
OTHER_OPERATOR = "terravaloper1other"


def pubkey_b64(seed: str) -> str:
    return base64.b64encode(seed.encode("utf-8").ljust(32, b"\0")).decode("ascii")


def make_block(
    height: int,
    time: datetime,
    proposer: str = PROPOSER_HEX,
    txs: Optional[List[str]] = None,
    chain_id: str = CHAIN_ID,
) -> Block:
    return Block(
        header=BlockHeader(
            chain_id=chain_id,
            height=height,
            time=time,
            proposer_address=proposer,
        ),
        txs=list(txs or []),
    )


class FakeChain(ChainReadPort, ChainStatsPort):
    """
    In-memory chain.

    Blocks, events and validator data are plain dicts; failures can be
    injected per height with `fail_events_at`.
    """

    def __init__(self) -> None:
        self.blocks: Dict[int, Block] = {}
        self.events: Dict[int, List[RawRewardEvent]] = {}
        self.latest_height: Optional[int] = None
        self.fail_events_at: Dict[int, Exception] = {}

        self.descriptors: List[ValidatorDescriptor] = [
            ValidatorDescriptor(
                operator_address=PROPOSER_OPERATOR,
                consensus_pubkey=PublicKey(key=pubkey_b64("proposer"), type="tendermint/PubKeyEd25519"),
            ),
            ValidatorDescriptor(
                operator_address=OTHER_OPERATOR,
                consensus_pubkey=PublicKey(key=pubkey_b64("other"), type="tendermint/PubKeyEd25519"),
            ),
        ]
        self.consensus_set: List[ConsensusValidator] = [
            ConsensusValidator(
                address=PROPOSER_HEX,
                pub_key=PublicKey(key=pubkey_b64("proposer"), type="tendermint/PubKeyEd25519"),
            ),
            ConsensusValidator(
                address=OTHER_HEX,
                pub_key=PublicKey(key=pubkey_b64("other"), type="tendermint/PubKeyEd25519"),
            ),
        ]

        self.supply: Dict[str, str] = {"uluna": "1000000", "ukrw": "5000000"}
        self.pool: Optional[StakingPool] = StakingPool(bonded_tokens="250000", not_bonded_tokens="1000")
        self.prices: Dict[str, str] = {"ukrw": "400", "uusd": "0.5"}

        self.validator_calls = 0
        self.latest_calls = 0

    def add_block(self, block: Block, events: Optional[List[RawRewardEvent]] = None) -> None:
        self.blocks[block.height] = block
        self.events[block.height] = list(events or [])
        if self.latest_height is None or block.height > self.latest_height:
            self.latest_height = block.height

    async def get_latest_block(self) -> Optional[Block]:
        self.latest_calls += 1
        if self.latest_height is None:
            return None
        return self.blocks.get(self.latest_height) or make_block(self.latest_height, datetime(2021, 1, 1))

    async def get_block(self, height: int) -> Optional[Block]:
        return self.blocks.get(height)

    async def get_raw_reward_events(self, height: int) -> List[RawRewardEvent]:
        if height in self.fail_events_at:
            raise self.fail_events_at[height]
        return list(self.events.get(height, []))

    async def get_validator_descriptors(self, height: Optional[int] = None) -> List[ValidatorDescriptor]:
        self.validator_calls += 1
        return list(self.descriptors)

    async def get_validator_consensus_set(self, height: Optional[int] = None) -> List[ConsensusValidator]:
        return list(self.consensus_set)

    async def get_total_supply(self, height: Optional[int] = None) -> Dict[str, str]:
        return dict(self.supply)

    async def get_staking_pool(self, height: Optional[int] = None) -> Optional[StakingPool]:
        return self.pool

    async def get_oracle_prices(self, height: Optional[int] = None) -> Dict[str, str]:
        return dict(self.prices)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def engine():
    """In-memory database with all tables."""
    engine = create_database_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return ChainStore(session_factory)


@pytest.fixture
def chain():
    return FakeChain()
