"""
Database Persistence Functions.

============================================================
CHAIN INDEX PERSISTENCE OPERATIONS
============================================================

Every persist_* function:
- Performs REAL database writes on the caller's session
- Logs structured output: "Persist table_name: inserted=N"
- Raises hard exceptions on failure

ChainStore is the persistence port used by the sync loop:
it answers "where did we stop" and runs one block's writes as
a single atomic unit.

============================================================
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Generator, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import PersistenceFailure

from .models import (
    BlockEntity,
    BlockRewardEntity,
    GeneralInfoEntity,
    NetworkEntity,
    PriceEntity,
    RewardEntity,
)

if TYPE_CHECKING:
    from chain_sync.types import RewardFact

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================
# HELPER FUNCTIONS
# =============================================================

def _log_persistence(table_name: str, count: int, details: str = "") -> None:
    """Log persistence result in structured format."""
    if details:
        logger.info(f"Persist {table_name}: inserted={count} ({details})")
    else:
        logger.info(f"Persist {table_name}: inserted={count}")


def _log_zero_records(table_name: str, reason: str) -> None:
    """Log when zero records are inserted."""
    logger.debug(f"Persist {table_name}: inserted=0 | reason={reason}")


def _flush(session: Session, table_name: str) -> None:
    try:
        session.flush()
    except SQLAlchemyError as e:
        logger.error(f"Failed to persist {table_name}: {e}")
        raise PersistenceFailure(f"{table_name} persistence failed: {e}", cause=e) from e


# =============================================================
# 1. BLOCK REWARD PERSISTENCE
# =============================================================

def persist_block_reward(
    session: Session,
    chain_id: str,
    timestamp: datetime,
    fact: "RewardFact",
) -> BlockRewardEntity:
    """
    Persist one block's reward fact.

    Args:
        session: Database session (caller owns the transaction)
        chain_id: Chain identifier
        timestamp: Block time (naive UTC)
        fact: Decomposed reward/commission totals and per-validator maps

    Returns:
        The flushed entity (id assigned)
    """
    entity = BlockRewardEntity(
        chain_id=chain_id,
        timestamp=timestamp,
        reward=dict(fact.reward),
        commission=dict(fact.commission),
        reward_per_val={k: dict(v) for k, v in fact.reward_per_val.items()},
        commission_per_val={k: dict(v) for k, v in fact.commission_per_val.items()},
    )
    session.add(entity)
    _flush(session, "block_reward")

    _log_persistence("block_reward", 1, f"denoms={len(fact.reward)}")
    return entity


# =============================================================
# 2. BLOCK PERSISTENCE
# =============================================================

def persist_block(
    session: Session,
    chain_id: str,
    height: int,
    timestamp: datetime,
    proposer: str,
    reward: Optional[BlockRewardEntity] = None,
) -> BlockEntity:
    """
    Persist one block row.

    Returns:
        The flushed entity
    """
    entity = BlockEntity(
        chain_id=chain_id,
        height=height,
        timestamp=timestamp,
        proposer=proposer,
        reward_id=reward.id if reward is not None else None,
    )
    session.add(entity)
    _flush(session, "block")

    _log_persistence("block", 1, f"height={height}")
    return entity


# =============================================================
# 3. MINUTE AGGREGATES PERSISTENCE
# =============================================================

def persist_rewards(
    session: Session,
    chain_id: str,
    window_start: datetime,
    rows: Dict[str, Dict[str, str]],
) -> int:
    """
    Persist per-denom reward sums for one minute.

    Args:
        rows: denom -> {"sum": ..., "commission": ..., optional tax/gas/oracle}

    Returns:
        Number of records inserted
    """
    if not rows:
        _log_zero_records("reward", "no rewards in window")
        return 0

    for denom, amounts in rows.items():
        session.add(RewardEntity(
            chain_id=chain_id,
            datetime=window_start,
            denom=denom,
            tax=amounts.get("tax", "0"),
            gas=amounts.get("gas", "0"),
            oracle=amounts.get("oracle", "0"),
            sum=amounts.get("sum", "0"),
            commission=amounts.get("commission", "0"),
        ))
    _flush(session, "reward")

    _log_persistence("reward", len(rows), f"datetime={window_start.isoformat()}")
    return len(rows)


def persist_network(
    session: Session,
    chain_id: str,
    window_start: datetime,
    total_supply: Dict[str, str],
) -> int:
    """Persist total supply per denom for one minute."""
    if not total_supply:
        _log_zero_records("network", "empty supply")
        return 0

    for denom, amount in total_supply.items():
        session.add(NetworkEntity(
            chain_id=chain_id,
            datetime=window_start,
            denom=denom,
            total_supply=amount,
        ))
    _flush(session, "network")

    _log_persistence("network", len(total_supply))
    return len(total_supply)


def persist_prices(
    session: Session,
    chain_id: str,
    window_start: datetime,
    prices: Dict[str, str],
) -> int:
    """Persist oracle prices for one minute."""
    if not prices:
        _log_zero_records("price", "no oracle prices")
        return 0

    for denom, price in prices.items():
        session.add(PriceEntity(
            chain_id=chain_id,
            datetime=window_start,
            denom=denom,
            price=price,
        ))
    _flush(session, "price")

    _log_persistence("price", len(prices))
    return len(prices)


def persist_general_info(
    session: Session,
    chain_id: str,
    window_start: datetime,
    info: Dict[str, Any],
) -> GeneralInfoEntity:
    """Persist one staking snapshot."""
    entity = GeneralInfoEntity(
        chain_id=chain_id,
        datetime=window_start,
        bonded_tokens=info.get("bonded_tokens"),
        not_bonded_tokens=info.get("not_bonded_tokens"),
        issuance=info.get("issuance"),
        staking_ratio=info.get("staking_ratio"),
    )
    session.add(entity)
    _flush(session, "general_info")

    _log_persistence("general_info", 1)
    return entity


# =============================================================
# CHAIN STORE (PERSISTENCE PORT)
# =============================================================

class ChainStore:
    """
    Persistence port for the sync loop.

    Example:
        store = ChainStore(create_session_factory(engine))

        async def work(session):
            persist_block(session, ...)

        await store.run_atomic(work)
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @property
    def session_factory(self) -> sessionmaker:
        return self._session_factory

    def get_last_indexed_height(self, chain_id: str) -> int:
        """Highest persisted height for the chain, 0 when none."""
        with self.read_scope() as session:
            height = session.execute(
                select(func.max(BlockEntity.height)).where(BlockEntity.chain_id == chain_id)
            ).scalar()
        return int(height) if height is not None else 0

    def get_latest_indexed_block(self, chain_id: str) -> Optional[BlockEntity]:
        """Block row with the highest height for the chain."""
        with self.read_scope() as session:
            return session.execute(
                select(BlockEntity)
                .where(BlockEntity.chain_id == chain_id)
                .order_by(BlockEntity.height.desc())
                .limit(1)
            ).scalars().first()

    @contextmanager
    def read_scope(self) -> Generator[Session, None, None]:
        """Read-only session; never commits. Loaded rows stay readable after close."""
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    async def run_atomic(self, work: Callable[[Session], Awaitable[T]]) -> T:
        """
        Run one unit of work in a single transaction.

        Commits only if work completes. On ANY exception the transaction
        is rolled back; SQLAlchemy errors surface as PersistenceFailure,
        everything else propagates unchanged.

        Args:
            work: Coroutine function receiving the session

        Returns:
            Whatever work returns
        """
        session = self._session_factory()
        try:
            result = await work(session)
            session.commit()
            logger.debug("Atomic unit committed")
            return result
        except SQLAlchemyError as e:
            logger.error(f"Atomic unit failed, rolling back: {e}")
            session.rollback()
            raise PersistenceFailure(f"Transaction failed: {e}", cause=e) from e
        except BaseException as e:
            logger.warning(f"Atomic unit aborted, rolling back: {e!r}")
            session.rollback()
            raise
        finally:
            session.close()


__all__ = [
    "persist_block_reward",
    "persist_block",
    "persist_rewards",
    "persist_network",
    "persist_prices",
    "persist_general_info",
    "ChainStore",
]
