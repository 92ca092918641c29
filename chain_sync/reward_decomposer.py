"""
Reward Decomposer.

Turns one block's rewards/commission distribution events into totals
per denom and per-validator amounts per denom.

Event amounts use the chain's coin-list format:
"<amount><denom>[,<amount><denom>...]", e.g. "12.5uluna,3ukrw".
"""

import logging
import re
from typing import Dict, Iterable, List, Tuple

from chain_adapters.models import RawRewardEvent, RewardEventType
from chain_sync.types import RewardFact
from core.decimal_math import plus
from core.exceptions import RewardParseError


logger = logging.getLogger(__name__)


# Numeric prefix, then a denom starting with a letter (ibc/<hash> allowed)
_COIN_RE = re.compile(r"^(\d+(?:\.\d+)?)([A-Za-z][A-Za-z0-9/:._-]*)$")


def split_denom_and_amount(token: str) -> Tuple[str, str]:
    """
    Split one coin token into (denom, amount).

    Raises:
        RewardParseError: The token does not match <amount><denom>
    """
    match = _COIN_RE.match(token.strip())
    if not match:
        raise RewardParseError(f"Malformed coin token: {token!r}", token=token)
    return match.group(2), match.group(1)


def parse_coins(amount: str) -> List[Tuple[str, str]]:
    """Parse a comma-separated coin list into (denom, amount) pairs."""
    return [split_denom_and_amount(token) for token in amount.split(",")]


def _accumulate(
    totals: Dict[str, str],
    per_validator: Dict[str, Dict[str, str]],
    validator: str,
    coins: List[Tuple[str, str]],
) -> None:
    bucket = per_validator.setdefault(validator, {})
    for denom, amount in coins:
        totals[denom] = plus(totals.get(denom), amount)
        bucket[denom] = plus(bucket.get(denom), amount)


def decompose(events: Iterable[RawRewardEvent]) -> RewardFact:
    """
    Aggregate one block's distribution events.

    Events with an empty amount are skipped. Everything else is
    either accounted for exactly or rejected.

    Raises:
        RewardParseError: Malformed amount or unknown event type
    """
    fact = RewardFact()

    for event in events:
        if not event.amount:
            continue

        if event.type == RewardEventType.REWARDS:
            _accumulate(fact.reward, fact.reward_per_val, event.validator, parse_coins(event.amount))
        elif event.type == RewardEventType.COMMISSION:
            _accumulate(fact.commission, fact.commission_per_val, event.validator, parse_coins(event.amount))
        else:
            raise RewardParseError(f"Unknown reward event type: {event.type!r}")

    return fact
