"""
Reward Decomposer Tests.

============================================================
PURPOSE
============================================================
Parsing of distribution events and reward conservation.

============================================================
"""

import pytest

from chain_adapters.models import RawRewardEvent
from chain_sync.reward_decomposer import decompose, parse_coins, split_denom_and_amount
from core.decimal_math import sum_all
from core.exceptions import RewardParseError


VAL_A = "terravaloper1aaa"
VAL_B = "terravaloper1bbb"


def _assert_conserved(totals, per_validator):
    denoms = set(totals)
    for amounts in per_validator.values():
        denoms.update(amounts)

    for denom in denoms:
        expected = sum_all(amounts.get(denom) for amounts in per_validator.values())
        assert totals.get(denom, "0") == expected


class TestTokenizer:
    """Tests for coin token parsing."""

    def test_split(self):
        assert split_denom_and_amount("1234.5678uluna") == ("uluna", "1234.5678")
        assert split_denom_and_amount("10ukrw") == ("ukrw", "10")

    def test_ibc_denom(self):
        denom, amount = split_denom_and_amount("7ibc/27394FB092D2ECCD56123C74F36E4C1F926001CEADA9CA97EA622B25F41E5EB2")
        assert denom.startswith("ibc/")
        assert amount == "7"

    def test_parse_coin_list(self):
        assert parse_coins("1uluna, 2.5ukrw") == [("uluna", "1"), ("ukrw", "2.5")]

    @pytest.mark.parametrize("token", ["uluna", "12", "1.2.3uluna", "-1uluna", "1 uluna", ""])
    def test_malformed_tokens_raise(self, token):
        with pytest.raises(RewardParseError):
            split_denom_and_amount(token)


class TestDecompose:
    """Tests for decompose()."""

    def test_rewards_and_commission_are_separate(self):
        fact = decompose([
            RawRewardEvent(VAL_A, "rewards", "10.5uluna,3ukrw"),
            RawRewardEvent(VAL_B, "rewards", "4.5uluna"),
            RawRewardEvent(VAL_A, "commission", "1.05uluna"),
        ])

        assert fact.reward == {"uluna": "15", "ukrw": "3"}
        assert fact.commission == {"uluna": "1.05"}
        assert fact.reward_per_val == {
            VAL_A: {"uluna": "10.5", "ukrw": "3"},
            VAL_B: {"uluna": "4.5"},
        }
        assert fact.commission_per_val == {VAL_A: {"uluna": "1.05"}}

    def test_same_validator_accumulates(self):
        fact = decompose([
            RawRewardEvent(VAL_A, "rewards", "1uluna"),
            RawRewardEvent(VAL_A, "rewards", "2uluna"),
        ])

        assert fact.reward_per_val[VAL_A]["uluna"] == "3"

    def test_conservation(self):
        events = [
            RawRewardEvent(f"val{i}", "rewards", f"{i}.000{i}uluna,{i * 7}.1ukrw")
            for i in range(1, 50)
        ] + [
            RawRewardEvent(f"val{i}", "commission", f"0.{i}uluna")
            for i in range(1, 50)
        ]

        fact = decompose(events)

        _assert_conserved(fact.reward, fact.reward_per_val)
        _assert_conserved(fact.commission, fact.commission_per_val)

    def test_empty_amount_skipped(self):
        fact = decompose([
            RawRewardEvent(VAL_A, "rewards", ""),
            RawRewardEvent(VAL_B, "rewards", "1uluna"),
        ])

        assert VAL_A not in fact.reward_per_val
        assert fact.reward == {"uluna": "1"}

    def test_no_events(self):
        fact = decompose([])
        assert fact.is_empty

    def test_malformed_amount_raises(self):
        with pytest.raises(RewardParseError):
            decompose([RawRewardEvent(VAL_A, "rewards", "1uluna,garbage")])

    def test_unknown_event_type_raises(self):
        with pytest.raises(RewardParseError):
            decompose([RawRewardEvent(VAL_A, "transfer", "1uluna")])
