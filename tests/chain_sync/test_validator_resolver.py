"""
Validator Resolver Tests.
"""

import base64

import bech32
import pytest

from chain_adapters.models import ConsensusValidator, PublicKey, ValidatorDescriptor
from chain_sync.validator_resolver import PubkeyMatchMode, ValidatorResolver
from core.exceptions import ValidatorResolutionError

from conftest import OTHER_HEX, OTHER_OPERATOR, PROPOSER_HEX, PROPOSER_OPERATOR, FakeChain


class TestResolve:
    """Tests for ValidatorResolver.resolve()."""

    @pytest.mark.asyncio
    async def test_resolves_and_caches_every_match(self, chain):
        resolver = ValidatorResolver(chain)

        assert await resolver.resolve(PROPOSER_HEX, 10) == PROPOSER_OPERATOR
        assert resolver.cache_size == 2
        assert resolver.cached(OTHER_HEX) == OTHER_OPERATOR

    @pytest.mark.asyncio
    async def test_cache_hit_does_not_query_chain(self, chain):
        resolver = ValidatorResolver(chain)

        await resolver.resolve(PROPOSER_HEX, 10)
        await resolver.resolve(PROPOSER_HEX, 11)
        await resolver.resolve(OTHER_HEX, 12)

        assert chain.validator_calls == 1

    @pytest.mark.asyncio
    async def test_lowercase_input(self, chain):
        resolver = ValidatorResolver(chain)
        assert await resolver.resolve(PROPOSER_HEX.lower(), 10) == PROPOSER_OPERATOR

    @pytest.mark.asyncio
    async def test_unknown_address_raises(self, chain):
        resolver = ValidatorResolver(chain)

        with pytest.raises(ValidatorResolutionError) as exc_info:
            await resolver.resolve("C" * 40, 42)

        assert str(exc_info.value) == f"could not find validator by {'C' * 40} at height 42"
        assert exc_info.value.height == 42

    @pytest.mark.asyncio
    async def test_bech32_consensus_addresses(self):
        chain = FakeChain()
        valcons = bech32.bech32_encode(
            "terravalcons", bech32.convertbits(bytes.fromhex(PROPOSER_HEX), 8, 5)
        )
        chain.consensus_set = [
            ConsensusValidator(address=valcons, pub_key=chain.descriptors[0].consensus_pubkey),
        ]

        resolver = ValidatorResolver(chain)

        assert await resolver.resolve(PROPOSER_HEX, 1) == PROPOSER_OPERATOR


class TestPubkeyMatching:
    """Tests for the two public-key comparison modes."""

    def _chain_with_differing_types(self) -> FakeChain:
        key = base64.b64encode(b"x" * 32).decode()
        chain = FakeChain()
        chain.descriptors = [
            ValidatorDescriptor(
                operator_address=PROPOSER_OPERATOR,
                consensus_pubkey=PublicKey(key=key, type="/cosmos.crypto.ed25519.PubKey"),
            ),
        ]
        chain.consensus_set = [
            ConsensusValidator(
                address=PROPOSER_HEX,
                pub_key=PublicKey(key=key, type="tendermint/PubKeyEd25519"),
            ),
        ]
        return chain

    @pytest.mark.asyncio
    async def test_exact_mode_requires_same_type(self):
        resolver = ValidatorResolver(self._chain_with_differing_types(), PubkeyMatchMode.EXACT)

        with pytest.raises(ValidatorResolutionError):
            await resolver.resolve(PROPOSER_HEX, 1)

    @pytest.mark.asyncio
    async def test_key_bytes_mode_ignores_type(self):
        resolver = ValidatorResolver(self._chain_with_differing_types(), PubkeyMatchMode.KEY_BYTES)

        assert await resolver.resolve(PROPOSER_HEX, 1) == PROPOSER_OPERATOR

    def test_unknown_mode_rejected(self, chain):
        with pytest.raises(ValueError):
            ValidatorResolver(chain, "fuzzy")
