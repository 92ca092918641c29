"""
Validator Resolver.

Maps a block proposer's consensus address (uppercase hex) to the
validator's operator address. Mappings are cached for the lifetime of
the resolver and never expire.
"""

import logging
from typing import Dict, Hashable, List, Optional

from chain_adapters.base import ChainReadPort
from chain_adapters.encoding import consensus_address_to_hex, public_key_bytes
from chain_adapters.models import PublicKey, ValidatorDescriptor
from core.exceptions import ValidatorResolutionError


logger = logging.getLogger(__name__)


class PubkeyMatchMode:
    """How consensus-set keys are compared with staking-module keys."""
    EXACT = "exact"
    """Type and key string must be equal."""

    KEY_BYTES = "key_bytes"
    """Only the decoded key bytes must be equal (type encodings differ)."""

    ALL = (EXACT, KEY_BYTES)


def _match_key(pubkey: PublicKey, mode: str) -> Hashable:
    if mode == PubkeyMatchMode.KEY_BYTES:
        return public_key_bytes(pubkey.key)
    return (pubkey.type, pubkey.key)


class ValidatorResolver:
    """
    Consensus hex address -> operator address, with a per-instance cache.

    Example:
        resolver = ValidatorResolver(lcd, pubkey_match_mode="key_bytes")
        operator = await resolver.resolve("AB12...", height=100)
    """

    def __init__(
        self,
        chain: ChainReadPort,
        pubkey_match_mode: str = PubkeyMatchMode.EXACT,
    ) -> None:
        if pubkey_match_mode not in PubkeyMatchMode.ALL:
            raise ValueError(f"Unknown pubkey match mode: {pubkey_match_mode}")

        self._chain = chain
        self._mode = pubkey_match_mode
        self._cache: Dict[str, str] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def cached(self, hex_address: str) -> Optional[str]:
        """Operator address if already known."""
        return self._cache.get(hex_address.upper())

    async def resolve(self, hex_address: str, height: int) -> str:
        """
        Resolve a consensus hex address at a height.

        On a cache miss the validator list and the consensus set at
        `height` are fetched and every match found is cached.

        Raises:
            ValidatorResolutionError: No validator matches the address
        """
        hex_address = hex_address.upper()
        operator = self._cache.get(hex_address)
        if operator:
            return operator

        descriptors = await self._chain.get_validator_descriptors(height)
        consensus_set = await self._chain.get_validator_consensus_set(height)

        learned = self._learn(descriptors, consensus_set)
        logger.debug(
            f"Validator cache refreshed at height {height}: "
            f"learned={learned} total={len(self._cache)}"
        )

        operator = self._cache.get(hex_address)
        if not operator:
            raise ValidatorResolutionError(hex_address, height)

        return operator

    def _learn(self, descriptors: List[ValidatorDescriptor], consensus_set) -> int:
        by_key = {}
        for descriptor in descriptors:
            by_key.setdefault(_match_key(descriptor.consensus_pubkey, self._mode), descriptor)

        learned = 0
        for entry in consensus_set:
            descriptor = by_key.get(_match_key(entry.pub_key, self._mode))
            if descriptor is None:
                continue

            try:
                hex_address = consensus_address_to_hex(entry.address)
            except ValueError as e:
                logger.warning(f"Skipping consensus entry with bad address: {e}")
                continue

            self._cache[hex_address] = descriptor.operator_address
            learned += 1

        return learned
