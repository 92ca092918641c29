"""
Chain Encoding Helpers.

- Transaction hashes from raw block transactions
- Consensus address (bech32) to uppercase hex
"""

import base64
import binascii
import hashlib
import re
from typing import List

import bech32

from chain_adapters.models import Block


_HEX_ADDRESS_RE = re.compile(r"^[0-9A-Fa-f]{40}$")


def get_tx_hash(tx: str) -> str:
    """
    Hash of one raw transaction.

    First 32 bytes of SHA-256 over the base64-decoded transaction,
    hex encoded, uppercase.
    """
    digest = hashlib.sha256(base64.b64decode(tx)).digest()
    return digest[:32].hex().upper()


def get_tx_hashes_from_block(block: Block) -> List[str]:
    """Hashes of every transaction in the block, in block order."""
    if not block.txs:
        return []
    return [get_tx_hash(tx) for tx in block.txs]


def consensus_address_to_hex(address: str) -> str:
    """
    Convert a consensus address to uppercase hex.

    Accepts bech32 (e.g. terravalcons1...) or an already-hex address.

    Raises:
        ValueError: If the address is neither
    """
    if _HEX_ADDRESS_RE.match(address):
        return address.upper()

    hrp, data = bech32.bech32_decode(address)
    if hrp is None or data is None:
        raise ValueError(f"Invalid consensus address: {address!r}")

    decoded = bech32.convertbits(data, 5, 8, False)
    if decoded is None:
        raise ValueError(f"Invalid consensus address payload: {address!r}")

    return bytes(decoded).hex().upper()


def public_key_bytes(key: str) -> bytes:
    """
    Raw bytes of a base64 public key.

    Keys that are not base64 (legacy bech32 strings) are returned
    as their UTF-8 bytes so they still compare consistently.
    """
    try:
        return base64.b64decode(key, validate=True)
    except (binascii.Error, ValueError):
        return key.encode("utf-8")
