"""
Providers package - Chain adapter implementations.
"""

from chain_adapters.providers.lcd import LcdClient


__all__ = [
    "LcdClient",
]
