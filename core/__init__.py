"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified time abstraction and chain-time helpers
- decimal_math: Exact decimal arithmetic on amount strings
- exceptions: Custom exception hierarchy
"""
