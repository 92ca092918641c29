"""
Monitoring Package.

============================================================
PURPOSE
============================================================
Operator-facing reporting of sync failures.

PRINCIPLES:
1. OBSERVATIONAL - Reporting never changes sync behaviour
2. RESILIENT - Telegram unavailable = sync continues

============================================================
"""

from .telemetry import (
    CompositeErrorReporter,
    ErrorReporter,
    LoggingErrorReporter,
    TelegramErrorReporter,
    describe_exception,
)


__all__ = [
    "CompositeErrorReporter",
    "ErrorReporter",
    "LoggingErrorReporter",
    "TelegramErrorReporter",
    "describe_exception",
]
