"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy for chain sync and reporting.

- Provides clear exception hierarchy
- Enables specific error handling in the sync loop
- Supports error categorization for telemetry
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
ChainSyncException (base)
├── ConfigurationError
├── IngestionError
│   ├── ValidatorResolutionError
│   ├── RewardParseError
│   ├── ChainMismatchError
│   └── PersistenceFailure
└── ReportingError
    └── StakingDataMissingError

Remote-API failures (FetchError, PrunedDataError) live in
chain_adapters.exceptions.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, ingestion halted."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    TRANSIENT = "transient"
    """Temporary error, the next pass may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class ChainSyncException(Exception):
    """
    Base exception for all chain sync errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if a later pass may succeed without intervention."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/telemetry."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(ChainSyncException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key
        super().__init__(message, context=context, **kwargs)


# ============================================================
# INGESTION ERRORS
# ============================================================

class IngestionError(ChainSyncException):
    """Base class for errors that abort the in-flight block."""

    default_severity = Severity.HIGH

    def __init__(self, message: str, height: Optional[int] = None, **kwargs):
        context = kwargs.pop("context", {})
        if height is not None:
            context["height"] = height
        super().__init__(message, context=context, **kwargs)
        self.height = height


class ValidatorResolutionError(IngestionError):
    """
    A consensus address could not be matched to an operator address.

    Indicates a consensus-set / validator-list mismatch at that height.
    """

    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(self, hex_address: str, height: int):
        super().__init__(
            f"could not find validator by {hex_address} at height {height}",
            height=height,
            context={"hex_address": hex_address},
        )
        self.hex_address = hex_address


class RewardParseError(IngestionError):
    """A reward/commission amount token is malformed."""

    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(self, message: str, token: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if token is not None:
            context["token"] = token
        super().__init__(message, context=context, **kwargs)
        self.token = token


class ChainMismatchError(IngestionError):
    """A fetched block belongs to a different chain than the one being indexed."""

    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(self, expected: str, actual: str, height: int):
        super().__init__(
            f"block {height} belongs to chain {actual!r}, expected {expected!r}",
            height=height,
            context={"expected_chain_id": expected, "actual_chain_id": actual},
        )
        self.expected = expected
        self.actual = actual


class PersistenceFailure(IngestionError):
    """The atomic unit failed to write or commit."""
    pass


# ============================================================
# REPORTING ERRORS
# ============================================================

class ReportingError(ChainSyncException):
    """Base class for reporting job errors."""
    pass


class StakingDataMissingError(ReportingError):
    """Reward data exists for a day without any staking snapshot."""

    def __init__(self, day: Any):
        super().__init__(
            f"no staking snapshot for {day} while reward data exists",
            context={"date": str(day)},
        )
        self.day = day


__all__ = [
    "Severity",
    "ErrorClassification",
    "ChainSyncException",
    "ConfigurationError",
    "IngestionError",
    "ValidatorResolutionError",
    "RewardParseError",
    "ChainMismatchError",
    "PersistenceFailure",
    "ReportingError",
    "StakingDataMissingError",
]
