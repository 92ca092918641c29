"""
Chain Adapter Exceptions - Custom exception hierarchy.

Absence of data (block not produced yet, unknown validator) is NOT an
error: adapters return None for it. Exceptions are reserved for
failures the sync loop must act on.
"""

from datetime import datetime
from typing import Any, Optional


# Message fragment the remote node uses when historical data for a height
# has been pruned away.
PRUNED_MESSAGE_FRAGMENT = "transaction not found on node"


class ChainAdapterError(Exception):
    """Base exception for all chain adapter errors."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.adapter_name = adapter_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "adapter_name": self.adapter_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.adapter_name:
            parts.append(f"[adapter={self.adapter_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class FetchError(ChainAdapterError):
    """Error during data fetching from the remote node."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, adapter_name, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data


class InvalidRequestError(FetchError):
    """The node rejected the request as malformed (HTTP 400)."""
    pass


class PrunedDataError(FetchError):
    """The node no longer holds historical data for the requested height."""
    pass


def is_pruned_data_error(error: BaseException) -> bool:
    """
    Whether an error means "remote data pruned".

    PrunedDataError is the structured signal. Collaborators that only
    raise generic errors are recognized by message.
    """
    if isinstance(error, PrunedDataError):
        return True
    return PRUNED_MESSAGE_FRAGMENT in str(error)
