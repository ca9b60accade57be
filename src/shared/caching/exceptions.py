"""
Client cache exceptions.

Storage failures are recovered inside the cache (they degrade to misses),
network failures are surfaced to the caller, unknown actions are soft.
"""

from typing import Any, Dict, Optional


class CacheError(Exception):
    """Base exception for cache subsystem errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class StorageError(CacheError):
    """Raised when the backing store cannot read, write or serialize an entry."""

    def __init__(
        self,
        message: str = "Cache storage operation failed",
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(message=message, error_code="CACHE_STORAGE_ERROR", details=details)
        self.key = key
        if original_error:
            self.__cause__ = original_error


class NetworkError(CacheError):
    """Raised when a network fetch fails. Never cached."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        path: Optional[str] = None,
        body: Any = None,
    ):
        details = {}
        if status is not None:
            details["status"] = status
        if path:
            details["path"] = path

        super().__init__(message=message, error_code="NETWORK_ERROR", details=details)
        self.status = status
        self.path = path
        self.body = body


class UnknownActionError(CacheError):
    """Raised in strict mode when the coordinator receives an unrecognized action."""

    def __init__(self, action: str):
        super().__init__(
            message=f"Unknown cache action: {action}",
            error_code="UNKNOWN_CACHE_ACTION",
            details={"action": action},
        )
        self.action = action
