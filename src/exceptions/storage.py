"""Storage-related exceptions."""

from typing import Any, Dict, List, Optional

from . import ShopStoreError


class StorageError(ShopStoreError):
    """Base class for storage-related errors."""

    def __init__(
        self,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(
            message=message,
            code=code,
            details=details,
            status_code=status_code,
        )


class StorageGeneralError(StorageError):
    """General error for storage operations."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        code: str = "STORAGE_GENERAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class ThrottledError(StorageError):
    """The store rejected the request for lack of capacity. Safe to retry later."""

    retryable = True

    def __init__(
        self,
        message: str = "Storage throughput exceeded",
        code: str = "THROTTLED",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, details, status_code=503)


class ConditionFailedError(StorageError):
    """A conditional write was rejected by the store.

    Repositories translate this into a domain error (not found, conflict,
    stock conflict) using the key and the existing item, when the store
    returned one.
    """

    def __init__(
        self,
        pk: str,
        sk: str,
        existing_item: Optional[Dict[str, Any]] = None,
        message: str = "Conditional check failed",
        code: str = "CONDITION_FAILED",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            code,
            {"pk": pk, "sk": sk, **(details or {})},
            status_code=409,
        )
        self.pk = pk
        self.sk = sk
        self.existing_item = existing_item


class TransactionAbortedError(StorageError):
    """A multi-item transaction was cancelled; nothing was written.

    Attributes:
        reasons: One cancellation code per submitted operation, in submission
            order ("None" for operations that did not cause the abort).
    """

    def __init__(
        self,
        reasons: Optional[List[str]] = None,
        message: str = "Transaction cancelled",
        code: str = "TRANSACTION_ABORTED",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.reasons = list(reasons or [])
        super().__init__(
            message,
            code,
            {"reasons": self.reasons, **(details or {})},
            status_code=409,
        )

    def failed_indexes(self, reason_code: str = "ConditionalCheckFailed") -> List[int]:
        """Positions of the operations that failed with the given reason code."""
        return [i for i, reason in enumerate(self.reasons) if reason == reason_code]


class DecodeError(StorageError):
    """A stored item does not validate against its entity model."""

    def __init__(
        self,
        message: str = "Stored item failed validation",
        code: str = "STORAGE_DECODE_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
