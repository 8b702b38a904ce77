"""Exception handling for the shop data-access core."""

from typing import Any, Dict, Optional


class ShopStoreError(Exception):
    """Base exception for all data-access core errors."""

    def __init__(
        self,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code


from .business import (
    CircularReferenceError,
    ConflictError,
    DuplicateOrderNumberError,
    EntityNotFoundError,
    EntityValidationError,
    OrderLinesIncompleteError,
    StockConflictError,
)
from .storage import (
    ConditionFailedError,
    DecodeError,
    StorageError,
    StorageGeneralError,
    ThrottledError,
    TransactionAbortedError,
)

__all__ = [
    # Base
    "ShopStoreError",
    # Domain errors
    "EntityNotFoundError",
    "ConflictError",
    "StockConflictError",
    "DuplicateOrderNumberError",
    "EntityValidationError",
    "CircularReferenceError",
    "OrderLinesIncompleteError",
    # Storage errors
    "StorageError",
    "StorageGeneralError",
    "ThrottledError",
    "ConditionFailedError",
    "TransactionAbortedError",
    "DecodeError",
]
