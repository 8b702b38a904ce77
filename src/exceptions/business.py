"""Domain-level exceptions raised by repositories and services."""

from typing import Any, Dict, List, Optional

from . import ShopStoreError


class EntityNotFoundError(ShopStoreError):
    """The requested entity does not exist (or is soft-deleted / expired)."""

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        message: Optional[str] = None,
        code: str = "NOT_FOUND",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or f"{entity_type} {entity_id} not found",
            code=code,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                **(details or {}),
            },
            status_code=404,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConflictError(ShopStoreError):
    """Uniqueness violation or a write against an incompatible row state."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, details, status_code=409)


class DuplicateOrderNumberError(ConflictError):
    """The generated order number is already taken. Do not retry with it."""

    def __init__(
        self,
        order_number: str,
        message: str = "Order number already exists",
        code: str = "DUPLICATE_ORDER_NUMBER",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message, code, {"order_number": order_number, **(details or {})}
        )
        self.order_number = order_number


class StockConflictError(ConflictError):
    """Not enough inventory for one or more variants."""

    def __init__(
        self,
        variant_ids: Optional[List[int]] = None,
        message: str = "Insufficient stock",
        code: str = "STOCK_CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.variant_ids = list(variant_ids or [])
        super().__init__(
            message, code, {"variant_ids": self.variant_ids, **(details or {})}
        )


class EntityValidationError(ShopStoreError):
    """Caller-supplied data is malformed; nothing was written."""

    def __init__(
        self,
        message: str = "Invalid data",
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, details, status_code=422)


class CircularReferenceError(EntityValidationError):
    """A category would become its own ancestor."""

    def __init__(
        self,
        category_id: int,
        parent_id: int,
        message: str = "Circular parent reference detected",
        code: str = "CIRCULAR_REFERENCE",
    ):
        super().__init__(
            message, code, {"category_id": category_id, "parent_id": parent_id}
        )


class OrderLinesIncompleteError(ShopStoreError):
    """An order committed, but some of its overflow lines were not written.

    The order header, the first lines and every stock decrement are durable;
    only the lines listed in ``missing_lines`` are absent.
    """

    def __init__(
        self,
        order: Any,
        missing_lines: List[int],
        message: str = "Order committed with missing overflow lines",
        code: str = "ORDER_LINES_INCOMPLETE",
    ):
        super().__init__(
            message,
            code,
            {"order_id": order.id, "missing_lines": missing_lines},
            status_code=500,
        )
        self.order = order
        self.missing_lines = missing_lines
