"""Storage models: key scheme, operation types and entity records."""

from .audit_record import AuditLogRecord
from .base_record import BaseRecord
from .cart_record import CartItemRecord, CartRecord
from .category_record import CategoryRecord
from .discount_record import DiscountCodeRecord
from .notification_record import NotificationRecord
from .operations import (
    Guard,
    QueryPage,
    QuerySpec,
    RowState,
    TransactConditionCheck,
    TransactDelete,
    TransactOperation,
    TransactPut,
    TransactUpdate,
    UpdateSpec,
)
from .order_record import OrderItemRecord, OrderRecord, order_number_lock_item
from .product_record import (
    CategoryProductRecord,
    ProductCategoryRecord,
    ProductImageRecord,
    ProductRecord,
    ProductVariantRecord,
)

__all__ = [
    "BaseRecord",
    "ProductRecord",
    "ProductVariantRecord",
    "ProductImageRecord",
    "CategoryProductRecord",
    "ProductCategoryRecord",
    "CategoryRecord",
    "OrderRecord",
    "OrderItemRecord",
    "order_number_lock_item",
    "CartRecord",
    "CartItemRecord",
    "DiscountCodeRecord",
    "NotificationRecord",
    "AuditLogRecord",
    "Guard",
    "QuerySpec",
    "QueryPage",
    "RowState",
    "UpdateSpec",
    "TransactPut",
    "TransactUpdate",
    "TransactDelete",
    "TransactConditionCheck",
    "TransactOperation",
]
