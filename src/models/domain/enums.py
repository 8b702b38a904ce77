"""Domain enums for the shop catalog."""

from enum import Enum


class ProductStatus(str, Enum):
    """Publication status of a product.

    Inherits from str to ensure JSON serialization works correctly.
    """

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    def can_transition_to(self, new_status: "OrderStatus") -> bool:
        """Check if current status can transition to new status."""
        valid_transitions = {
            OrderStatus.PENDING: {
                OrderStatus.PROCESSING,
                OrderStatus.CANCELLED,
            },
            OrderStatus.PROCESSING: {
                OrderStatus.SHIPPED,
                OrderStatus.CANCELLED,
                OrderStatus.REFUNDED,
            },
            OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
            OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
            OrderStatus.CANCELLED: set(),  # Terminal state
            OrderStatus.REFUNDED: set(),  # Terminal state
        }
        return new_status in valid_transitions.get(self, set())


class PaymentStatus(str, Enum):
    """Payment state reported by the payment collaborator."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class FulfillmentStatus(str, Enum):
    """Shipping state of an order."""

    UNFULFILLED = "unfulfilled"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLED = "fulfilled"


class DiscountType(str, Enum):
    """How a discount code value is applied."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class NotificationType(str, Enum):
    """Category of an admin notification."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"
    ORDER = "order"
    SYSTEM = "system"
