"""Key scheme for the single-table layout.

Pure functions only. Every physical key is derived here, so an update that
re-derives a key from the same inputs always lands on the key the create used.

Layout (PK / SK):
    PRODUCT#<id>        / METADATA
    PRODUCT#<id>        / VARIANT#<id:010>
    PRODUCT#<id>        / IMAGE#<position:010>
    PRODUCT#<id>        / CATEGORY#<id>
    CATEGORY#<id>       / METADATA
    CATEGORY#<id>       / PRODUCT#<id>
    ORDER#<id>          / METADATA
    ORDER#<id>          / ITEM#<line:010>
    ORDER_NUMBER#<num>  / LOCK
    CART#<session>      / METADATA
    CART#<session>      / ITEM#<id:010>
    DISCOUNT#<id>       / METADATA
    NOTIFICATION#<id>   / METADATA
    AUDIT#<date>#<uuid> / METADATA
    COUNTER             / <counter name>
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

METADATA = "METADATA"
LOCK = "LOCK"
COUNTER_PK = "COUNTER"
ROOT = "ROOT"
SEPARATOR = "#"

# Fixed widths for numeric sort values
ID_WIDTH = 10
POSITION_WIDTH = 10
ORDER_SEQUENCE_WIDTH = 4

# Upper bound used when an optional date feeds a sort key
OPEN_END_DATE = "9999-12-31"


class EntityPrefix(str, Enum):
    """Partition key prefixes, one per top-level entity."""

    PRODUCT = "PRODUCT"
    CATEGORY = "CATEGORY"
    ORDER = "ORDER"
    ORDER_NUMBER = "ORDER_NUMBER"
    CART = "CART"
    DISCOUNT = "DISCOUNT"
    NOTIFICATION = "NOTIFICATION"
    AUDIT = "AUDIT"


class ChildTag(str, Enum):
    """Sort key prefixes of rows that live under a parent partition."""

    VARIANT = "VARIANT"
    IMAGE = "IMAGE"
    ITEM = "ITEM"
    CATEGORY = "CATEGORY"
    PRODUCT = "PRODUCT"


class Index(str, Enum):
    """Global secondary indexes and their key attribute names."""

    GSI1 = "GSI1"
    GSI2 = "GSI2"
    GSI3 = "GSI3"

    @property
    def pk_attribute(self) -> str:
        return f"{self.value}PK"

    @property
    def sk_attribute(self) -> str:
        return f"{self.value}SK"


class EntityType(str, Enum):
    """Type discriminator stored in ``entity_type`` on every row."""

    PRODUCT = "Product"
    PRODUCT_VARIANT = "ProductVariant"
    PRODUCT_IMAGE = "ProductImage"
    PRODUCT_CATEGORY = "ProductCategory"
    CATEGORY = "Category"
    ORDER = "Order"
    ORDER_ITEM = "OrderItem"
    ORDER_NUMBER_LOCK = "OrderNumberLock"
    CART = "Cart"
    CART_ITEM = "CartItem"
    DISCOUNT_CODE = "DiscountCode"
    NOTIFICATION = "Notification"
    AUDIT_LOG = "AuditLog"
    COUNTER = "Counter"


STRUCTURAL_ATTRIBUTES = frozenset(
    {
        "PK",
        "SK",
        "entity_type",
        *(index.pk_attribute for index in Index),
        *(index.sk_attribute for index in Index),
    }
)


def pad(value: int, width: int = ID_WIDTH) -> str:
    """Zero-pad a non-negative integer so byte order equals numeric order."""
    if value < 0:
        raise ValueError(f"Cannot pad negative sort value {value}")
    return str(value).zfill(width)


def _join(*parts: Any) -> str:
    return SEPARATOR.join(str(part.value if isinstance(part, Enum) else part) for part in parts)


def partition_key(prefix: EntityPrefix, entity_id: Any) -> str:
    """Partition key of a top-level entity, e.g. ``PRODUCT#12``."""
    return _join(prefix, entity_id)


def primary_key(prefix: EntityPrefix, entity_id: Any) -> Tuple[str, str]:
    """(PK, SK) of a singleton row."""
    return partition_key(prefix, entity_id), METADATA


def child_prefix(tag: ChildTag) -> str:
    """SK prefix shared by all children with the given tag, e.g. ``VARIANT#``."""
    return f"{tag.value}{SEPARATOR}"


def child_sort_key(tag: ChildTag, sort_value: Any) -> str:
    """SK of a child row. Numeric sort values must already be padded."""
    return _join(tag, sort_value)


def child_key(
    parent_prefix: EntityPrefix, parent_id: Any, tag: ChildTag, sort_value: Any
) -> Tuple[str, str]:
    """(PK, SK) of a row stored under its parent's partition."""
    return partition_key(parent_prefix, parent_id), child_sort_key(tag, sort_value)


def index_key(
    index: Index, partition_value: str, sort_value: Optional[str] = None
) -> Dict[str, str]:
    """GSI attribute pair. Numeric sort values must already be padded."""
    attributes = {index.pk_attribute: partition_value}
    if sort_value is not None:
        attributes[index.sk_attribute] = sort_value
    return attributes


def counter_key(counter_name: str) -> Tuple[str, str]:
    """(PK, SK) of a counter row."""
    return COUNTER_PK, counter_name


def order_number_counter(day: date) -> str:
    """Name of the per-UTC-day order sequence counter."""
    return f"ORDER_NUMBER_{day.strftime('%Y%m%d')}"


def format_order_number(day: date, sequence: int) -> str:
    """ORD-YYYYMMDD-XXXX."""
    return f"ORD-{day.strftime('%Y%m%d')}-{pad(sequence, ORDER_SEQUENCE_WIDTH)}"


def order_number_lock_key(order_number: str) -> Tuple[str, str]:
    """(PK, SK) of the row that reserves an order number."""
    return partition_key(EntityPrefix.ORDER_NUMBER, order_number), LOCK


def parse_child_id(sort_key: str, tag: ChildTag) -> int:
    """Numeric id from a child SK such as ``PRODUCT#7``."""
    prefix = child_prefix(tag)
    if not sort_key.startswith(prefix):
        raise ValueError(f"Sort key {sort_key} does not start with {prefix}")
    return int(sort_key[len(prefix):])


def day_of(moment: datetime) -> date:
    """UTC calendar day of an aware datetime."""
    return moment.astimezone(timezone.utc).date()
