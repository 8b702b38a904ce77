"""Atomic id and order-number generation."""

from datetime import datetime
from typing import Optional

from aws_lambda_powertools.logging import Logger

from ..clients.dynamodb import DynamoDBClient
from ..models.storage.keys import day_of, format_order_number, order_number_counter
from ..utils.timestamps import utc_now

logger = Logger()

PRODUCT_ID = "PRODUCT_ID"
VARIANT_ID = "VARIANT_ID"
IMAGE_ID = "IMAGE_ID"
CATEGORY_ID = "CATEGORY_ID"
ORDER_ID = "ORDER_ID"
CART_ITEM_ID = "CART_ITEM_ID"
DISCOUNT_ID = "DISCOUNT_ID"
NOTIFICATION_ID = "NOTIFICATION_ID"


class CounterService:
    """Monotonic counters backed by one row per counter name.

    Each value comes from a single atomic ``if_not_exists + 1`` update, so no
    two callers ever receive the same value for a counter. Sequences may have
    gaps: a value obtained by a caller that then fails is never reissued.
    Increments are not idempotent and are never retried here; a throttled
    increment surfaces as :class:`ThrottledError`.
    """

    def __init__(self, dynamodb_client: DynamoDBClient) -> None:
        self.dynamodb_client = dynamodb_client

    async def next(self, counter_name: str) -> int:
        """Reserve and return the next value of a counter."""
        value = await self.dynamodb_client.increment_counter(counter_name)
        logger.debug("Counter incremented", extra={"counter": counter_name, "value": value})
        return value

    async def next_id(self, counter_name: str) -> int:
        """Next numeric entity id for a per-entity-type counter."""
        return await self.next(counter_name)

    async def next_order_number(self, moment: Optional[datetime] = None) -> str:
        """Next order number for the UTC day of ``moment`` (default: now).

        Returns:
            ORD-YYYYMMDD-XXXX, the sequence zero-padded to at least 4 digits
        """
        day = day_of(moment or utc_now())
        sequence = await self.next(order_number_counter(day))
        return format_order_number(day, sequence)
