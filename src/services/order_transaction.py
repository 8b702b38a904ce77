"""Transactional order creation.

An order is written as one all-or-nothing transaction holding:

    0  the order header             (must not exist)
    1  the order-number lock row    (must not exist)
    2… one stock decrement per referenced variant (stock >= quantity)
    …  as many order lines as still fit under the transaction item limit

Lines beyond the limit are written after the commit with batch writes. The
header, the first lines and every stock decrement are atomic; the overflow
tail is not.
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

from aws_lambda_powertools.logging import Logger

from ..clients.dynamodb import BATCH_WRITE_LIMIT, DynamoDBClient
from ..config.app import AppConfig
from ..exceptions import (
    ConflictError,
    DuplicateOrderNumberError,
    EntityNotFoundError,
    EntityValidationError,
    OrderLinesIncompleteError,
    StockConflictError,
    StorageError,
    TransactionAbortedError,
)
from ..models.api.requests import OrderCreate
from ..models.domain.enums import OrderStatus
from ..models.domain.order import Order, OrderItem
from ..models.domain.product import ProductVariant
from ..models.storage.operations import TransactOperation, TransactPut, TransactUpdate
from ..models.storage.order_record import OrderItemRecord, OrderRecord, order_number_lock_item
from ..repositories.dynamodb_product_variant import (
    DynamoDBProductVariantRepository,
    stock_decrement,
)
from ..utils.timestamps import utc_now
from .counter import ORDER_ID, CounterService
from .notifications import NotificationPublisher

logger = Logger()

HEADER_INDEX = 0
LOCK_INDEX = 1
STOCK_OFFSET = 2

VariantRef = Tuple[int, int]


class OrderTransactionCoordinator:
    """Creates orders together with their lines and stock decrements."""

    def __init__(
        self,
        dynamodb_client: DynamoDBClient,
        config: AppConfig,
        counters: Optional[CounterService] = None,
        notifications: Optional[NotificationPublisher] = None,
    ) -> None:
        self.dynamodb_client = dynamodb_client
        self.config = config
        self.counters = counters or CounterService(dynamodb_client)
        self.notifications = notifications
        self.variants = DynamoDBProductVariantRepository(dynamodb_client, config, self.counters)

    @staticmethod
    def _demand(data: OrderCreate) -> "OrderedDict[VariantRef, int]":
        """Total quantity per referenced variant, in first-seen order."""
        demand: "OrderedDict[VariantRef, int]" = OrderedDict()
        for line in data.items:
            if line.variant_id is None:
                continue
            ref = (line.product_id, line.variant_id)
            demand[ref] = demand.get(ref, 0) + line.quantity
        return demand

    async def _check_stock(
        self, demand: "OrderedDict[VariantRef, int]"
    ) -> Dict[VariantRef, ProductVariant]:
        """Advisory availability check. The transaction re-checks atomically."""
        variants: Dict[VariantRef, ProductVariant] = {}
        short: List[int] = []
        for (product_id, variant_id), quantity in demand.items():
            variant = await self.variants.find_by_id((product_id, variant_id))
            if variant is None:
                raise EntityNotFoundError("ProductVariant", variant_id)
            if variant.stock < quantity:
                short.append(variant_id)
            variants[(product_id, variant_id)] = variant
        if short:
            logger.warning("Order rejected by stock pre-check", extra={"variant_ids": short})
            raise StockConflictError(short)
        return variants

    def _line_capacity(self, stock_operations: int, line_count: int) -> int:
        limit = self.config.transaction_item_limit
        capacity = limit - STOCK_OFFSET - stock_operations
        if capacity < 1:
            raise EntityValidationError(
                f"Order references too many variants for one transaction (limit {limit})",
                code="TOO_MANY_VARIANTS",
                details={"variants": stock_operations, "limit": limit},
            )
        return min(capacity, line_count)

    async def create_order(self, data: OrderCreate) -> Order:
        """Create an order, its lines and the stock decrements.

        Returns:
            The order with ``items`` populated

        Raises:
            EntityNotFoundError: If a referenced variant does not exist
            StockConflictError: If any variant lacks stock; nothing is written
            DuplicateOrderNumberError: If the generated number is taken;
                nothing is written and the number must not be reused
            EntityValidationError: If the order cannot fit one transaction
            OrderLinesIncompleteError: If the order committed but some
                overflow lines could not be written
        """
        demand = self._demand(data)
        variants = await self._check_stock(demand)
        in_transaction = self._line_capacity(len(demand), len(data.items))

        now = utc_now()
        order_id = await self.counters.next_id(ORDER_ID)
        order_number = await self.counters.next_order_number(now)
        order = Order(
            **data.model_dump(exclude={"items"}),
            id=order_id,
            order_number=order_number,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        items = [
            OrderItem(
                order_id=order_id,
                line_number=number,
                product_id=line.product_id,
                variant_id=line.variant_id,
                product_name=line.product_name,
                variant_name=line.variant_name,
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
                created_at=now,
            )
            for number, line in enumerate(data.items, start=1)
        ]

        refs = list(demand)
        operations: List[TransactOperation] = [
            TransactPut(item=OrderRecord.to_item(order)),
            TransactPut(item=order_number_lock_item(order)),
        ]
        operations.extend(
            TransactUpdate(spec=stock_decrement(product_id, variant_id, demand[(product_id, variant_id)]))
            for product_id, variant_id in refs
        )
        operations.extend(
            TransactPut(item=OrderItemRecord.to_item(item)) for item in items[:in_transaction]
        )

        try:
            await self.dynamodb_client.transact_write(operations)
        except TransactionAbortedError as e:
            raise self._abort_error(e, order, refs)

        logger.info(
            "Order committed",
            extra={
                "order_id": order.id,
                "order_number": order.order_number,
                "lines": len(items),
                "lines_in_transaction": in_transaction,
                "variants": len(refs),
            },
        )

        missing = await self._write_overflow(items[in_transaction:])
        result = order.model_copy(update={"items": items})

        await self._notify_order_created(result)
        for ref, quantity in demand.items():
            remaining = variants[ref].stock - quantity
            if remaining <= self.config.low_stock_threshold:
                await self._notify_low_stock(variants[ref], remaining)

        if missing:
            logger.error(
                "Order committed with missing lines",
                extra={"order_id": order.id, "missing_lines": missing},
            )
            raise OrderLinesIncompleteError(result, missing)
        return result

    def _abort_error(
        self, error: TransactionAbortedError, order: Order, refs: Sequence[VariantRef]
    ) -> Exception:
        """Map the failed positions of an aborted order transaction to a domain error."""
        failed = error.failed_indexes()
        logger.warning(
            "Order transaction aborted",
            extra={"order_number": order.order_number, "failed": failed, "reasons": error.reasons},
        )
        if LOCK_INDEX in failed:
            return DuplicateOrderNumberError(order.order_number)
        if HEADER_INDEX in failed:
            return ConflictError(
                f"Order {order.id} already exists",
                code="ORDER_EXISTS",
                details={"order_id": order.id},
            )
        stock_failures = [
            refs[index - STOCK_OFFSET][1]
            for index in failed
            if STOCK_OFFSET <= index < STOCK_OFFSET + len(refs)
        ]
        if stock_failures:
            return StockConflictError(stock_failures)
        if failed:
            return ConflictError(
                f"Order {order.id} lines already exist",
                code="ORDER_LINES_EXIST",
                details={"order_id": order.id},
            )
        return error

    async def _write_overflow(self, items: Sequence[OrderItem]) -> List[int]:
        """Write lines that did not fit the transaction. Returns lines not written."""
        missing: List[int] = []
        for start in range(0, len(items), BATCH_WRITE_LIMIT):
            chunk = items[start:start + BATCH_WRITE_LIMIT]
            try:
                await self.dynamodb_client.batch_write(
                    puts=[OrderItemRecord.to_item(item) for item in chunk]
                )
            except StorageError as e:
                logger.error(
                    "Overflow order lines not written",
                    extra={
                        "order_id": chunk[0].order_id,
                        "lines": [item.line_number for item in chunk],
                        "error": e.message,
                    },
                )
                missing.extend(item.line_number for item in chunk)
        return missing

    async def _notify_order_created(self, order: Order) -> None:
        if self.notifications is None:
            return
        try:
            await self.notifications.order_created(order)
        except Exception:
            logger.exception("order_created notification failed", extra={"order_id": order.id})

    async def _notify_low_stock(self, variant: ProductVariant, remaining: int) -> None:
        if self.notifications is None:
            return
        try:
            await self.notifications.low_stock(variant, remaining)
        except Exception:
            logger.exception(
                "low_stock notification failed",
                extra={"product_id": variant.product_id, "variant_id": variant.id},
            )
