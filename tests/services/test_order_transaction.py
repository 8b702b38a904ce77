"""Unit tests for transactional order creation."""

import unittest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.config.app import AppConfig
from src.exceptions import (
    DuplicateOrderNumberError,
    EntityNotFoundError,
    EntityValidationError,
    OrderLinesIncompleteError,
    StockConflictError,
)
from src.models.api.requests import OrderCreate, OrderLineCreate, ProductCreate, VariantCreate
from src.models.storage.keys import order_number_lock_key
from src.repositories.dynamodb_product import DynamoDBProductRepository
from src.repositories.dynamodb_product_variant import DynamoDBProductVariantRepository
from src.services.counter import CounterService
from src.services.order_transaction import OrderTransactionCoordinator
from tests.fakes import FakeDynamoDBClient


class TestOrderTransactionCoordinator(unittest.IsolatedAsyncioTestCase):
    """Test cases for OrderTransactionCoordinator."""

    async def asyncSetUp(self):
        """Set up test fixtures."""
        self.config = AppConfig(low_stock_threshold=2)
        self.fake_client = FakeDynamoDBClient(self.config)
        self.counters = CounterService(self.fake_client)
        self.notifications = MagicMock()
        self.notifications.order_created = AsyncMock()
        self.notifications.low_stock = AsyncMock()
        self.coordinator = OrderTransactionCoordinator(
            self.fake_client, self.config, self.counters, self.notifications
        )
        self.products = DynamoDBProductRepository(self.fake_client, self.config, self.counters)
        self.variants = DynamoDBProductVariantRepository(
            self.fake_client, self.config, self.counters
        )

        self.product = await self.products.create(
            ProductCreate(slug="dragon-mug", title="Dragon Mug", base_price=Decimal("12.50"))
        )
        self.red = await self.variants.create(
            VariantCreate(product_id=self.product.id, sku="MUG-RED", name="Red", stock=10)
        )
        self.blue = await self.variants.create(
            VariantCreate(product_id=self.product.id, sku="MUG-BLUE", name="Blue", stock=3)
        )

    def order(self, *lines) -> OrderCreate:
        items = [
            OrderLineCreate(
                product_id=self.product.id,
                variant_id=variant_id,
                product_name="Dragon Mug",
                quantity=quantity,
                unit_price=Decimal("12.50"),
            )
            for variant_id, quantity in lines
        ]
        subtotal = sum((item.total_price for item in items), Decimal("0"))
        return OrderCreate(
            customer_email="ada@example.com",
            customer_name="Ada",
            subtotal=subtotal,
            total=subtotal,
            items=items,
        )

    async def stock(self, variant) -> int:
        current = await self.variants.get((variant.product_id, variant.id))
        return current.stock

    def order_rows(self, order_id) -> list:
        return self.fake_client.rows_with_prefix(f"ORDER#{order_id}")

    async def test_create_order_commits_everything(self):
        """Header, one row per line and exact stock decrements."""
        # Act
        order = await self.coordinator.create_order(self.order((self.red.id, 4), (self.blue.id, 1)))

        # Assert
        self.assertRegex(order.order_number, r"^ORD-\d{8}-\d{4}$")
        self.assertEqual(2, len(order.items))
        self.assertEqual([1, 2], [item.line_number for item in order.items])
        rows = self.order_rows(order.id)
        self.assertEqual(["ITEM#0000000001", "ITEM#0000000002", "METADATA"], [row["SK"] for row in rows])
        self.assertEqual(6, await self.stock(self.red))
        self.assertEqual(2, await self.stock(self.blue))
        lock = self.fake_client.row(*order_number_lock_key(order.order_number))
        self.assertEqual(order.id, lock["order_id"])

    async def test_order_numbers_are_unique(self):
        first = await self.coordinator.create_order(self.order((self.red.id, 1)))
        second = await self.coordinator.create_order(self.order((self.red.id, 1)))

        self.assertNotEqual(first.order_number, second.order_number)
        self.assertNotEqual(first.id, second.id)

    async def test_duplicate_variant_lines_share_one_decrement(self):
        """Two lines for the same variant are checked against their total."""
        # Act
        order = await self.coordinator.create_order(self.order((self.red.id, 2), (self.red.id, 3)))

        # Assert
        self.assertEqual(2, len(order.items))
        self.assertEqual(5, await self.stock(self.red))
        transaction = self.fake_client.transactions[-1]
        self.assertEqual(5, len(transaction))

    async def test_insufficient_stock_rejected_by_pre_check(self):
        with self.assertRaises(StockConflictError) as context:
            await self.coordinator.create_order(self.order((self.blue.id, 4)))

        self.assertEqual([self.blue.id], context.exception.variant_ids)
        self.assertEqual([], self.fake_client.transactions)
        self.assertEqual(3, await self.stock(self.blue))

    async def test_stock_race_rolls_back_everything(self):
        """When stock runs out between check and commit, nothing is written."""
        # Arrange: the pre-check passes, then a concurrent order takes the stock
        real_check = self.coordinator._check_stock

        async def check_then_race(demand):
            variants = await real_check(demand)
            await self.variants.decrement_stock(self.product.id, self.blue.id, 2)
            return variants

        self.coordinator._check_stock = check_then_race

        # Act
        with self.assertRaises(StockConflictError) as context:
            await self.coordinator.create_order(self.order((self.red.id, 1), (self.blue.id, 2)))

        # Assert
        self.assertEqual([self.blue.id], context.exception.variant_ids)
        self.assertEqual(1, await self.stock(self.blue))
        self.assertEqual(10, await self.stock(self.red))
        self.assertEqual([], self.fake_client.partitions_starting_with("ORDER#"))
        self.assertEqual([], self.fake_client.partitions_starting_with("ORDER_NUMBER#"))
        self.notifications.order_created.assert_not_awaited()

    async def test_duplicate_order_number(self):
        """A taken order number aborts the transaction."""
        # Arrange
        self.coordinator.counters.next_order_number = AsyncMock(return_value="ORD-20240101-0001")
        pk, sk = order_number_lock_key("ORD-20240101-0001")
        await self.fake_client.put_item({"PK": pk, "SK": sk, "entity_type": "OrderNumberLock"})

        # Act & Assert
        with self.assertRaises(DuplicateOrderNumberError) as context:
            await self.coordinator.create_order(self.order((self.red.id, 1)))

        self.assertEqual("ORD-20240101-0001", context.exception.order_number)
        self.assertEqual(10, await self.stock(self.red))
        self.assertEqual([], self.fake_client.partitions_starting_with("ORDER#"))

    async def test_missing_variant(self):
        with self.assertRaises(EntityNotFoundError):
            await self.coordinator.create_order(self.order((999, 1)))

    async def test_overflow_lines_written_after_commit(self):
        """Lines beyond the transaction limit are written by batch."""
        # Arrange: header + lock + one decrement leaves two line slots
        self.config.transaction_item_limit = 5

        # Act
        order = await self.coordinator.create_order(
            self.order((self.red.id, 1), (None, 1), (None, 1), (None, 1))
        )

        # Assert
        self.assertEqual(5, len(self.fake_client.transactions[-1]))
        items = [row for row in self.order_rows(order.id) if row["SK"].startswith("ITEM#")]
        self.assertEqual(4, len(items))

    async def test_overflow_failure_reports_missing_lines(self):
        """If the tail cannot be written, the committed order is reported with its gaps."""
        # Arrange
        self.config.transaction_item_limit = 5
        self.fake_client.fail_batch_writes = True

        # Act
        with self.assertRaises(OrderLinesIncompleteError) as context:
            await self.coordinator.create_order(
                self.order((self.red.id, 1), (None, 1), (None, 1), (None, 1))
            )

        # Assert
        self.assertEqual([3, 4], context.exception.missing_lines)
        order = context.exception.order
        self.assertIsNotNone(self.fake_client.row(f"ORDER#{order.id}", "METADATA"))
        self.assertEqual(9, await self.stock(self.red))

    async def test_too_many_variants(self):
        self.config.transaction_item_limit = 3

        with self.assertRaises(EntityValidationError) as context:
            await self.coordinator.create_order(self.order((self.red.id, 1)))

        self.assertEqual("TOO_MANY_VARIANTS", context.exception.code)

    async def test_notifications(self):
        """order_created is emitted; low_stock when the remainder is at the threshold."""
        # Act
        order = await self.coordinator.create_order(self.order((self.blue.id, 1)))

        # Assert
        self.notifications.order_created.assert_awaited_once()
        self.assertEqual(order.id, self.notifications.order_created.await_args.args[0].id)
        variant, remaining = self.notifications.low_stock.await_args.args
        self.assertEqual(self.blue.id, variant.id)
        self.assertEqual(2, remaining)

    async def test_notification_failure_does_not_fail_order(self):
        # Arrange
        self.notifications.order_created.side_effect = RuntimeError("queue down")

        # Act
        order = await self.coordinator.create_order(self.order((self.red.id, 1)))

        # Assert
        self.assertIsNotNone(self.fake_client.row(f"ORDER#{order.id}", "METADATA"))
        self.assertEqual(9, await self.stock(self.red))


if __name__ == "__main__":
    unittest.main()
