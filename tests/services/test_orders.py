"""Unit tests for the order lifecycle service."""

import unittest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.config.app import AppConfig
from src.exceptions import EntityNotFoundError, EntityValidationError
from src.models.api.requests import OrderCreate, OrderLineCreate
from src.models.domain.enums import FulfillmentStatus, OrderStatus, PaymentStatus
from src.repositories.dynamodb_audit_log import DynamoDBAuditLogRepository
from src.repositories.dynamodb_order import DynamoDBOrderRepository
from src.services.audit import AuditRecorder
from src.services.orders import OrderService
from tests.fakes import FakeDynamoDBClient


class TestOrderService(unittest.IsolatedAsyncioTestCase):
    """Test cases for OrderService."""

    async def asyncSetUp(self):
        """Set up test fixtures."""
        self.config = AppConfig()
        self.fake_client = FakeDynamoDBClient(self.config)
        self.orders = DynamoDBOrderRepository(self.fake_client, self.config)
        self.audit_logs = DynamoDBAuditLogRepository(self.fake_client, self.config)
        self.notifications = MagicMock()
        self.notifications.order_paid = AsyncMock()
        self.notifications.order_shipped = AsyncMock()
        self.service = OrderService(
            self.orders, self.notifications, AuditRecorder(self.audit_logs)
        )
        # Lines without a variant need no stock
        line = OrderLineCreate(
            product_id=1, product_name="Gift Card", quantity=1, unit_price=Decimal("25")
        )
        self.order = await self.orders.create(
            OrderCreate(
                customer_email="ada@example.com",
                customer_name="Ada",
                subtotal=Decimal("25"),
                total=Decimal("25"),
                items=[line],
            )
        )

    async def test_mark_paid(self):
        """Payment moves a pending order to processing and emits a fact."""
        # Act
        order = await self.service.mark_paid(self.order.id, payment_intent_id="pi_123")

        # Assert
        self.assertEqual(PaymentStatus.PAID, order.payment_status)
        self.assertEqual(OrderStatus.PROCESSING, order.status)
        self.assertEqual("pi_123", order.payment_intent_id)
        self.notifications.order_paid.assert_awaited_once()
        entries = await self.audit_logs.find_by_resource("order", self.order.id)
        self.assertEqual(["order.paid"], [entry.action for entry in entries.items])

    async def test_mark_shipped(self):
        await self.service.mark_paid(self.order.id)

        order = await self.service.mark_shipped(self.order.id)

        self.assertEqual(OrderStatus.SHIPPED, order.status)
        self.assertEqual(FulfillmentStatus.FULFILLED, order.fulfillment_status)
        self.notifications.order_shipped.assert_awaited_once()

    async def test_ship_pending_order_rejected(self):
        with self.assertRaises(EntityValidationError) as context:
            await self.service.mark_shipped(self.order.id)

        self.assertEqual("INVALID_STATUS_TRANSITION", context.exception.code)
        self.notifications.order_shipped.assert_not_awaited()

    async def test_cancel_soft_deletes(self):
        # Act
        order = await self.service.cancel(self.order.id)

        # Assert
        self.assertEqual(OrderStatus.CANCELLED, order.status)
        self.assertIsNotNone(order.deleted_at)
        self.assertIsNone(await self.orders.find_by_id(self.order.id))
        with self.assertRaises(EntityNotFoundError):
            await self.service.cancel(self.order.id)

    async def test_update_status_records_audit(self):
        await self.service.update_status(self.order.id, OrderStatus.PROCESSING)

        entries = await self.audit_logs.find_by_action("order.status_changed")
        self.assertEqual({"status": "processing"}, entries.items[0].changes)

    async def test_side_effect_failures_are_contained(self):
        """A failing publisher or audit log never fails the order change."""
        # Arrange
        self.notifications.order_paid.side_effect = RuntimeError("queue down")
        audit = MagicMock()
        audit.record = AsyncMock(side_effect=RuntimeError("audit down"))
        service = OrderService(self.orders, self.notifications, audit)

        # Act
        order = await service.mark_paid(self.order.id)

        # Assert
        self.assertEqual(PaymentStatus.PAID, order.payment_status)
        self.assertEqual(
            PaymentStatus.PAID, (await self.orders.get(self.order.id)).payment_status
        )

    async def test_without_collaborators(self):
        service = OrderService(self.orders)

        order = await service.mark_paid(self.order.id)

        self.assertEqual(OrderStatus.PROCESSING, order.status)


if __name__ == "__main__":
    unittest.main()
