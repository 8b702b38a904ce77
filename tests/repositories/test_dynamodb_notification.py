"""Unit tests for the DynamoDB Notification Repository."""

import unittest

from src.config.app import AppConfig
from src.exceptions import EntityNotFoundError, EntityValidationError
from src.models.api.requests import NotificationCreate
from src.models.domain.enums import NotificationType
from src.repositories.dynamodb_notification import DynamoDBNotificationRepository
from src.utils.timestamps import utc_now
from tests.fakes import FakeDynamoDBClient


class TestDynamoDBNotificationRepository(unittest.IsolatedAsyncioTestCase):
    """Test cases for the DynamoDB Notification Repository."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = AppConfig(notification_ttl_days=90)
        self.fake_client = FakeDynamoDBClient(self.config)
        self.repo = DynamoDBNotificationRepository(self.fake_client, self.config)

    async def notify(self, title: str, notification_type=NotificationType.INFO):
        return await self.repo.create(
            NotificationCreate(type=notification_type, title=title, message=f"{title} happened")
        )

    async def test_create_sets_ttl(self):
        notification = await self.notify("Hello")

        ninety_days = 90 * 24 * 3600
        self.assertAlmostEqual(utc_now().timestamp() + ninety_days, notification.ttl, delta=60)
        self.assertFalse(notification.is_read)

    async def test_mark_as_read_moves_index_entry(self):
        """A read notification leaves the unread list and joins the read list."""
        # Arrange
        first = await self.notify("First")
        second = await self.notify("Second")

        # Act
        read = await self.repo.mark_as_read(first.id)

        # Assert
        self.assertTrue(read.is_read)
        self.assertIsNotNone(read.read_at)
        self.assertEqual([second.id], [n.id for n in (await self.repo.list_unread()).items])
        self.assertEqual([first.id], [n.id for n in (await self.repo.list(is_read=True)).items])
        self.assertEqual(1, await self.repo.unread_count())

    async def test_mark_as_read_is_idempotent(self):
        notification = await self.notify("Once")
        first = await self.repo.mark_as_read(notification.id)

        second = await self.repo.mark_as_read(notification.id)

        self.assertEqual(first.read_at, second.read_at)

    async def test_mark_missing(self):
        with self.assertRaises(EntityNotFoundError):
            await self.repo.mark_as_read(404)

    async def test_mark_all_as_read(self):
        for title in ("a", "b", "c"):
            await self.notify(title)

        changed = await self.repo.mark_all_as_read()

        self.assertEqual(3, changed)
        self.assertEqual(0, await self.repo.unread_count())

    async def test_expired_notifications_are_hidden(self):
        notification = await self.notify("Old")
        self.fake_client.rows[self.repo.key_for(notification.id)]["ttl"] = 1

        self.assertEqual(0, await self.repo.unread_count())
        self.assertIsNone(await self.repo.find_by_id(notification.id))
        self.assertEqual(0, await self.repo.mark_all_as_read())

    async def test_list_by_type(self):
        order = await self.notify("Order", NotificationType.ORDER)
        await self.notify("Info")

        page = await self.repo.list_by_type(NotificationType.ORDER)

        self.assertEqual([order.id], [n.id for n in page.items])

    async def test_type_is_immutable(self):
        notification = await self.notify("Info")

        with self.assertRaises(EntityValidationError):
            await self.repo.update(notification.id, {"type": NotificationType.ERROR})


if __name__ == "__main__":
    unittest.main()
