"""Unit tests for the DynamoDB Audit Log Repository."""

import unittest
from datetime import datetime, timedelta, timezone

from src.config.app import AppConfig
from src.exceptions import EntityValidationError
from src.models.api.requests import AuditLogCreate
from src.repositories.dynamodb_audit_log import DynamoDBAuditLogRepository
from tests.fakes import FakeDynamoDBClient


class TestDynamoDBAuditLogRepository(unittest.IsolatedAsyncioTestCase):
    """Test cases for the DynamoDB Audit Log Repository."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = AppConfig()
        self.fake_client = FakeDynamoDBClient(self.config)
        self.repo = DynamoDBAuditLogRepository(self.fake_client, self.config)

    async def entry_at(self, moment: datetime, action: str = "product.updated", **extra):
        return await self.repo.create(
            {"action": action, "resource_type": "product", "created_at": moment, **extra}
        )

    async def test_record_assigns_dated_id(self):
        # Act
        entry = await self.repo.record(
            AuditLogCreate(action="product.created", resource_type="product", resource_id=3)
        )

        # Assert
        self.assertRegex(entry.id, r"^\d{4}-\d{2}-\d{2}#[0-9a-f-]{36}$")
        self.assertEqual(entry.created_at.date().isoformat(), entry.id.split("#")[0])
        row = self.fake_client.row(f"AUDIT#{entry.id}", "METADATA")
        self.assertEqual("AUDIT_ENTITY#product#3", row["GSI1PK"])
        self.assertEqual("AUDIT_SYSTEM", row["GSI2PK"])
        self.assertIn("ttl", row)

    async def test_entries_are_append_only(self):
        entry = await self.repo.record(AuditLogCreate(action="x", resource_type="product"))

        with self.assertRaises(EntityValidationError) as context:
            await self.repo.update(entry.id, {"action": "y"})
        self.assertEqual("APPEND_ONLY", context.exception.code)

        with self.assertRaises(EntityValidationError):
            await self.repo.hard_delete(entry.id)
        with self.assertRaises(EntityValidationError):
            await self.repo.soft_delete(entry.id)

    async def test_find_by_resource_newest_first(self):
        """Entries about a resource come back newest first."""
        # Arrange
        start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        oldest = await self.entry_at(start, resource_id=9)
        newest = await self.entry_at(start + timedelta(hours=2), resource_id=9)
        middle = await self.entry_at(start + timedelta(hours=1), resource_id=9)
        await self.entry_at(start, resource_id=10)

        # Act
        page = await self.repo.find_by_resource("product", 9)

        # Assert
        self.assertEqual([newest.id, middle.id, oldest.id], [e.id for e in page.items])

    async def test_find_by_user_and_action(self):
        start = datetime(2024, 5, 1, tzinfo=timezone.utc)
        mine = await self.entry_at(start, user_id=5, action="order.cancelled")
        await self.entry_at(start + timedelta(minutes=1), action="order.cancelled")
        system = await self.entry_at(start + timedelta(minutes=2), action="product.created")

        by_user = await self.repo.find_by_user(5)
        by_system = await self.repo.find_by_user(None)
        by_action = await self.repo.find_by_action("order.cancelled")

        self.assertEqual([mine.id], [e.id for e in by_user.items])
        self.assertEqual(system.id, by_system.items[0].id)
        self.assertEqual(2, by_action.count)
        self.assertEqual(mine.id, by_action.items[-1].id)


if __name__ == "__main__":
    unittest.main()
