"""Unit tests for the counter service."""

import asyncio
import re
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from src.clients.dynamodb import DynamoDBClient
from src.exceptions import ThrottledError
from src.services.counter import PRODUCT_ID, CounterService
from tests.fakes import FakeDynamoDBClient


class TestCounterService(unittest.IsolatedAsyncioTestCase):
    """Test cases for CounterService."""

    def setUp(self):
        """Set up test fixtures."""
        self.fake_client = FakeDynamoDBClient()
        self.counters = CounterService(self.fake_client)

    async def test_first_value_is_one(self):
        self.assertEqual(1, await self.counters.next(PRODUCT_ID))
        self.assertEqual(2, await self.counters.next(PRODUCT_ID))

    async def test_concurrent_calls_return_distinct_values(self):
        """N concurrent increments yield exactly N distinct values."""
        # Act
        values = await asyncio.gather(*(self.counters.next("X") for _ in range(50)))

        # Assert
        self.assertEqual(50, len(set(values)))
        self.assertEqual(set(range(1, 51)), set(values))

    async def test_counters_are_independent(self):
        await self.counters.next("A")
        await self.counters.next("A")

        self.assertEqual(1, await self.counters.next("B"))

    async def test_order_number_format(self):
        """Order numbers use the UTC day and a per-day sequence."""
        # Arrange
        moment = datetime(2024, 7, 3, 10, 0, tzinfo=timezone.utc)

        # Act
        first = await self.counters.next_order_number(moment)
        second = await self.counters.next_order_number(moment)
        next_day = await self.counters.next_order_number(datetime(2024, 7, 4, tzinfo=timezone.utc))

        # Assert
        self.assertEqual("ORD-20240703-0001", first)
        self.assertEqual("ORD-20240703-0002", second)
        self.assertEqual("ORD-20240704-0001", next_day)

    async def test_order_number_defaults_to_today(self):
        number = await self.counters.next_order_number()

        self.assertRegex(number, re.compile(r"^ORD-\d{8}-\d{4}$"))

    async def test_throttling_propagates(self):
        """A throttled increment is surfaced, never replaced by a local value."""
        # Arrange
        client = MagicMock(spec=DynamoDBClient)
        client.increment_counter = AsyncMock(side_effect=ThrottledError())
        counters = CounterService(client)

        # Act & Assert
        with self.assertRaises(ThrottledError):
            await counters.next(PRODUCT_ID)
        client.increment_counter.assert_awaited_once_with(PRODUCT_ID)


if __name__ == "__main__":
    unittest.main()
