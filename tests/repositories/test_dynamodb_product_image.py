"""Unit tests for the DynamoDB Product Image Repository."""

import unittest

from src.config.app import AppConfig
from src.exceptions import ConflictError, EntityNotFoundError, EntityValidationError
from src.models.api.requests import ImageCreate, ImageUpdate
from src.repositories.dynamodb_product_image import DynamoDBProductImageRepository
from tests.fakes import FakeDynamoDBClient

PRODUCT_ID = 7


class TestDynamoDBProductImageRepository(unittest.IsolatedAsyncioTestCase):
    """Test cases for the DynamoDB Product Image Repository."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = AppConfig(cdn_url="https://cdn.example.com/")
        self.fake_client = FakeDynamoDBClient(self.config)
        self.repo = DynamoDBProductImageRepository(self.fake_client, self.config)

    async def add(self, name: str, position: int = None):
        return await self.repo.create(
            ImageCreate(product_id=PRODUCT_ID, url=f"products/{name}.jpg", position=position)
        )

    async def test_images_are_appended(self):
        """Images without a position go last."""
        # Act
        first = await self.add("front")
        second = await self.add("back")

        # Assert
        self.assertEqual((0, 1), (first.position, second.position))
        images = await self.repo.find_children(PRODUCT_ID)
        self.assertEqual([first.id, second.id], [image.id for image in images])

    async def test_reads_return_cdn_urls(self):
        """Relative keys are stored; absolute URLs are returned."""
        # Act
        image = await self.add("front")

        # Assert
        self.assertEqual("https://cdn.example.com/products/front.jpg", image.url)
        row = self.fake_client.row(f"PRODUCT#{PRODUCT_ID}", "IMAGE#0000000000")
        self.assertEqual("products/front.jpg", row["url"])

    async def test_absolute_urls_kept(self):
        image = await self.repo.create(
            ImageCreate(product_id=PRODUCT_ID, url="https://elsewhere.org/a.png")
        )

        self.assertEqual("https://elsewhere.org/a.png", image.url)

    async def test_taken_position_conflicts(self):
        await self.add("front", position=3)

        with self.assertRaises(ConflictError):
            await self.add("back", position=3)

    async def test_update_alt_text_keeps_row(self):
        image = await self.add("front")

        updated = await self.repo.update_image(
            PRODUCT_ID, image.id, ImageUpdate(alt_text="Front view")
        )

        self.assertEqual("Front view", updated.alt_text)
        row = self.fake_client.row(f"PRODUCT#{PRODUCT_ID}", "IMAGE#0000000000")
        self.assertEqual("Front view", row["alt_text"])
        self.assertEqual("products/front.jpg", row["url"])

    async def test_update_position_moves_row(self):
        image = await self.add("front")

        moved = await self.repo.update_image(PRODUCT_ID, image.id, ImageUpdate(position=5))

        self.assertEqual(5, moved.position)
        self.assertIsNone(self.fake_client.row(f"PRODUCT#{PRODUCT_ID}", "IMAGE#0000000000"))
        self.assertIsNotNone(self.fake_client.row(f"PRODUCT#{PRODUCT_ID}", "IMAGE#0000000005"))

    async def test_reorder(self):
        """Reordering swaps rows without losing any image."""
        # Arrange
        front = await self.add("front")
        back = await self.add("back")
        side = await self.add("side")

        # Act
        result = await self.repo.reorder(PRODUCT_ID, [side.id, front.id, back.id])

        # Assert
        self.assertEqual([side.id, front.id, back.id], [image.id for image in result])
        images = await self.repo.find_children(PRODUCT_ID)
        self.assertEqual([side.id, front.id, back.id], [image.id for image in images])
        self.assertEqual([0, 1, 2], [image.position for image in images])
        self.assertEqual("https://cdn.example.com/products/side.jpg", images[0].url)

    async def test_reorder_must_list_every_image(self):
        front = await self.add("front")
        await self.add("back")

        with self.assertRaises(EntityValidationError) as context:
            await self.repo.reorder(PRODUCT_ID, [front.id])

        self.assertEqual("INVALID_IMAGE_ORDER", context.exception.code)

    async def test_delete_image(self):
        front = await self.add("front")
        back = await self.add("back")

        await self.repo.delete_image(PRODUCT_ID, front.id)

        self.assertEqual([back.id], [image.id for image in await self.repo.find_children(PRODUCT_ID)])
        with self.assertRaises(EntityNotFoundError):
            await self.repo.delete_image(PRODUCT_ID, front.id)

    async def test_delete_all(self):
        await self.add("front")
        await self.add("back")

        removed = await self.repo.delete_all(PRODUCT_ID)

        self.assertEqual(2, removed)
        self.assertEqual([], await self.repo.find_children(PRODUCT_ID))


if __name__ == "__main__":
    unittest.main()
