"""Unit tests for encoding entities into items and back."""

import unittest
from datetime import datetime, timezone
from decimal import Decimal

from src.exceptions import DecodeError
from src.models.domain.enums import ProductStatus
from src.models.domain.product import Product
from src.models.storage.base_record import from_storage, to_storage
from src.models.storage.category_record import CategoryRecord
from src.models.storage.product_record import ProductRecord, ProductVariantRecord


class TestCodec(unittest.TestCase):
    """Test cases for BaseRecord and its subclasses."""

    def setUp(self):
        """Set up test fixtures."""
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.product = Product(
            id=3,
            slug="dragon-mug",
            title="Dragon Mug",
            base_price=Decimal("12.50"),
            status=ProductStatus.PUBLISHED,
            character_id=9,
            created_at=self.now,
            updated_at=self.now,
        )

    def test_to_item_populates_keys_and_indexes(self):
        """Encoding derives PK/SK, GSI projections and the type discriminator."""
        # Act
        item = ProductRecord.to_item(self.product)

        # Assert
        self.assertEqual("PRODUCT#3", item["PK"])
        self.assertEqual("METADATA", item["SK"])
        self.assertEqual("Product", item["entity_type"])
        self.assertEqual("PRODUCT_SLUG#dragon-mug", item["GSI1PK"])
        self.assertEqual("PRODUCT_STATUS#published", item["GSI2PK"])
        self.assertEqual("dragon mug#0000000003", item["GSI2SK"])
        self.assertEqual("CHARACTER#9", item["GSI3PK"])
        self.assertEqual("published", item["status"])
        self.assertEqual(Decimal("12.50"), item["base_price"])
        self.assertEqual("2024-05-01T12:00:00.000+00:00", item["created_at"])
        self.assertNotIn("deleted_at", item)
        self.assertNotIn("short_description", item)

    def test_sparse_index_omitted(self):
        """Without a character, no GSI3 attributes are written."""
        product = self.product.model_copy(update={"character_id": None})

        item = ProductRecord.to_item(product)

        self.assertNotIn("GSI3PK", item)
        self.assertNotIn("GSI3SK", item)

    def test_from_item_is_inverse_of_to_item(self):
        """Decoding strips structural attributes and restores the entity."""
        item = ProductRecord.to_item(self.product)
        # The store returns every number as Decimal
        item["id"] = Decimal("3")

        decoded = ProductRecord.from_item(item)

        self.assertEqual(self.product, decoded)
        self.assertIsInstance(decoded.id, int)

    def test_from_item_rejects_missing_required_field(self):
        """A stored item without a required field fails loudly."""
        item = ProductRecord.to_item(self.product)
        del item["slug"]

        with self.assertRaises(DecodeError) as context:
            ProductRecord.from_item(item)

        self.assertEqual("STORAGE_DECODE_ERROR", context.exception.code)
        self.assertEqual("PRODUCT#3", context.exception.details["pk"])

    def test_from_item_rejects_other_entity_type(self):
        """An item of another type is never decoded as this one."""
        item = ProductRecord.to_item(self.product)

        with self.assertRaises(DecodeError):
            CategoryRecord.from_item(item)
        self.assertFalse(ProductVariantRecord.is_type(item))

    def test_storage_value_conversion(self):
        """Floats become Decimals on the way in; integral Decimals become ints on the way out."""
        self.assertEqual(Decimal("1.5"), to_storage(1.5))
        self.assertEqual({"a": [1, "x"]}, to_storage({"a": (1, "x"), "b": None}))
        self.assertEqual(7, from_storage(Decimal("7")))
        self.assertEqual(Decimal("7.25"), from_storage(Decimal("7.25")))
        self.assertEqual({"n": [2]}, from_storage({"n": [Decimal("2")]}))


if __name__ == "__main__":
    unittest.main()
