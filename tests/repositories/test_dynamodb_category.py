"""Unit tests for the DynamoDB Category Repository."""

import unittest
from decimal import Decimal

from src.config.app import AppConfig
from src.exceptions import (
    CircularReferenceError,
    ConflictError,
    EntityNotFoundError,
    EntityValidationError,
)
from src.models.api.requests import CategoryCreate, CategoryUpdate, ProductCreate
from src.models.storage.keys import counter_key
from src.repositories.dynamodb_category import DynamoDBCategoryRepository
from src.repositories.dynamodb_product import DynamoDBProductRepository
from src.services.counter import CATEGORY_ID
from tests.fakes import FakeDynamoDBClient


class TestDynamoDBCategoryRepository(unittest.IsolatedAsyncioTestCase):
    """Test cases for the DynamoDB Category Repository."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = AppConfig()
        self.fake_client = FakeDynamoDBClient(self.config)
        self.repo = DynamoDBCategoryRepository(self.fake_client, self.config)
        self.products = DynamoDBProductRepository(self.fake_client, self.config)

    async def create(self, name: str, parent_id: int = None):
        return await self.repo.create(
            CategoryCreate(name=name, slug=name.lower().replace(" ", "-"), parent_id=parent_id)
        )

    async def test_tree_with_existing_counter(self):
        """Ids continue the counter; children and cycles follow the parent links."""
        # Arrange: three categories were created before
        pk, sk = counter_key(CATEGORY_ID)
        self.fake_client.rows[(pk, sk)] = {"PK": pk, "SK": sk, "current_value": 3}

        # Act
        merchandise = await self.create("Merchandise")
        stickers = await self.create("Stickers", parent_id=merchandise.id)

        # Assert
        self.assertEqual((4, 5), (merchandise.id, stickers.id))
        children = await self.repo.find_children(4)
        self.assertEqual(["Stickers"], [child.name for child in children])
        self.assertEqual([merchandise.id], [root.id for root in await self.repo.find_roots()])
        with self.assertRaises(CircularReferenceError):
            await self.repo.update(4, CategoryUpdate(parent_id=5))

        # Act & Assert: membership of a product in Stickers
        product = await self.products.create(
            ProductCreate(slug="dragon-sticker", title="Dragon Sticker", base_price=Decimal("3"))
        )
        await self.repo.add_product(5, product.id)
        self.assertEqual([product.id], await self.repo.get_products(5))
        await self.repo.remove_product(5, product.id)
        self.assertEqual([], await self.repo.get_products(5))
        self.assertIsNotNone(await self.repo.find_by_id(5))

    async def test_self_parent_is_circular(self):
        category = await self.create("Prints")

        with self.assertRaises(CircularReferenceError):
            await self.repo.update(category.id, CategoryUpdate(parent_id=category.id))

    async def test_unknown_parent(self):
        with self.assertRaises(EntityValidationError) as context:
            await self.create("Orphans", parent_id=99)

        self.assertEqual("INVALID_PARENT", context.exception.code)

    async def test_move_updates_children_index(self):
        """Changing the parent moves the category between child lists."""
        # Arrange
        apparel = await self.create("Apparel")
        home = await self.create("Home")
        mugs = await self.create("Mugs", parent_id=apparel.id)

        # Act
        await self.repo.update(mugs.id, CategoryUpdate(parent_id=home.id))

        # Assert
        self.assertEqual([], await self.repo.find_children(apparel.id))
        self.assertEqual([mugs.id], [c.id for c in await self.repo.find_children(home.id)])

    async def test_children_ordered_by_name(self):
        parent = await self.create("Art")
        await self.create("Zines", parent_id=parent.id)
        await self.create("Posters", parent_id=parent.id)
        await self.create("cards", parent_id=parent.id)

        children = await self.repo.find_children(parent.id)

        self.assertEqual(["cards", "Posters", "Zines"], [child.name for child in children])

    async def test_ancestors_and_descendants(self):
        root = await self.create("Root")
        middle = await self.create("Middle", parent_id=root.id)
        leaf = await self.create("Leaf", parent_id=middle.id)
        sibling = await self.create("Sibling", parent_id=root.id)

        ancestors = await self.repo.get_ancestors(leaf.id)
        descendants = await self.repo.get_descendants(root.id)

        self.assertEqual([middle.id, root.id], [a.id for a in ancestors])
        self.assertEqual({middle.id, sibling.id, leaf.id}, {d.id for d in descendants})
        self.assertEqual(leaf.id, descendants[-1].id)

    async def test_corrupted_cycle_detected(self):
        """A cycle already present in storage is reported, not followed forever."""
        # Arrange
        first = await self.create("First")
        second = await self.create("Second", parent_id=first.id)
        self.fake_client.rows[self.repo.key_for(first.id)]["parent_id"] = second.id

        # Act & Assert
        with self.assertRaises(CircularReferenceError):
            await self.repo.get_ancestors(second.id)

    async def test_list_paginates_roots(self):
        for name in ("Books", "Art", "Clothes"):
            await self.create(name)

        first = await self.repo.list(page_size=2)
        second = await self.repo.list(cursor=first.next_cursor, page_size=2)

        self.assertEqual(["Art", "Books"], [c.name for c in first.items])
        self.assertEqual(["Clothes"], [c.name for c in second.items])

    async def test_find_by_slug(self):
        category = await self.create("Wall Art")

        self.assertEqual(category.id, (await self.repo.find_by_slug("wall-art")).id)

    async def test_product_links(self):
        """Linking writes both sides; unlinking removes both."""
        # Arrange
        category = await self.create("Mugs")
        product = await self.products.create(
            ProductCreate(slug="dragon-mug", title="Dragon Mug", base_price=Decimal("12"))
        )

        # Act
        link = await self.repo.add_product(category.id, product.id)

        # Assert
        self.assertEqual((product.id, category.id), (link.product_id, link.category_id))
        self.assertEqual([product.id], await self.repo.get_products(category.id))
        self.assertEqual([category.id], await self.products.get_categories(product.id))

        # Act & Assert: removal
        await self.repo.remove_product(category.id, product.id)
        self.assertEqual([], await self.repo.get_products(category.id))
        self.assertEqual([], await self.products.get_categories(product.id))

    async def test_link_twice_conflicts(self):
        category = await self.create("Mugs")
        product = await self.products.create(
            ProductCreate(slug="dragon-mug", title="Dragon Mug", base_price=Decimal("12"))
        )
        await self.repo.add_product(category.id, product.id)

        with self.assertRaises(ConflictError) as context:
            await self.repo.add_product(category.id, product.id)

        self.assertEqual("ALREADY_LINKED", context.exception.code)

    async def test_link_requires_live_rows(self):
        category = await self.create("Mugs")
        product = await self.products.create(
            ProductCreate(slug="dragon-mug", title="Dragon Mug", base_price=Decimal("12"))
        )
        await self.products.soft_delete(product.id)

        with self.assertRaises(EntityNotFoundError) as context:
            await self.repo.add_product(category.id, product.id)
        self.assertEqual("Product", context.exception.entity_type)

        with self.assertRaises(EntityNotFoundError) as context:
            await self.repo.add_product(404, product.id)
        self.assertEqual("Category", context.exception.entity_type)
        self.assertEqual([], self.fake_client.rows_with_prefix("CATEGORY#404"))

    async def test_remove_missing_link(self):
        with self.assertRaises(EntityNotFoundError):
            await self.repo.remove_product(1, 2)


if __name__ == "__main__":
    unittest.main()
