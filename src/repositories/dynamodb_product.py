"""DynamoDB implementation of the product repository."""

from typing import Any, List, Optional, Tuple

from ..models.domain.enums import ProductStatus
from ..models.domain.product import Product, ProductCategoryLink
from ..models.storage.keys import ChildTag, EntityPrefix, Index, child_prefix, partition_key, primary_key
from ..models.storage.operations import QuerySpec
from ..models.storage.product_record import ProductCategoryRecord, ProductRecord
from ..services.counter import PRODUCT_ID
from ..utils.pagination import Page
from .dynamodb_base import DynamoDBRepository


class DynamoDBProductRepository(DynamoDBRepository[Product]):
    """Products: ``PRODUCT#<id>/METADATA`` with slug, status and character indexes.

    Variants, images and category links live in the same partition and are
    read through their own repositories or :meth:`get_categories`.
    """

    record = ProductRecord
    entity_name = "Product"
    counter_name = PRODUCT_ID
    unique_field = "slug"

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        return primary_key(EntityPrefix.PRODUCT, entity_id)

    def unique_partition(self, value: Any) -> str:
        return ProductRecord.slug_partition(value)

    async def find_by_slug(self, slug: str, include_deleted: bool = False) -> Optional[Product]:
        """Product owning the slug (eventually consistent)."""
        return await self.find_by_unique_field(slug, include_deleted)

    async def list(
        self,
        status: ProductStatus = ProductStatus.PUBLISHED,
        search: Optional[str] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[Product]:
        """Products of a status ordered by title.

        ``search`` is a case-insensitive substring match on title and short
        description, applied to the fetched page only.
        """
        predicate = None
        if search:
            needle = search.strip().lower()

            def predicate(product: Product) -> bool:
                haystack = f"{product.title} {product.short_description or ''}".lower()
                return needle in haystack

        return await self._list(
            QuerySpec(pk_value=ProductRecord.status_partition(status.value), index=Index.GSI2),
            cursor=cursor,
            page_size=page_size,
            predicate=predicate,
        )

    async def find_by_character(
        self,
        character_id: int,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[Product]:
        """Products associated with a character, newest first."""
        return await self._list(
            QuerySpec(
                pk_value=ProductRecord.character_partition(character_id),
                index=Index.GSI3,
                scan_forward=False,
            ),
            cursor=cursor,
            page_size=page_size,
        )

    async def get_categories(self, product_id: int) -> List[int]:
        """Ids of the categories the product is linked to."""
        items = await self.dynamodb_client.query_all(
            QuerySpec(
                pk_value=partition_key(EntityPrefix.PRODUCT, product_id),
                sk_prefix=child_prefix(ChildTag.CATEGORY),
                consistent_read=True,
            )
        )
        links: List[ProductCategoryLink] = [
            ProductCategoryRecord.from_item(item)
            for item in items
            if ProductCategoryRecord.is_type(item)
        ]
        return sorted(link.category_id for link in links)
