"""Storage mappings for the product aggregate."""

from typing import Dict, Tuple

from ..domain.product import Product, ProductCategoryLink, ProductImage, ProductVariant
from ...utils.timestamps import to_iso
from .base_record import BaseRecord
from .keys import (
    POSITION_WIDTH,
    ChildTag,
    EntityPrefix,
    EntityType,
    Index,
    child_key,
    index_key,
    pad,
    primary_key,
)


class ProductRecord(BaseRecord[Product]):
    """Product header row.

    GSI1: slug lookup. GSI2: products by status, ordered by title.
    GSI3: products by character (sparse).
    """

    entity_type = EntityType.PRODUCT
    model = Product

    @staticmethod
    def slug_partition(slug: str) -> str:
        return f"PRODUCT_SLUG#{slug}"

    @staticmethod
    def status_partition(status: str) -> str:
        return f"PRODUCT_STATUS#{status}"

    @staticmethod
    def character_partition(character_id: int) -> str:
        return f"CHARACTER#{character_id}"

    @classmethod
    def key(cls, entity: Product) -> Tuple[str, str]:
        return primary_key(EntityPrefix.PRODUCT, entity.id)

    @classmethod
    def index_attributes(cls, entity: Product) -> Dict[str, str]:
        created = to_iso(entity.created_at)
        attributes = {
            **index_key(Index.GSI1, cls.slug_partition(entity.slug), created),
            **index_key(
                Index.GSI2,
                cls.status_partition(entity.status.value),
                f"{entity.title.lower()}#{pad(entity.id)}",
            ),
        }
        if entity.character_id is not None:
            attributes.update(
                index_key(Index.GSI3, cls.character_partition(entity.character_id), created)
            )
        return attributes


class ProductVariantRecord(BaseRecord[ProductVariant]):
    """Variant row under its product. GSI1: SKU lookup."""

    entity_type = EntityType.PRODUCT_VARIANT
    model = ProductVariant

    @staticmethod
    def sku_partition(sku: str) -> str:
        return f"VARIANT_SKU#{sku}"

    @staticmethod
    def key_for(product_id: int, variant_id: int) -> Tuple[str, str]:
        return child_key(EntityPrefix.PRODUCT, product_id, ChildTag.VARIANT, pad(variant_id))

    @classmethod
    def key(cls, entity: ProductVariant) -> Tuple[str, str]:
        return cls.key_for(entity.product_id, entity.id)

    @classmethod
    def index_attributes(cls, entity: ProductVariant) -> Dict[str, str]:
        return index_key(Index.GSI1, cls.sku_partition(entity.sku), str(entity.product_id))


class ProductImageRecord(BaseRecord[ProductImage]):
    """Image row under its product, keyed by zero-padded position."""

    entity_type = EntityType.PRODUCT_IMAGE
    model = ProductImage

    @staticmethod
    def key_for(product_id: int, position: int) -> Tuple[str, str]:
        return child_key(
            EntityPrefix.PRODUCT, product_id, ChildTag.IMAGE, pad(position, POSITION_WIDTH)
        )

    @classmethod
    def key(cls, entity: ProductImage) -> Tuple[str, str]:
        return cls.key_for(entity.product_id, entity.position)


class CategoryProductRecord(BaseRecord[ProductCategoryLink]):
    """Link row in the category partition: CATEGORY#<cid> / PRODUCT#<pid>."""

    entity_type = EntityType.PRODUCT_CATEGORY
    model = ProductCategoryLink

    @staticmethod
    def key_for(category_id: int, product_id: int) -> Tuple[str, str]:
        return child_key(EntityPrefix.CATEGORY, category_id, ChildTag.PRODUCT, product_id)

    @classmethod
    def key(cls, entity: ProductCategoryLink) -> Tuple[str, str]:
        return cls.key_for(entity.category_id, entity.product_id)


class ProductCategoryRecord(BaseRecord[ProductCategoryLink]):
    """Reciprocal link row in the product partition: PRODUCT#<pid> / CATEGORY#<cid>."""

    entity_type = EntityType.PRODUCT_CATEGORY
    model = ProductCategoryLink

    @staticmethod
    def key_for(product_id: int, category_id: int) -> Tuple[str, str]:
        return child_key(EntityPrefix.PRODUCT, product_id, ChildTag.CATEGORY, category_id)

    @classmethod
    def key(cls, entity: ProductCategoryLink) -> Tuple[str, str]:
        return cls.key_for(entity.product_id, entity.category_id)
