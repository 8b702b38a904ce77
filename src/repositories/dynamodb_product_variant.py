"""DynamoDB implementation of the product variant repository."""

from typing import Any, List, Optional, Tuple

from aws_lambda_powertools.logging import Logger

from ..exceptions import ConditionFailedError, EntityValidationError, StockConflictError
from ..models.domain.product import ProductVariant
from ..models.storage.keys import ChildTag, EntityPrefix, child_prefix, partition_key
from ..models.storage.operations import Guard, RowState, UpdateSpec
from ..models.storage.product_record import ProductVariantRecord
from ..services.counter import VARIANT_ID
from ..utils.timestamps import to_iso, utc_now
from .dynamodb_base import DynamoDBRepository

logger = Logger()


def stock_decrement(product_id: int, variant_id: int, quantity: int) -> UpdateSpec:
    """Atomic ``stock - quantity`` on an active variant, guarded by ``stock >= quantity``.

    Shared by the single-variant operation and the order transaction so both
    enforce the same non-negative stock condition.
    """
    pk, sk = ProductVariantRecord.key_for(product_id, variant_id)
    return UpdateSpec(
        pk=pk,
        sk=sk,
        set_fields={"updated_at": to_iso(utc_now())},
        increments={"stock": -quantity},
        state=RowState.ACTIVE,
        guards=[Guard(attribute="stock", op=">=", value=quantity)],
    )


class DynamoDBProductVariantRepository(DynamoDBRepository[ProductVariant]):
    """Variants: ``PRODUCT#<pid>/VARIANT#<id:010>``, SKU index on GSI1.

    Ids are ``(product_id, variant_id)`` tuples. Stock only changes through
    the atomic stock operations, never through :meth:`update`.
    """

    record = ProductVariantRecord
    entity_name = "ProductVariant"
    counter_name = VARIANT_ID
    unique_field = "sku"
    immutable_fields = frozenset({"id", "product_id", "created_at", "deleted_at", "stock"})

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        product_id, variant_id = entity_id
        return ProductVariantRecord.key_for(product_id, variant_id)

    def unique_partition(self, value: Any) -> str:
        return ProductVariantRecord.sku_partition(value)

    async def find_by_sku(self, sku: str) -> Optional[ProductVariant]:
        return await self.find_by_unique_field(sku)

    async def find_children(
        self, product_id: int, include_deleted: bool = False
    ) -> List[ProductVariant]:
        """All variants of a product in id order."""
        return await self._query_children(
            partition_key(EntityPrefix.PRODUCT, product_id),
            child_prefix(ChildTag.VARIANT),
            include_deleted,
        )

    async def set_stock(self, product_id: int, variant_id: int, stock: int) -> ProductVariant:
        """Overwrite the stock level (inventory count, manual correction)."""
        if stock < 0:
            raise EntityValidationError("Stock cannot be negative", details={"stock": stock})
        pk, sk = self.key_for((product_id, variant_id))
        now = to_iso(utc_now())
        try:
            item = await self.dynamodb_client.update_item(
                UpdateSpec(
                    pk=pk,
                    sk=sk,
                    set_fields={"stock": stock, "updated_at": now},
                    state=RowState.ACTIVE,
                )
            )
        except ConditionFailedError:
            raise self._not_found((product_id, variant_id))
        return self._decode(item)

    async def increment_stock(
        self, product_id: int, variant_id: int, quantity: int
    ) -> ProductVariant:
        """Atomically add units (restock, returned order)."""
        if quantity <= 0:
            raise EntityValidationError(
                "Quantity must be positive", details={"quantity": quantity}
            )
        pk, sk = self.key_for((product_id, variant_id))
        try:
            item = await self.dynamodb_client.update_item(
                UpdateSpec(
                    pk=pk,
                    sk=sk,
                    set_fields={"updated_at": to_iso(utc_now())},
                    increments={"stock": quantity},
                    state=RowState.ACTIVE,
                )
            )
        except ConditionFailedError:
            raise self._not_found((product_id, variant_id))
        return self._decode(item)

    async def decrement_stock(
        self, product_id: int, variant_id: int, quantity: int
    ) -> ProductVariant:
        """Atomically remove units, never going below zero.

        Raises:
            EntityNotFoundError: If the variant is absent or soft-deleted
            StockConflictError: If fewer than ``quantity`` units are in stock
        """
        if quantity <= 0:
            raise EntityValidationError(
                "Quantity must be positive", details={"quantity": quantity}
            )
        try:
            item = await self.dynamodb_client.update_item(
                stock_decrement(product_id, variant_id, quantity)
            )
        except ConditionFailedError as e:
            if not self._visible(e.existing_item):
                raise self._not_found((product_id, variant_id))
            logger.warning(
                "Insufficient stock",
                extra={
                    "product_id": product_id,
                    "variant_id": variant_id,
                    "requested": quantity,
                    "available": (e.existing_item or {}).get("stock"),
                },
            )
            raise StockConflictError([variant_id])
        return self._decode(item)
