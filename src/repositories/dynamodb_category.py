"""DynamoDB implementation of the category repository."""

from typing import Any, Dict, List, Optional, Tuple

from aws_lambda_powertools.logging import Logger

from ..exceptions import (
    CircularReferenceError,
    ConflictError,
    EntityNotFoundError,
    EntityValidationError,
    TransactionAbortedError,
)
from ..models.domain.category import Category
from ..models.domain.product import ProductCategoryLink
from ..models.storage.keys import (
    ChildTag,
    EntityPrefix,
    Index,
    child_prefix,
    partition_key,
    primary_key,
)
from ..models.storage.operations import (
    QuerySpec,
    RowState,
    TransactConditionCheck,
    TransactDelete,
    TransactPut,
)
from ..models.storage.product_record import CategoryProductRecord, ProductCategoryRecord
from ..models.storage.category_record import CategoryRecord
from ..services.counter import CATEGORY_ID
from ..utils.pagination import Page
from ..utils.timestamps import utc_now
from .dynamodb_base import DynamoDBRepository

logger = Logger()

# Guard against corrupted parent chains
MAX_DEPTH = 32


class DynamoDBCategoryRepository(DynamoDBRepository[Category]):
    """Categories: ``CATEGORY#<id>/METADATA``.

    GSI1 holds the slug, GSI2 the parent (``ROOT`` for top-level categories),
    so children of a node are one index query. Product membership is a pair
    of link rows, ``CATEGORY#<cid>/PRODUCT#<pid>`` and the reciprocal
    ``PRODUCT#<pid>/CATEGORY#<cid>``, written and removed together.
    """

    record = CategoryRecord
    entity_name = "Category"
    counter_name = CATEGORY_ID
    unique_field = "slug"

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        return primary_key(EntityPrefix.CATEGORY, entity_id)

    def unique_partition(self, value: Any) -> str:
        return CategoryRecord.slug_partition(value)

    async def find_by_slug(self, slug: str) -> Optional[Category]:
        return await self.find_by_unique_field(slug)

    async def _before_create(self, values: Dict[str, Any]) -> None:
        parent_id = values.get("parent_id")
        if parent_id is not None and await self.find_by_id(parent_id) is None:
            raise EntityValidationError(
                f"Parent category {parent_id} does not exist",
                code="INVALID_PARENT",
                details={"parent_id": parent_id},
            )

    async def _before_update(self, current: Category, updated: Category) -> None:
        if updated.parent_id is None or updated.parent_id == current.parent_id:
            return
        if updated.parent_id == current.id:
            raise CircularReferenceError(current.id, updated.parent_id)
        if await self.find_by_id(updated.parent_id) is None:
            raise EntityValidationError(
                f"Parent category {updated.parent_id} does not exist",
                code="INVALID_PARENT",
                details={"parent_id": updated.parent_id},
            )
        ancestors = await self.get_ancestors(updated.parent_id)
        if any(ancestor.id == current.id for ancestor in ancestors):
            raise CircularReferenceError(current.id, updated.parent_id)

    async def find_children(self, parent_id: Optional[int]) -> List[Category]:
        """Direct children of a category ordered by name; roots when parent_id is None."""
        items = await self.dynamodb_client.query_all(
            QuerySpec(
                pk_value=CategoryRecord.parent_partition(parent_id),
                index=Index.GSI2,
                exclude_deleted=True,
            )
        )
        return [self._decode(item) for item in items if self._visible(item)]

    async def find_roots(self) -> List[Category]:
        return await self.find_children(None)

    async def list(
        self,
        parent_id: Optional[int] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[Category]:
        """Paginated children of a parent (roots by default), ordered by name."""
        return await self._list(
            QuerySpec(pk_value=CategoryRecord.parent_partition(parent_id), index=Index.GSI2),
            cursor=cursor,
            page_size=page_size,
        )

    async def get_ancestors(self, category_id: int) -> List[Category]:
        """Ancestors from the immediate parent up to the root."""
        category = await self.get(category_id)
        ancestors: List[Category] = []
        seen = {category.id}
        parent_id = category.parent_id
        while parent_id is not None:
            if parent_id in seen or len(ancestors) >= MAX_DEPTH:
                logger.error(
                    "Category parent chain is cyclic or too deep",
                    extra={"category_id": category_id, "parent_id": parent_id},
                )
                raise CircularReferenceError(category_id, parent_id)
            parent = await self.find_by_id(parent_id)
            if parent is None:
                break
            ancestors.append(parent)
            seen.add(parent.id)
            parent_id = parent.parent_id
        return ancestors

    async def get_descendants(self, category_id: int) -> List[Category]:
        """All categories below a category, breadth first."""
        await self.get(category_id)
        descendants: List[Category] = []
        seen = {category_id}
        frontier = [category_id]
        while frontier:
            next_frontier = []
            for parent_id in frontier:
                for child in await self.find_children(parent_id):
                    if child.id in seen:
                        continue
                    seen.add(child.id)
                    descendants.append(child)
                    next_frontier.append(child.id)
            frontier = next_frontier
        return descendants

    async def add_product(self, category_id: int, product_id: int) -> ProductCategoryLink:
        """Link a product to a category.

        Both link rows are written in one transaction together with checks
        that the category and the product exist and are not deleted.

        Raises:
            EntityNotFoundError: If the category or product is missing
            ConflictError: If the product is already in the category
        """
        link = ProductCategoryLink(
            product_id=product_id, category_id=category_id, created_at=utc_now()
        )
        category_pk, category_sk = self.key_for(category_id)
        product_pk, product_sk = primary_key(EntityPrefix.PRODUCT, product_id)
        operations = [
            TransactPut(item=CategoryProductRecord.to_item(link)),
            TransactPut(item=ProductCategoryRecord.to_item(link)),
            TransactConditionCheck(pk=category_pk, sk=category_sk, state=RowState.ACTIVE),
            TransactConditionCheck(pk=product_pk, sk=product_sk, state=RowState.ACTIVE),
        ]
        try:
            await self.dynamodb_client.transact_write(operations)
        except TransactionAbortedError as e:
            failed = set(e.failed_indexes())
            logger.warning(
                "Product link rejected",
                extra={"category_id": category_id, "product_id": product_id, "failed": sorted(failed)},
            )
            if 2 in failed:
                raise EntityNotFoundError(self.entity_name, category_id)
            if 3 in failed:
                raise EntityNotFoundError("Product", product_id)
            raise ConflictError(
                f"Product {product_id} is already in category {category_id}",
                code="ALREADY_LINKED",
                details={"category_id": category_id, "product_id": product_id},
            )
        return link

    async def remove_product(self, category_id: int, product_id: int) -> None:
        """Unlink a product from a category, removing both link rows together.

        Raises:
            EntityNotFoundError: If the link does not exist
        """
        category_side = CategoryProductRecord.key_for(category_id, product_id)
        product_side = ProductCategoryRecord.key_for(product_id, category_id)
        try:
            await self.dynamodb_client.transact_write(
                [
                    TransactDelete(pk=category_side[0], sk=category_side[1], state=RowState.EXISTS),
                    TransactDelete(pk=product_side[0], sk=product_side[1]),
                ]
            )
        except TransactionAbortedError:
            raise EntityNotFoundError(
                "ProductCategory",
                f"{category_id}/{product_id}",
                message=f"Product {product_id} is not in category {category_id}",
            )

    async def get_products(self, category_id: int) -> List[int]:
        """Ids of the products linked to a category."""
        items = await self.dynamodb_client.query_all(
            QuerySpec(
                pk_value=partition_key(EntityPrefix.CATEGORY, category_id),
                sk_prefix=child_prefix(ChildTag.PRODUCT),
                consistent_read=True,
            )
        )
        return sorted(
            CategoryProductRecord.from_item(item).product_id
            for item in items
            if CategoryProductRecord.is_type(item)
        )
