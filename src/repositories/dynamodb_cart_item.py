"""DynamoDB implementation of the cart item repository."""

from typing import Any, List, Optional, Tuple

from aws_lambda_powertools.logging import Logger

from ..exceptions import ConditionFailedError, EntityNotFoundError
from ..models.api.requests import CartItemCreate
from ..models.domain.cart import CartItem
from ..models.storage.cart_record import CartItemRecord, CartRecord
from ..models.storage.keys import ChildTag, EntityPrefix, child_prefix, partition_key
from ..models.storage.operations import Guard, RowState, UpdateSpec
from ..services.counter import CART_ITEM_ID
from ..utils.timestamps import utc_now
from .dynamodb_base import DynamoDBRepository, as_values

logger = Logger()


class DynamoDBCartItemRepository(DynamoDBRepository[CartItem]):
    """Cart lines: ``CART#<session>/ITEM#<id:010>``.

    Ids are ``(session_id, item_id)`` tuples. Lines share the cart's TTL and
    are removed outright, never soft-deleted.
    """

    record = CartItemRecord
    entity_name = "CartItem"
    counter_name = CART_ITEM_ID
    soft_deletable = False
    ttl_setting = "cart_ttl_days"
    immutable_fields = frozenset(
        {"id", "session_id", "product_id", "variant_id", "created_at", "deleted_at"}
    )

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        session_id, item_id = entity_id
        return CartItemRecord.key_for(session_id, item_id)

    async def find_children(self, session_id: str) -> List[CartItem]:
        """Lines of a cart in the order they were added."""
        return await self._query_children(
            partition_key(EntityPrefix.CART, session_id), child_prefix(ChildTag.ITEM)
        )

    async def add_item(self, session_id: str, data: CartItemCreate) -> CartItem:
        """Add a line, or raise the quantity of the line for the same product and variant.

        The cart header's expiry moves forward with the line.
        """
        ttl = self._ttl()
        for line in await self.find_children(session_id):
            if line.product_id == data.product_id and line.variant_id == data.variant_id:
                item = await self.update(
                    (session_id, line.id), {"quantity": line.quantity + data.quantity, "ttl": ttl}
                )
                break
        else:
            item = await self.create({**as_values(data), "session_id": session_id, "ttl": ttl})
        await self._touch_cart(session_id, ttl)
        return item

    async def update_quantity(
        self, session_id: str, item_id: int, quantity: int
    ) -> Optional[CartItem]:
        """Set the quantity of a line. A quantity of zero or less removes it.

        The cart header's expiry moves forward with the line.
        """
        if quantity <= 0:
            await self.remove_item(session_id, item_id)
            return None
        ttl = self._ttl()
        item = await self.update((session_id, item_id), {"quantity": quantity, "ttl": ttl})
        await self._touch_cart(session_id, ttl)
        return item

    async def _touch_cart(self, session_id: str, ttl: Optional[int]) -> None:
        pk, sk = CartRecord.key_for(session_id)
        try:
            await self.dynamodb_client.update_item(
                UpdateSpec(
                    pk=pk,
                    sk=sk,
                    set_fields={"ttl": ttl},
                    state=RowState.EXISTS,
                    guards=[Guard(attribute="ttl", op=">", value=int(utc_now().timestamp()))],
                )
            )
        except ConditionFailedError:
            # No header yet, or an expired one that get_or_create will replace
            logger.debug("No live cart header to refresh", extra={"session_id": session_id})

    async def remove_item(self, session_id: str, item_id: int) -> None:
        """Remove a line.

        Raises:
            EntityNotFoundError: If the cart has no such line
        """
        try:
            await self.hard_delete((session_id, item_id))
        except EntityNotFoundError:
            logger.warning(
                "Cart line not found", extra={"session_id": session_id, "item_id": item_id}
            )
            raise

    async def clear(self, session_id: str) -> int:
        """Remove every line of a cart. Returns the number removed."""
        lines = await self.find_children(session_id)
        await self.dynamodb_client.batch_write(deletes=[CartItemRecord.key(line) for line in lines])
        return len(lines)

    async def refresh_ttl(self, session_id: str, ttl: int) -> None:
        """Move the expiry of every line of a cart to ``ttl``."""
        for line in await self.find_children(session_id):
            await self.update((session_id, line.id), {"ttl": ttl})
