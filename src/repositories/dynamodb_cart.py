"""DynamoDB implementation of the cart repository."""

from decimal import Decimal
from typing import Any, Optional, Tuple

from aws_lambda_powertools.logging import Logger

from ..clients.dynamodb import DynamoDBClient
from ..config.app import AppConfig
from ..exceptions import ConflictError
from ..models.domain.cart import Cart
from ..models.storage.cart_record import CartRecord
from ..models.storage.keys import Index
from ..models.storage.operations import QuerySpec
from ..services.counter import CounterService
from ..utils.pagination import Page
from .dynamodb_base import DynamoDBRepository
from .dynamodb_cart_item import DynamoDBCartItemRepository

logger = Logger()


class DynamoDBCartRepository(DynamoDBRepository[Cart]):
    """Carts: ``CART#<session>/METADATA``, lines under the same partition.

    Carts expire through TTL; every write pushes the expiry forward. A cart
    that belongs to a signed-in user is also indexed by user on GSI1.
    """

    record = CartRecord
    entity_name = "Cart"
    soft_deletable = False
    ttl_setting = "cart_ttl_days"
    immutable_fields = frozenset({"session_id", "created_at", "deleted_at"})

    def __init__(
        self,
        dynamodb_client: DynamoDBClient,
        config: AppConfig,
        counters: Optional[CounterService] = None,
    ) -> None:
        super().__init__(dynamodb_client, config, counters)
        self.items = DynamoDBCartItemRepository(dynamodb_client, config, self.counters)

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        return CartRecord.key_for(entity_id)

    async def get_or_create(self, session_id: str, user_id: Optional[int] = None) -> Cart:
        """Cart of a session, created on first use.

        A user id given for an anonymous cart is attached to it.
        """
        cart = await self.find_by_id(session_id)
        if cart is None:
            try:
                return await self.create({"session_id": session_id, "user_id": user_id})
            except ConflictError:
                cart = await self.find_by_id(session_id)
                if cart is None:
                    # Expired row the store has not reaped yet
                    logger.info("Replacing expired cart", extra={"session_id": session_id})
                    await self.hard_delete(session_id)
                    return await self.create({"session_id": session_id, "user_id": user_id})
                # Otherwise lost a race with a concurrent first request of the session
        if user_id is not None and cart.user_id is None:
            cart = await self.update(session_id, {"user_id": user_id, "ttl": self._ttl()})
        return cart

    async def find_by_user(
        self,
        user_id: int,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[Cart]:
        """Carts of a user, most recently updated first."""
        return await self._list(
            QuerySpec(
                pk_value=CartRecord.user_partition(user_id),
                index=Index.GSI1,
                scan_forward=False,
            ),
            cursor=cursor,
            page_size=page_size,
        )

    async def refresh_ttl(self, session_id: str) -> Cart:
        """Push the expiry of the cart and its lines forward."""
        ttl = self._ttl()
        cart = await self.update(session_id, {"ttl": ttl})
        await self.items.refresh_ttl(session_id, ttl)  # type: ignore[arg-type]
        return cart

    async def apply_discount(self, session_id: str, code: str, amount: Decimal) -> Cart:
        """Record a discount code already validated by the caller."""
        return await self.update(
            session_id,
            {"discount_code": code.strip().upper(), "discount_amount": amount, "ttl": self._ttl()},
        )

    async def clear_discount(self, session_id: str) -> Cart:
        return await self.update(
            session_id, {"discount_code": None, "discount_amount": Decimal("0")}
        )

    async def get_with_items(self, session_id: str) -> Cart:
        cart = await self.get(session_id)
        return cart.model_copy(update={"items": await self.items.find_children(session_id)})

    async def hard_delete(self, entity_id: Any) -> None:
        """Remove the cart and all of its lines."""
        await super().hard_delete(entity_id)
        removed = await self.items.clear(entity_id)
        logger.debug("Cart removed", extra={"session_id": entity_id, "lines": removed})
