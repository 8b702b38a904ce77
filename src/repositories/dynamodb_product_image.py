"""DynamoDB implementation of the product image repository."""

from typing import Any, List, Optional, Sequence, Tuple

from aws_lambda_powertools.logging import Logger

from ..exceptions import (
    ConflictError,
    EntityNotFoundError,
    EntityValidationError,
    TransactionAbortedError,
)
from ..models.api.requests import ImageCreate, ImageUpdate
from ..models.domain.product import ProductImage
from ..models.storage.keys import ChildTag, EntityPrefix, child_prefix, partition_key
from ..models.storage.operations import RowState, TransactDelete, TransactOperation, TransactPut
from ..models.storage.product_record import ProductImageRecord
from ..services.counter import IMAGE_ID
from ..utils.timestamps import utc_now
from .dynamodb_base import DynamoDBRepository, as_values

logger = Logger()


class DynamoDBProductImageRepository(DynamoDBRepository[ProductImage]):
    """Images: ``PRODUCT#<pid>/IMAGE#<position:010>``.

    The sort key is the position, so a range query returns images in display
    order. Changing a position moves the row; moves are transactional.
    Stored URLs are relative keys; when a CDN base URL is configured, reads
    return absolute URLs.
    """

    record = ProductImageRecord
    entity_name = "ProductImage"
    counter_name = IMAGE_ID
    soft_deletable = False

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        product_id, position = entity_id
        return ProductImageRecord.key_for(product_id, position)

    def _decode(self, item: Any) -> ProductImage:
        image = super()._decode(item)
        return self._with_cdn(image)

    def _with_cdn(self, image: ProductImage) -> ProductImage:
        cdn_url = self.config.cdn_url
        if not cdn_url or "://" in image.url:
            return image
        return image.model_copy(update={"url": f"{cdn_url.rstrip('/')}/{image.url.lstrip('/')}"})

    def _strip_cdn(self, url: str) -> str:
        cdn_url = self.config.cdn_url
        if cdn_url:
            prefix = cdn_url.rstrip("/") + "/"
            if url.startswith(prefix):
                return url[len(prefix):]
        return url

    async def create(self, data: ImageCreate) -> ProductImage:
        """Attach an image, at the end of the list when no position is given.

        Raises:
            ConflictError: If another image already holds the position
        """
        values = as_values(data)
        if values.get("position") is None:
            images = await self.find_children(values["product_id"])
            values["position"] = images[-1].position + 1 if images else 0
        values["url"] = self._strip_cdn(values["url"])
        image = await super().create(values)
        return self._with_cdn(image)

    async def find_children(self, product_id: int) -> List[ProductImage]:
        """All images of a product ordered by position."""
        return await self._query_children(
            partition_key(EntityPrefix.PRODUCT, product_id), child_prefix(ChildTag.IMAGE)
        )

    async def find_image(self, product_id: int, image_id: int) -> Optional[ProductImage]:
        for image in await self.find_children(product_id):
            if image.id == image_id:
                return image
        return None

    async def _require_image(self, product_id: int, image_id: int) -> ProductImage:
        image = await self.find_image(product_id, image_id)
        if image is None:
            raise EntityNotFoundError(self.entity_name, image_id)
        return image

    async def update_image(
        self, product_id: int, image_id: int, changes: ImageUpdate
    ) -> ProductImage:
        """Update url, alt text or position of an image.

        A position change deletes the old row and creates the new one in a
        single transaction.
        """
        current = await self._require_image(product_id, image_id)
        values = as_values(changes, partial=True)
        if "url" in values and values["url"] is not None:
            values["url"] = self._strip_cdn(values["url"])
        stored = current.model_copy(update={"url": self._strip_cdn(current.url)})
        updated = self._build({**stored.model_dump(), **values, "updated_at": utc_now()})

        if updated.position == stored.position:
            written = await self._write_update((product_id, stored.position), stored, updated)
            return self._with_cdn(written)

        await self._move([(stored, updated)])
        return self._with_cdn(updated)

    async def reorder(self, product_id: int, image_ids: Sequence[int]) -> List[ProductImage]:
        """Assign positions 0..n-1 following ``image_ids``.

        Every image of the product must be listed exactly once. All moved
        rows are rewritten in one transaction.
        """
        images = await self.find_children(product_id)
        by_id = {image.id: image for image in images}
        if sorted(image_ids) != sorted(by_id) or len(set(image_ids)) != len(image_ids):
            raise EntityValidationError(
                "Reorder must list every image of the product exactly once",
                code="INVALID_IMAGE_ORDER",
                details={"product_id": product_id, "image_ids": list(image_ids)},
            )
        now = utc_now()
        moves = []
        result = []
        for position, image_id in enumerate(image_ids):
            image = by_id[image_id]
            stored = image.model_copy(update={"url": self._strip_cdn(image.url)})
            if image.position == position:
                result.append(image)
                continue
            updated = stored.model_copy(update={"position": position, "updated_at": now})
            moves.append((stored, updated))
            result.append(self._with_cdn(updated))
        if moves:
            await self._move(moves)
        return result

    async def _move(self, moves: Sequence[Tuple[ProductImage, ProductImage]]) -> None:
        """Rewrite images at new positions in one transaction.

        A key can appear only once per transaction: a position vacated by one
        image and taken by another becomes a single overwriting put.
        """
        old_keys = {ProductImageRecord.key(old) for old, _ in moves}
        new_keys = {ProductImageRecord.key(new) for _, new in moves}
        operations: List[TransactOperation] = []
        for _, new in moves:
            key = ProductImageRecord.key(new)
            state = RowState.EXISTS if key in old_keys else RowState.ABSENT
            operations.append(TransactPut(item=ProductImageRecord.to_item(new), state=state))
        for pk, sk in sorted(old_keys - new_keys):
            operations.append(TransactDelete(pk=pk, sk=sk, state=RowState.EXISTS))
        try:
            await self.dynamodb_client.transact_write(operations)
        except TransactionAbortedError as e:
            logger.warning(
                "Image move rejected",
                extra={"failed": e.failed_indexes(), "moves": len(moves)},
            )
            raise ConflictError(
                "Image positions changed concurrently or target position is taken",
                code="IMAGE_POSITION_CONFLICT",
            )

    async def delete_image(self, product_id: int, image_id: int) -> None:
        image = await self._require_image(product_id, image_id)
        await self.hard_delete((product_id, image.position))

    async def delete_all(self, product_id: int) -> int:
        """Remove every image of a product. Returns the number removed."""
        images = await self.find_children(product_id)
        keys: List[Tuple[str, str]] = [ProductImageRecord.key(image) for image in images]
        await self.dynamodb_client.batch_write(deletes=keys)
        return len(keys)

