"""Generic DynamoDB repository.

Every entity repository shares one contract: create, find_by_id / get,
unique-field lookup over a GSI, child range queries, paginated list over the
GSI matching the dominant filter, update with GSI re-derivation in the same
write, soft delete / restore, and hard delete.

Entity ids are whatever :meth:`DynamoDBRepository.key_for` accepts: a plain
id for top-level entities, a ``(parent_id, child_id)`` tuple for rows that
live under a parent partition.
"""

from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from aws_lambda_powertools.logging import Logger
from pydantic import BaseModel, ValidationError

from ..clients.dynamodb import DynamoDBClient
from ..config.app import AppConfig
from ..exceptions import (
    ConditionFailedError,
    ConflictError,
    EntityNotFoundError,
    EntityValidationError,
)
from ..models.storage.base_record import BaseRecord
from ..models.storage.keys import Index
from ..models.storage.operations import Guard, QuerySpec, RowState, UpdateSpec
from ..services.counter import CounterService
from ..utils.pagination import Page, decode_cursor, encode_cursor
from ..utils.timestamps import to_iso, utc_now
from ..utils.ttl import expiry_timestamp, is_expired

logger = Logger()

T = TypeVar("T", bound=BaseModel)

EntityData = Union[BaseModel, Mapping[str, Any]]

# Attributes every update leaves alone
KEY_FIELDS = frozenset({"PK", "SK"})


def as_values(data: EntityData, partial: bool = False) -> Dict[str, Any]:
    """Plain dict of caller-supplied values.

    For partial updates only the fields the caller explicitly set are kept.
    """
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=partial)
    return dict(data)


class DynamoDBRepository(Generic[T]):
    """Base class for DynamoDB entity repositories.

    Subclasses set ``record`` (the storage mapping), ``entity_name`` and,
    for auto-increment entities, ``counter_name``; and implement
    :meth:`key_for`. Hooks let subclasses add uniqueness pre-checks and
    other validation before any write is attempted.
    """

    record: ClassVar[Type[BaseRecord]]
    entity_name: ClassVar[str]
    counter_name: ClassVar[Optional[str]] = None
    soft_deletable: ClassVar[bool] = True
    # Days until expiry for TTL entities, taken from config by name
    ttl_setting: ClassVar[Optional[str]] = None
    immutable_fields: ClassVar[frozenset] = frozenset({"id", "created_at", "deleted_at"})
    # Globally unique payload field projected into a GSI partition key
    unique_field: ClassVar[Optional[str]] = None
    unique_index: ClassVar[Index] = Index.GSI1

    def __init__(
        self,
        dynamodb_client: DynamoDBClient,
        config: AppConfig,
        counters: Optional[CounterService] = None,
    ) -> None:
        """Initialize the repository with a DynamoDB client.

        Args:
            dynamodb_client: Client for DynamoDB operations
            config: Application configuration
            counters: Counter service for id allocation
        """
        self.dynamodb_client = dynamodb_client
        self.config = config
        self.counters = counters or CounterService(dynamodb_client)

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        """(PK, SK) of the entity with the given id."""
        raise NotImplementedError

    def _decode(self, item: Mapping[str, Any]) -> T:
        return self.record.from_item(item)  # type: ignore[return-value]

    def _visible(self, item: Optional[Mapping[str, Any]], include_deleted: bool = False) -> bool:
        """Whether a raw item is a live row of this entity type."""
        if not self.record.is_type(item):
            return False
        if is_expired(item):  # type: ignore[arg-type]
            return False
        if not include_deleted and item.get("deleted_at") is not None:  # type: ignore[union-attr]
            return False
        return True

    def _build(self, values: Mapping[str, Any]) -> T:
        """Validate values against the entity model."""
        try:
            return self.record.model.model_validate(dict(values))  # type: ignore[return-value]
        except ValidationError as e:
            raise EntityValidationError(
                f"Invalid {self.entity_name} data",
                details={"errors": e.errors(include_url=False)},
            )

    def _ttl(self) -> Optional[int]:
        if self.ttl_setting is None:
            return None
        return expiry_timestamp(getattr(self.config, self.ttl_setting))

    def _page_size(self, page_size: Optional[int]) -> int:
        if page_size is None:
            return self.config.default_page_size
        if page_size < 1 or page_size > self.config.max_page_size:
            raise EntityValidationError(
                f"Page size must be between 1 and {self.config.max_page_size}",
                code="INVALID_PAGE_SIZE",
                details={"page_size": page_size},
            )
        return page_size

    def _not_found(self, entity_id: Any) -> EntityNotFoundError:
        return EntityNotFoundError(self.entity_name, entity_id)

    def _state_error(self, entity_id: Any, error: ConditionFailedError) -> Exception:
        """Translate a failed update condition on an existing-row write."""
        existing = error.existing_item
        if not self._visible(existing, include_deleted=not self.soft_deletable):
            return self._not_found(entity_id)
        return ConflictError(
            f"{self.entity_name} {entity_id} was modified concurrently",
            code="CONCURRENT_MODIFICATION",
            details={"entity_type": self.entity_name, "entity_id": entity_id},
        )

    def _active_state(self) -> RowState:
        return RowState.ACTIVE if self.soft_deletable else RowState.EXISTS

    async def _before_create(self, values: Dict[str, Any]) -> None:
        """Validate or complete values before the id is allocated."""

    async def _before_update(self, current: T, updated: T) -> None:
        """Validate an update before it is written."""

    async def create(self, data: EntityData) -> T:
        """Create an entity.

        Allocates an id when the entity uses a counter, derives every key and
        writes with the condition that the row must not exist.

        Raises:
            EntityValidationError: If the data does not validate
            ConflictError: If the row (or a unique value) already exists
        """
        values = as_values(data)
        now = utc_now()
        values.setdefault("created_at", now)
        values.setdefault("updated_at", now)
        ttl = self._ttl()
        if ttl is not None:
            values.setdefault("ttl", ttl)
        if self.unique_field and values.get(self.unique_field) is not None:
            await self._check_unique(values[self.unique_field])
        await self._before_create(values)
        if self.counter_name and values.get("id") is None:
            values["id"] = await self.counters.next_id(self.counter_name)
        entity = self._build(values)
        await self._put_new(entity)
        logger.debug(
            "Created entity",
            extra={"entity_type": self.entity_name, "key": self.record.key(entity)},
        )
        return entity

    async def _put_new(self, entity: T) -> None:
        item = self.record.to_item(entity)
        try:
            await self.dynamodb_client.put_item(item)
        except ConditionFailedError as e:
            logger.warning(
                "Create rejected, row exists",
                extra={"entity_type": self.entity_name, "pk": e.pk, "sk": e.sk},
            )
            raise ConflictError(
                f"{self.entity_name} already exists",
                details={"pk": e.pk, "sk": e.sk},
            )

    async def find_by_id(self, entity_id: Any, include_deleted: bool = False) -> Optional[T]:
        """Strongly consistent point read; None if absent, expired or soft-deleted."""
        pk, sk = self.key_for(entity_id)
        item = await self.dynamodb_client.get_item(pk, sk, consistent_read=True)
        if not self._visible(item, include_deleted):
            return None
        return self._decode(item)  # type: ignore[arg-type]

    async def get(self, entity_id: Any, include_deleted: bool = False) -> T:
        """Like :meth:`find_by_id` but raises EntityNotFoundError."""
        entity = await self.find_by_id(entity_id, include_deleted)
        if entity is None:
            raise self._not_found(entity_id)
        return entity

    async def batch_get(self, entity_ids: Iterable[Any]) -> List[T]:
        """Fetch many entities, in the order of ``entity_ids``, skipping missing ones."""
        ids = list(entity_ids)
        keys = [self.key_for(entity_id) for entity_id in ids]
        items = await self.dynamodb_client.batch_get_items(keys)
        by_key = {(item["PK"], item["SK"]): item for item in items}
        result = []
        for key in keys:
            item = by_key.get(key)
            if self._visible(item):
                result.append(self._decode(item))  # type: ignore[arg-type]
        return result

    def unique_partition(self, value: Any) -> str:
        """GSI partition value of the unique field."""
        raise NotImplementedError

    async def find_by_unique_field(self, value: Any, include_deleted: bool = False) -> Optional[T]:
        """Look up an entity by its globally unique field (slug, SKU, code, number)."""
        if self.unique_field is None:
            raise NotImplementedError(f"{self.entity_name} has no unique field")
        return await self._find_one(self.unique_index, self.unique_partition(value), include_deleted)

    async def _check_unique(self, value: Any, current: Optional[T] = None) -> None:
        """Advisory look-before-write on the unique field.

        The index read is eventually consistent, so two racing creates can
        both pass; soft-deleted owners still hold their value.
        """
        existing = await self.find_by_unique_field(value, include_deleted=True)
        if existing is None:
            return
        if current is not None and self.record.key(existing) == self.record.key(current):
            return
        raise ConflictError(
            f"{self.entity_name} with {self.unique_field} '{value}' already exists",
            code=f"DUPLICATE_{self.unique_field.upper()}",  # type: ignore[union-attr]
            details={"entity_type": self.entity_name, self.unique_field: value},  # type: ignore[dict-item]
        )

    async def _find_one(
        self, index: Index, partition_value: str, include_deleted: bool = False
    ) -> Optional[T]:
        """Unique-field lookup over a GSI. Eventually consistent."""
        page = await self.dynamodb_client.query(
            QuerySpec(
                pk_value=partition_value,
                index=index,
                limit=1,
                exclude_deleted=not include_deleted,
            )
        )
        for item in page.items:
            if self._visible(item, include_deleted):
                return self._decode(item)
        return None

    async def _query_children(self, pk: str, sk_prefix: str, include_deleted: bool = False) -> List[T]:
        """All rows of this type under a partition, in sort key order."""
        items = await self.dynamodb_client.query_all(
            QuerySpec(
                pk_value=pk,
                sk_prefix=sk_prefix,
                consistent_read=True,
                exclude_deleted=not include_deleted,
            )
        )
        return [self._decode(item) for item in items if self._visible(item, include_deleted)]

    async def _list(
        self,
        spec: QuerySpec,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
        predicate: Optional[Callable[[T], bool]] = None,
        context: Optional[Dict[str, str]] = None,
    ) -> Page[T]:
        """One page of a GSI or table query.

        ``predicate`` filters in memory over the fetched page only, so a page
        can hold fewer than ``page_size`` items while more remain. ``context``
        is carried in the next cursor for parameters the caller must reuse.
        """
        limit = self._page_size(page_size)
        start_key = decode_cursor(cursor, spec.scope)
        page = await self.dynamodb_client.query(
            spec.model_copy(
                update={
                    "limit": limit,
                    "exclusive_start_key": start_key,
                    "exclude_deleted": self.soft_deletable,
                }
            )
        )
        entities = [self._decode(item) for item in page.items if self._visible(item)]
        if predicate is not None:
            entities = [entity for entity in entities if predicate(entity)]
        return Page(
            items=entities,
            next_cursor=encode_cursor(page.last_evaluated_key, spec.scope, context),
            count=len(entities),
        )

    async def update(self, entity_id: Any, changes: EntityData) -> T:
        """Apply a partial update.

        Reads the current row, validates the merged entity, then writes every
        changed payload field together with the re-derived GSI attributes in
        one conditional update. The write is guarded on the row still being
        active and unchanged since the read.

        Raises:
            EntityNotFoundError: If the row is absent or soft-deleted
            EntityValidationError: If the merged entity does not validate
            ConflictError: If the row changed between read and write
        """
        values = as_values(changes, partial=True)
        illegal = sorted(self.immutable_fields.intersection(values))
        if illegal:
            raise EntityValidationError(
                f"Fields cannot be updated: {', '.join(illegal)}",
                code="IMMUTABLE_FIELD",
                details={"fields": illegal},
            )
        current = await self.get(entity_id)
        merged = {**current.model_dump(), **values, "updated_at": utc_now()}
        updated = self._build(merged)
        if self.unique_field:
            new_value = getattr(updated, self.unique_field)
            if new_value is not None and self.unique_partition(new_value) != self.unique_partition(
                getattr(current, self.unique_field)
            ):
                await self._check_unique(new_value, current)
        await self._before_update(current, updated)
        return await self._write_update(entity_id, current, updated)

    def _update_spec(self, current: T, updated: T) -> UpdateSpec:
        """Diff two versions of an entity into one update of the same row."""
        old_item = self.record.to_item(current)
        new_item = self.record.to_item(updated)
        if (old_item["PK"], old_item["SK"]) != (new_item["PK"], new_item["SK"]):
            raise EntityValidationError(
                f"Update would move the {self.entity_name} row",
                code="KEY_CHANGE",
            )
        set_fields = {
            name: value
            for name, value in new_item.items()
            if name not in KEY_FIELDS and old_item.get(name) != value
        }
        set_fields["updated_at"] = new_item["updated_at"]
        remove_fields = [
            name for name in old_item if name not in new_item and name not in KEY_FIELDS
        ]
        return UpdateSpec(
            pk=new_item["PK"],
            sk=new_item["SK"],
            set_fields=set_fields,
            remove_fields=remove_fields,
            state=self._active_state(),
            guards=[Guard(attribute="updated_at", op="=", value=old_item["updated_at"])],
        )

    async def _write_update(self, entity_id: Any, current: T, updated: T) -> T:
        spec = self._update_spec(current, updated)
        try:
            item = await self.dynamodb_client.update_item(spec)
        except ConditionFailedError as e:
            raise self._state_error(entity_id, e)
        return self._decode(item)

    async def soft_delete(self, entity_id: Any) -> T:
        """Mark an active row deleted.

        Raises:
            EntityNotFoundError: If the row is absent or already deleted
        """
        self._require_soft_delete()
        pk, sk = self.key_for(entity_id)
        now = to_iso(utc_now())
        try:
            item = await self.dynamodb_client.update_item(
                UpdateSpec(
                    pk=pk,
                    sk=sk,
                    set_fields={"deleted_at": now, "updated_at": now},
                    state=RowState.ACTIVE,
                )
            )
        except ConditionFailedError:
            raise self._not_found(entity_id)
        logger.debug("Soft-deleted entity", extra={"entity_type": self.entity_name, "pk": pk, "sk": sk})
        return self._decode(item)

    async def restore(self, entity_id: Any) -> T:
        """Clear the deletion marker of a soft-deleted row.

        Raises:
            EntityNotFoundError: If the row does not exist
            ConflictError: If the row is not currently deleted
        """
        self._require_soft_delete()
        pk, sk = self.key_for(entity_id)
        try:
            item = await self.dynamodb_client.update_item(
                UpdateSpec(
                    pk=pk,
                    sk=sk,
                    set_fields={"updated_at": to_iso(utc_now())},
                    remove_fields=["deleted_at"],
                    state=RowState.DELETED,
                )
            )
        except ConditionFailedError as e:
            if not self.record.is_type(e.existing_item):
                raise self._not_found(entity_id)
            raise ConflictError(
                f"{self.entity_name} {entity_id} is not deleted",
                code="NOT_DELETED",
                details={"entity_type": self.entity_name, "entity_id": entity_id},
            )
        return self._decode(item)

    def _require_soft_delete(self) -> None:
        if not self.soft_deletable:
            raise EntityValidationError(
                f"{self.entity_name} does not support soft delete",
                code="SOFT_DELETE_UNSUPPORTED",
            )

    async def hard_delete(self, entity_id: Any) -> None:
        """Remove the row permanently.

        Raises:
            EntityNotFoundError: If the row does not exist
        """
        pk, sk = self.key_for(entity_id)
        try:
            await self.dynamodb_client.delete_item(pk, sk, must_exist=True)
        except ConditionFailedError:
            raise self._not_found(entity_id)
        logger.debug("Deleted entity", extra={"entity_type": self.entity_name, "pk": pk, "sk": sk})
