"""Base storage mapping between domain entities and DynamoDB items."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, Generic, Mapping, Optional, Tuple, Type, TypeVar

from aws_lambda_powertools.logging import Logger
from pydantic import BaseModel, ValidationError

from ...exceptions import DecodeError
from ...utils.timestamps import to_iso
from .keys import STRUCTURAL_ATTRIBUTES, EntityType

logger = Logger()

T = TypeVar("T", bound=BaseModel)


def to_storage(value: Any) -> Any:
    """Convert a Python value into a type the DynamoDB serializer accepts.

    Datetimes become fixed-width UTC strings, floats become Decimals, enums
    their values. Containers are converted recursively; None values inside
    maps are dropped.
    """
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {str(k): to_storage(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [to_storage(v) for v in value]
    if isinstance(value, set):
        return [to_storage(v) for v in sorted(value)]
    return value


def from_storage(value: Any) -> Any:
    """Normalize values read from DynamoDB.

    The store returns every number as Decimal. Integral values become ints so
    they validate against int fields and compare naturally; fractional values
    stay Decimal to keep money exact.
    """
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else value
    if isinstance(value, dict):
        return {k: from_storage(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [from_storage(v) for v in value]
    if isinstance(value, set):
        return [from_storage(v) for v in value]
    return value


class BaseRecord(Generic[T]):
    """Storage mapping for one entity type.

    Subclasses declare the entity model, its type discriminator and how keys
    and GSI projections derive from the entity. Encoding and decoding are
    otherwise uniform: payload fields are copied, structural attributes are
    stripped on the way back, and a stored item that does not validate
    raises :class:`DecodeError` instead of being coerced.
    """

    entity_type: ClassVar[EntityType]
    model: ClassVar[Type[BaseModel]]

    @classmethod
    def key(cls, entity: T) -> Tuple[str, str]:
        """(PK, SK) of the entity's row."""
        raise NotImplementedError

    @classmethod
    def index_attributes(cls, entity: T) -> Dict[str, str]:
        """GSI attributes derived from the entity's payload."""
        return {}

    @classmethod
    def payload(cls, entity: T) -> Dict[str, Any]:
        """Storage form of the entity's own fields, None values omitted."""
        data = entity.model_dump(mode="python", exclude_none=True)
        return {name: to_storage(value) for name, value in data.items()}

    @classmethod
    def to_item(cls, entity: T) -> Dict[str, Any]:
        """Encode an entity into a complete DynamoDB item."""
        pk, sk = cls.key(entity)
        item = cls.payload(entity)
        item.update(cls.index_attributes(entity))
        item["PK"] = pk
        item["SK"] = sk
        item["entity_type"] = cls.entity_type.value
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> T:
        """Decode a DynamoDB item into the entity model.

        Raises:
            DecodeError: If the item belongs to another entity type or is
                missing or mistyping a required field
        """
        stored_type = item.get("entity_type")
        if stored_type != cls.entity_type.value:
            raise DecodeError(
                f"Expected {cls.entity_type.value} item, got {stored_type}",
                details={"pk": item.get("PK"), "sk": item.get("SK")},
            )
        data = {
            name: from_storage(value)
            for name, value in item.items()
            if name not in STRUCTURAL_ATTRIBUTES
        }
        try:
            return cls.model.model_validate(data)  # type: ignore[return-value]
        except ValidationError as e:
            logger.error(
                "Stored item failed validation",
                extra={
                    "entity_type": cls.entity_type.value,
                    "pk": item.get("PK"),
                    "sk": item.get("SK"),
                    "errors": e.errors(include_url=False),
                },
            )
            raise DecodeError(
                f"Stored {cls.entity_type.value} item failed validation",
                details={
                    "pk": item.get("PK"),
                    "sk": item.get("SK"),
                    "errors": e.errors(include_url=False),
                },
            )

    @classmethod
    def is_type(cls, item: Optional[Mapping[str, Any]]) -> bool:
        return bool(item) and item.get("entity_type") == cls.entity_type.value
