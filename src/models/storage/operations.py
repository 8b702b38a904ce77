"""Typed descriptions of store operations.

Repositories describe what they want written or read with these models; the
DynamoDB client turns them into expressions. Keeping the vocabulary small
(row states plus simple guards) keeps every conditional write reviewable.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .keys import Index


class RowState(str, Enum):
    """Condition on the current state of the target row."""

    ANY = "any"
    ABSENT = "absent"
    EXISTS = "exists"
    ACTIVE = "active"
    DELETED = "deleted"


class Guard(BaseModel):
    """Comparison of a stored attribute against a value, e.g. ``stock >= 3``."""

    attribute: str
    op: Literal["=", "<>", "<", "<=", ">", ">="]
    value: Any


class QuerySpec(BaseModel):
    """One key-condition query against the table or a GSI.

    Attributes:
        pk_value: Value of the partition key (PK or GSIxPK)
        index: GSI to query, None for the base table
        sk_prefix: Optional ``begins_with`` condition on the sort key
        sk_between: Optional inclusive sort key range
        scan_forward: Ascending sort key order when True
        limit: Maximum items returned in one page
        exclusive_start_key: Continuation key from a previous page
        exclude_deleted: Filter out soft-deleted rows
        consistent_read: Strongly consistent read (base table only)
    """

    pk_value: str
    index: Optional[Index] = None
    sk_prefix: Optional[str] = None
    sk_between: Optional[Tuple[str, str]] = None
    scan_forward: bool = True
    limit: Optional[int] = Field(None, ge=1)
    exclusive_start_key: Optional[Dict[str, Any]] = None
    exclude_deleted: bool = False
    consistent_read: bool = False

    @property
    def scope(self) -> str:
        """Identity of the query, used to bind pagination cursors to it."""
        index = self.index.value if self.index else "TABLE"
        bounds = "..".join(self.sk_between) if self.sk_between else ""
        return f"{index}|{self.pk_value}|{self.sk_prefix or ''}|{bounds}"


class QueryPage(BaseModel):
    """Raw items of one query page."""

    items: List[Dict[str, Any]] = Field(default_factory=list)
    last_evaluated_key: Optional[Dict[str, Any]] = None


class UpdateSpec(BaseModel):
    """A conditional single-row update.

    Attributes:
        pk: Partition key of the row
        sk: Sort key of the row
        set_fields: Attributes to SET
        remove_fields: Attributes to REMOVE
        increments: Attributes to add to atomically (negative to subtract)
        state: Required row state
        guards: Additional comparisons that must all hold
    """

    pk: str
    sk: str
    set_fields: Dict[str, Any] = Field(default_factory=dict)
    remove_fields: List[str] = Field(default_factory=list)
    increments: Dict[str, Any] = Field(default_factory=dict)
    state: RowState = RowState.EXISTS
    guards: List[Guard] = Field(default_factory=list)


class TransactPut(BaseModel):
    """Put inside a transaction. Defaults to create-only."""

    item: Dict[str, Any]
    state: RowState = RowState.ABSENT


class TransactUpdate(BaseModel):
    """Update inside a transaction."""

    spec: UpdateSpec


class TransactDelete(BaseModel):
    """Delete inside a transaction."""

    pk: str
    sk: str
    state: RowState = RowState.ANY


class TransactConditionCheck(BaseModel):
    """Condition on a row that the transaction does not write."""

    pk: str
    sk: str
    state: RowState = RowState.EXISTS
    guards: List[Guard] = Field(default_factory=list)


TransactOperation = Union[TransactPut, TransactUpdate, TransactDelete, TransactConditionCheck]


def operation_key(operation: TransactOperation) -> Tuple[str, str]:
    """(PK, SK) targeted by a transactional operation."""
    if isinstance(operation, TransactPut):
        return operation.item["PK"], operation.item["SK"]
    if isinstance(operation, TransactUpdate):
        return operation.spec.pk, operation.spec.sk
    return operation.pk, operation.sk
