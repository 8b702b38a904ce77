"""Client wrapper for DynamoDB operations.

All store access goes through :class:`DynamoDBClient`. boto3 is synchronous,
so every call runs in a worker thread via ``asyncio.to_thread``. botocore
errors are classified here, and only here, into the storage exception types.
"""

import asyncio
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import boto3
from aws_lambda_powertools.logging import Logger
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config.app import AppConfig
from ..exceptions import (
    ConditionFailedError,
    EntityValidationError,
    StorageGeneralError,
    ThrottledError,
    TransactionAbortedError,
)
from ..models.storage.keys import COUNTER_PK, EntityType
from ..models.storage.operations import (
    Guard,
    QueryPage,
    QuerySpec,
    RowState,
    TransactConditionCheck,
    TransactDelete,
    TransactOperation,
    TransactPut,
    TransactUpdate,
    UpdateSpec,
)
from ..utils.timestamps import to_iso, utc_now

logger = Logger()

THROTTLING_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
        "ThrottlingError",
    }
)
# DynamoDB limits
BATCH_GET_LIMIT = 100
BATCH_WRITE_LIMIT = 25
UNPROCESSED_RETRIES = 5

COUNTER_ATTRIBUTE = "current_value"

_DYNAMODB_TYPES = frozenset({"S", "N", "B", "SS", "NS", "BS", "M", "L", "NULL", "BOOL"})


def _deserialize_raw(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Deserialize an item that may still be in low-level AttributeValue form.

    Error responses (e.g. the ALL_OLD item of a failed condition) are not run
    through boto3's resource-level transformation.
    """
    if not item:
        return None
    deserializer = TypeDeserializer()
    result = {}
    for name, value in item.items():
        if isinstance(value, dict) and len(value) == 1 and next(iter(value)) in _DYNAMODB_TYPES:
            result[name] = deserializer.deserialize(value)
        else:
            result[name] = value
    return result


class _Expression:
    """Accumulates placeholders for condition and update expressions."""

    def __init__(self) -> None:
        self.names: Dict[str, str] = {}
        self.values: Dict[str, Any] = {}

    def name(self, attribute: str) -> str:
        for placeholder, existing in self.names.items():
            if existing == attribute:
                return placeholder
        placeholder = f"#n{len(self.names)}"
        self.names[placeholder] = attribute
        return placeholder

    def value(self, value: Any) -> str:
        placeholder = f":v{len(self.values)}"
        self.values[placeholder] = value
        return placeholder

    def condition(self, state: RowState, guards: Sequence[Guard] = ()) -> Optional[str]:
        clauses = []
        if state == RowState.ABSENT:
            clauses.append(f"attribute_not_exists({self.name('PK')})")
        elif state in (RowState.EXISTS, RowState.ACTIVE, RowState.DELETED):
            clauses.append(f"attribute_exists({self.name('PK')})")
            if state == RowState.ACTIVE:
                clauses.append(f"attribute_not_exists({self.name('deleted_at')})")
            elif state == RowState.DELETED:
                clauses.append(f"attribute_exists({self.name('deleted_at')})")
        for guard in guards:
            clauses.append(f"{self.name(guard.attribute)} {guard.op} {self.value(guard.value)}")
        return " AND ".join(clauses) if clauses else None

    def update(self, spec: UpdateSpec) -> str:
        assignments = [
            f"{self.name(field)} = {self.value(value)}" for field, value in spec.set_fields.items()
        ]
        if spec.increments:
            zero = self.value(0)
            for field, amount in spec.increments.items():
                placeholder = self.name(field)
                assignments.append(
                    f"{placeholder} = if_not_exists({placeholder}, {zero}) + {self.value(amount)}"
                )
        parts = []
        if assignments:
            parts.append("SET " + ", ".join(assignments))
        if spec.remove_fields:
            parts.append("REMOVE " + ", ".join(self.name(field) for field in spec.remove_fields))
        if not parts:
            raise EntityValidationError("Update has nothing to write", code="EMPTY_UPDATE")
        return " ".join(parts)

    def kwargs(self, serializer: Optional[TypeSerializer] = None) -> Dict[str, Any]:
        """ExpressionAttributeNames/Values, serialized for the low-level client if asked."""
        params: Dict[str, Any] = {}
        if self.names:
            params["ExpressionAttributeNames"] = dict(self.names)
        if self.values:
            if serializer is None:
                params["ExpressionAttributeValues"] = dict(self.values)
            else:
                params["ExpressionAttributeValues"] = {
                    k: serializer.serialize(v) for k, v in self.values.items()
                }
        return params


class DynamoDBClient:
    """Client wrapper for DynamoDB operations."""

    def __init__(self, config: AppConfig) -> None:
        """Initialize DynamoDB client.

        Args:
            config: Application configuration
        """
        self.config = config
        boto_config = Config(
            retries={"max_attempts": config.max_attempts, "mode": "standard"}
        )
        session_kwargs: Dict[str, Any] = {
            "region_name": config.aws_region,
            "config": boto_config,
        }
        if config.dynamodb_endpoint_url:
            session_kwargs["endpoint_url"] = config.dynamodb_endpoint_url
        self.dynamodb = boto3.resource("dynamodb", **session_kwargs)
        self.table = self.dynamodb.Table(config.dynamodb_table_name)  # type: ignore
        # Transactions go through the low-level client with explicit serialization
        self.client = boto3.client("dynamodb", **session_kwargs)
        self.table_name = config.dynamodb_table_name
        self._serializer = TypeSerializer()

    async def _call(
        self,
        operation: str,
        func: Callable[..., Any],
        key: Optional[Tuple[str, str]] = None,
        **kwargs: Any,
    ) -> Any:
        """Run a boto3 call in a worker thread and classify its errors."""
        try:
            return await asyncio.to_thread(func, **kwargs)
        except ClientError as e:
            raise self._classify(e, operation, key)
        except BotoCoreError as e:
            logger.exception(
                "DynamoDB call failed", extra={"operation": operation, "error": str(e)}
            )
            raise StorageGeneralError(
                f"Failed to {operation} in DynamoDB",
                details={"operation": operation, "error": str(e)},
            )

    def _classify(
        self, error: ClientError, operation: str, key: Optional[Tuple[str, str]] = None
    ) -> Exception:
        """Map a botocore ClientError onto the storage error taxonomy."""
        response = error.response
        code = response.get("Error", {}).get("Code", "")
        pk, sk = key or ("", "")

        if code == "ConditionalCheckFailedException":
            logger.debug(
                "Conditional check failed", extra={"operation": operation, "pk": pk, "sk": sk}
            )
            return ConditionFailedError(pk, sk, existing_item=_deserialize_raw(response.get("Item")))

        if code == "TransactionCanceledException":
            reasons = [
                reason.get("Code") or "None"
                for reason in response.get("CancellationReasons", [])
            ]
            failing = [reason for reason in reasons if reason != "None"]
            if failing and all(reason in THROTTLING_CODES for reason in failing):
                logger.warning("Transaction throttled", extra={"reasons": reasons})
                return ThrottledError(details={"operation": operation, "reasons": reasons})
            logger.warning("Transaction cancelled", extra={"reasons": reasons})
            return TransactionAbortedError(reasons)

        if code in THROTTLING_CODES:
            logger.warning(
                "DynamoDB request throttled", extra={"operation": operation, "code": code}
            )
            return ThrottledError(details={"operation": operation, "code": code})

        message = response.get("Error", {}).get("Message", "")
        if code == "ValidationException" and "starting key" in message.lower():
            logger.warning(
                "Query rejected its start key", extra={"operation": operation, "error": message}
            )
            return EntityValidationError(
                "Pagination cursor is outside the bounds of this query",
                code="INVALID_CURSOR",
                details={"operation": operation},
            )

        logger.error(
            "DynamoDB request failed",
            extra={"operation": operation, "code": code, "error": str(error), "pk": pk, "sk": sk},
        )
        return StorageGeneralError(
            f"Failed to {operation} in DynamoDB",
            details={"operation": operation, "code": code, "error": str(error)},
        )

    async def get_item(
        self, pk: str, sk: str, consistent_read: bool = True
    ) -> Optional[Dict[str, Any]]:
        """Point read by primary key.

        Args:
            pk: Partition key
            sk: Sort key
            consistent_read: Strongly consistent read

        Returns:
            The item, or None if absent
        """
        response = await self._call(
            "get item",
            self.table.get_item,
            key=(pk, sk),
            Key={"PK": pk, "SK": sk},
            ConsistentRead=consistent_read,
        )
        return response.get("Item")

    async def batch_get_items(
        self, keys: Iterable[Tuple[str, str]], consistent_read: bool = False
    ) -> List[Dict[str, Any]]:
        """Read many items by primary key. Order of the result is not defined.

        Keys are sent in chunks of 100; unprocessed keys are retried with a
        short backoff.

        Raises:
            ThrottledError: If keys remain unprocessed after all retries
        """
        unique_keys = list(dict.fromkeys(keys))
        items: List[Dict[str, Any]] = []
        for start in range(0, len(unique_keys), BATCH_GET_LIMIT):
            chunk = unique_keys[start : start + BATCH_GET_LIMIT]
            request = {
                self.table_name: {
                    "Keys": [{"PK": pk, "SK": sk} for pk, sk in chunk],
                    "ConsistentRead": consistent_read,
                }
            }
            attempt = 0
            while request:
                response = await self._call(
                    "batch get items", self.dynamodb.batch_get_item, RequestItems=request
                )
                items.extend(response.get("Responses", {}).get(self.table_name, []))
                request = response.get("UnprocessedKeys") or {}
                if request:
                    attempt += 1
                    if attempt > UNPROCESSED_RETRIES:
                        raise ThrottledError(
                            "Batch read left unprocessed keys",
                            details={"unprocessed": len(request[self.table_name]["Keys"])},
                        )
                    await asyncio.sleep(0.05 * 2**attempt)
        return items

    async def put_item(self, item: Dict[str, Any], overwrite: bool = False) -> None:
        """Put an item in DynamoDB.

        Args:
            item: Item to put, carrying PK and SK
            overwrite: Replace an existing row instead of failing

        Raises:
            ConditionFailedError: If the row exists and overwrite is False
            StorageError: If put operation fails
        """
        logger.debug(
            "Putting item in DynamoDB",
            extra={"pk": item.get("PK"), "sk": item.get("SK"), "table": self.table_name},
        )
        params: Dict[str, Any] = {"Item": item}
        if not overwrite:
            expression = _Expression()
            params["ConditionExpression"] = expression.condition(RowState.ABSENT)
            params["ReturnValuesOnConditionCheckFailure"] = "ALL_OLD"
            params.update(expression.kwargs())
        await self._call("put item", self.table.put_item, key=(item["PK"], item["SK"]), **params)

    def _query_params(self, spec: QuerySpec) -> Dict[str, Any]:
        if spec.index is None:
            pk_name, sk_name = "PK", "SK"
        else:
            pk_name, sk_name = spec.index.pk_attribute, spec.index.sk_attribute
        condition = Key(pk_name).eq(spec.pk_value)
        if spec.sk_prefix is not None:
            condition = condition & Key(sk_name).begins_with(spec.sk_prefix)
        elif spec.sk_between is not None:
            condition = condition & Key(sk_name).between(*spec.sk_between)

        params: Dict[str, Any] = {
            "KeyConditionExpression": condition,
            "ScanIndexForward": spec.scan_forward,
        }
        if spec.index is not None:
            params["IndexName"] = spec.index.value
        elif spec.consistent_read:
            params["ConsistentRead"] = True
        if spec.exclude_deleted:
            params["FilterExpression"] = Attr("deleted_at").not_exists()
        return params

    async def query(self, spec: QuerySpec) -> QueryPage:
        """Fetch one page of a query.

        With a filter, the store applies ``Limit`` before filtering, so pages
        are topped up until ``limit`` matching items are collected or the
        query is exhausted. The returned continuation key always points just
        past the last evaluated row, never past an unreturned match.
        """
        params = self._query_params(spec)
        items: List[Dict[str, Any]] = []
        start_key = spec.exclusive_start_key
        while True:
            if start_key:
                params["ExclusiveStartKey"] = start_key
            if spec.limit:
                params["Limit"] = spec.limit - len(items)
            response = await self._call("query items", self.table.query, **params)
            items.extend(response.get("Items", []))
            start_key = response.get("LastEvaluatedKey")
            if not start_key or (spec.limit and len(items) >= spec.limit):
                break
        return QueryPage(items=items, last_evaluated_key=start_key)

    async def query_all(self, spec: QuerySpec) -> List[Dict[str, Any]]:
        """Execute a query following continuation keys, handling the 1MB response limit.

        Args:
            spec: Query to run; ``limit`` caps the total number of items

        Returns:
            List of items matching the query
        """
        items: List[Dict[str, Any]] = []
        start_key = spec.exclusive_start_key
        while True:
            page = await self.query(
                spec.model_copy(
                    update={
                        "exclusive_start_key": start_key,
                        "limit": (spec.limit - len(items)) if spec.limit else None,
                    }
                )
            )
            items.extend(page.items)
            if spec.limit and len(items) >= spec.limit:
                return items[: spec.limit]
            start_key = page.last_evaluated_key
            if not start_key:
                return items

    async def update_item(self, spec: UpdateSpec) -> Dict[str, Any]:
        """Apply a conditional update and return the row as written.

        Raises:
            ConditionFailedError: If the row state or a guard does not hold;
                carries the current row when one exists
            StorageError: If the update fails
        """
        expression = _Expression()
        params: Dict[str, Any] = {
            "Key": {"PK": spec.pk, "SK": spec.sk},
            "UpdateExpression": expression.update(spec),
            "ReturnValues": "ALL_NEW",
        }
        condition = expression.condition(spec.state, spec.guards)
        if condition:
            params["ConditionExpression"] = condition
            params["ReturnValuesOnConditionCheckFailure"] = "ALL_OLD"
        params.update(expression.kwargs())
        response = await self._call(
            "update item", self.table.update_item, key=(spec.pk, spec.sk), **params
        )
        return response.get("Attributes", {})

    async def increment_counter(self, counter_name: str, amount: int = 1) -> int:
        """Atomically add to a counter row, creating it at zero, and return the new value."""
        now = to_iso(utc_now())
        response = await self._call(
            "increment counter",
            self.table.update_item,
            key=(COUNTER_PK, counter_name),
            Key={"PK": COUNTER_PK, "SK": counter_name},
            UpdateExpression=(
                "SET #value = if_not_exists(#value, :zero) + :amount, "
                "#type = :type, #updated = :now"
            ),
            ExpressionAttributeNames={
                "#value": COUNTER_ATTRIBUTE,
                "#type": "entity_type",
                "#updated": "updated_at",
            },
            ExpressionAttributeValues={
                ":zero": 0,
                ":amount": amount,
                ":type": EntityType.COUNTER.value,
                ":now": now,
            },
            ReturnValues="UPDATED_NEW",
        )
        return int(response["Attributes"][COUNTER_ATTRIBUTE])

    async def delete_item(
        self, pk: str, sk: str, must_exist: bool = False
    ) -> Optional[Dict[str, Any]]:
        """Delete a row and return it as it was, or None if it did not exist.

        Raises:
            ConditionFailedError: If ``must_exist`` and the row is absent
        """
        params: Dict[str, Any] = {"Key": {"PK": pk, "SK": sk}, "ReturnValues": "ALL_OLD"}
        if must_exist:
            expression = _Expression()
            params["ConditionExpression"] = expression.condition(RowState.EXISTS)
            params.update(expression.kwargs())
        response = await self._call("delete item", self.table.delete_item, key=(pk, sk), **params)
        return response.get("Attributes")

    async def batch_write(
        self,
        puts: Sequence[Dict[str, Any]] = (),
        deletes: Sequence[Tuple[str, str]] = (),
    ) -> None:
        """Unconditional puts and deletes using batch_writer.

        Writes are not atomic as a whole; batch_writer resubmits unprocessed
        items on its own.

        Raises:
            StorageError: If batch operation fails
        """
        if not puts and not deletes:
            return

        def _write() -> None:
            with self.table.batch_writer() as batch:
                for item in puts:
                    batch.put_item(Item=item)
                for pk, sk in deletes:
                    batch.delete_item(Key={"PK": pk, "SK": sk})

        logger.debug("Batch writing items", extra={"puts": len(puts), "deletes": len(deletes)})
        await self._call("batch write items", _write)

    def _transact_item(self, operation: TransactOperation) -> Dict[str, Any]:
        serialize = self._serializer.serialize
        expression = _Expression()
        if isinstance(operation, TransactPut):
            body: Dict[str, Any] = {
                "TableName": self.table_name,
                "Item": {k: serialize(v) for k, v in operation.item.items()},
            }
            condition = expression.condition(operation.state)
            kind = "Put"
        elif isinstance(operation, TransactUpdate):
            spec = operation.spec
            body = {
                "TableName": self.table_name,
                "Key": {"PK": serialize(spec.pk), "SK": serialize(spec.sk)},
                "UpdateExpression": expression.update(spec),
            }
            condition = expression.condition(spec.state, spec.guards)
            kind = "Update"
        elif isinstance(operation, TransactDelete):
            body = {
                "TableName": self.table_name,
                "Key": {"PK": serialize(operation.pk), "SK": serialize(operation.sk)},
            }
            condition = expression.condition(operation.state)
            kind = "Delete"
        elif isinstance(operation, TransactConditionCheck):
            body = {
                "TableName": self.table_name,
                "Key": {"PK": serialize(operation.pk), "SK": serialize(operation.sk)},
            }
            condition = expression.condition(operation.state, operation.guards)
            if not condition:
                raise EntityValidationError(
                    "Condition check without a condition", code="EMPTY_CONDITION"
                )
            kind = "ConditionCheck"
        else:
            raise TypeError(f"Unsupported transaction operation: {type(operation).__name__}")

        if condition:
            body["ConditionExpression"] = condition
        body.update(expression.kwargs(self._serializer))
        return {kind: body}

    async def transact_write(
        self,
        operations: Sequence[TransactOperation],
        client_request_token: Optional[str] = None,
    ) -> None:
        """Commit operations all-or-nothing.

        The request token makes transport-level retries of the same call
        idempotent for ten minutes.

        Raises:
            EntityValidationError: If more operations than the configured
                limit are submitted
            TransactionAbortedError: If any condition failed; nothing was written
            ThrottledError: If the transaction was rejected for capacity
        """
        if not operations:
            return
        limit = self.config.transaction_item_limit
        if len(operations) > limit:
            raise EntityValidationError(
                f"Transaction has {len(operations)} operations, limit is {limit}",
                code="TRANSACTION_TOO_LARGE",
                details={"operations": len(operations), "limit": limit},
            )
        transact_items = [self._transact_item(operation) for operation in operations]
        token = client_request_token or str(uuid.uuid4())
        logger.debug(
            "Submitting transaction",
            extra={"operations": len(transact_items), "client_request_token": token},
        )
        await self._call(
            "transact write items",
            self.client.transact_write_items,
            TransactItems=transact_items,
            ClientRequestToken=token,
        )
