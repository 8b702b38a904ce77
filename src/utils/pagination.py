"""Opaque continuation tokens for list operations.

A cursor wraps the store's LastEvaluatedKey together with the scope of the
query that produced it (index name, partition value and sort key bounds).
Presenting a cursor to a different query is rejected rather than silently
returning a wrong page.
"""

import base64
import binascii
import json
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from ..exceptions import EntityValidationError

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a list operation.

    Attributes:
        items: Decoded entities on this page
        next_cursor: Token for the next page, None when exhausted or when the
            query cannot be continued
        count: Number of items on this page
    """

    items: List[T] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    count: int = 0


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else str(value)
    raise TypeError(f"Cannot encode {type(value).__name__} in a cursor")


def encode_cursor(
    last_evaluated_key: Optional[Dict[str, Any]],
    scope: str,
    context: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """Wrap a LastEvaluatedKey into an opaque token.

    Args:
        last_evaluated_key: Key returned by the store, or None
        scope: Identifier of the query (index, partition value and sort key bounds)
        context: Query parameters the next page must reuse, such as a
            moment fixed when the first page was issued

    Returns:
        URL-safe token, or None when there is no further page
    """
    if not last_evaluated_key:
        return None
    payload: Dict[str, Any] = {"s": scope, "k": last_evaluated_key}
    if context:
        payload["c"] = context
    encoded = json.dumps(payload, default=_json_default, separators=(",", ":"), sort_keys=True)
    return base64.urlsafe_b64encode(encoded.encode("utf-8")).decode("ascii").rstrip("=")


def _unwrap(token: str) -> Dict[str, Any]:
    padded = token + "=" * (-len(token) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeError) as e:
        raise EntityValidationError(
            "Malformed pagination cursor", code="INVALID_CURSOR", details={"error": str(e)}
        )
    if not isinstance(payload, dict) or not isinstance(payload.get("k"), dict):
        raise EntityValidationError("Malformed pagination cursor", code="INVALID_CURSOR")
    if not isinstance(payload.get("c", {}), dict):
        raise EntityValidationError("Malformed pagination cursor", code="INVALID_CURSOR")
    return payload


def cursor_context(token: Optional[str]) -> Dict[str, str]:
    """Query parameters stored in a token by :func:`encode_cursor`.

    Raises:
        EntityValidationError: If the token is malformed
    """
    if not token:
        return {}
    return _unwrap(token).get("c", {})


def decode_cursor(token: Optional[str], scope: str) -> Optional[Dict[str, Any]]:
    """Unwrap a token produced by :func:`encode_cursor` for the same scope.

    Raises:
        EntityValidationError: If the token is malformed or was issued for a
            different query
    """
    if not token:
        return None
    payload = _unwrap(token)
    if payload.get("s") != scope:
        raise EntityValidationError(
            "Pagination cursor does not belong to this query",
            code="INVALID_CURSOR",
            details={"expected_scope": scope},
        )
    return payload["k"]
