"""DynamoDB implementation of the discount code repository."""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from aws_lambda_powertools.logging import Logger

from ..exceptions import ConditionFailedError, ConflictError, EntityValidationError
from ..models.domain.discount import DiscountCode
from ..models.storage.discount_record import DiscountCodeRecord
from ..models.storage.keys import OPEN_END_DATE, EntityPrefix, Index, primary_key
from ..models.storage.operations import Guard, QuerySpec, RowState, UpdateSpec
from ..services.counter import DISCOUNT_ID
from ..utils.pagination import Page, cursor_context
from ..utils.timestamps import as_utc, from_iso, to_iso, utc_now
from .dynamodb_base import DynamoDBRepository

logger = Logger()


def _check_window(valid_from: Optional[datetime], valid_until: Optional[datetime]) -> None:
    valid_from, valid_until = as_utc(valid_from), as_utc(valid_until)
    if valid_from and valid_until and valid_from > valid_until:
        raise EntityValidationError(
            "valid_from must not be after valid_until",
            code="INVALID_VALIDITY_WINDOW",
            details={"valid_from": to_iso(valid_from), "valid_until": to_iso(valid_until)},
        )


class DynamoDBDiscountCodeRepository(DynamoDBRepository[DiscountCode]):
    """Discount codes: ``DISCOUNT#<id>/METADATA``.

    GSI1 resolves a code case-insensitively; GSI2 partitions codes by the
    active flag and sorts them by expiry.
    """

    record = DiscountCodeRecord
    entity_name = "DiscountCode"
    counter_name = DISCOUNT_ID
    unique_field = "code"
    immutable_fields = frozenset({"id", "times_used", "created_at", "deleted_at"})

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        return primary_key(EntityPrefix.DISCOUNT, entity_id)

    def unique_partition(self, value: Any) -> str:
        return DiscountCodeRecord.code_partition(value)

    async def _before_create(self, values: Dict[str, Any]) -> None:
        _check_window(values.get("valid_from"), values.get("valid_until"))

    async def _before_update(self, current: DiscountCode, updated: DiscountCode) -> None:
        _check_window(updated.valid_from, updated.valid_until)

    async def find_by_code(self, code: str) -> Optional[DiscountCode]:
        """Code lookup, ignoring case."""
        return await self.find_by_unique_field(code)

    async def list_active(
        self,
        moment: Optional[datetime] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[DiscountCode]:
        """Codes redeemable at ``moment`` (default: now), soonest expiry first.

        The index excludes inactive and expired codes; codes not yet valid or
        used up are dropped from the fetched page. Without an explicit
        ``moment`` a cursor continues at the moment its first page used.
        """
        if moment is None and cursor:
            issued_at = cursor_context(cursor).get("moment")
            if issued_at:
                try:
                    moment = from_iso(issued_at)
                except ValueError as e:
                    raise EntityValidationError(
                        "Malformed pagination cursor",
                        code="INVALID_CURSOR",
                        details={"error": str(e)},
                    )
        moment = as_utc(moment) or utc_now()
        return await self._list(
            QuerySpec(
                pk_value=DiscountCodeRecord.active_partition(True),
                index=Index.GSI2,
                sk_between=(to_iso(moment), OPEN_END_DATE),
            ),
            cursor=cursor,
            page_size=page_size,
            predicate=lambda code: code.is_valid_at(moment),  # type: ignore[arg-type]
            context={"moment": to_iso(moment)},
        )

    async def redeem(self, discount_id: int, moment: Optional[datetime] = None) -> DiscountCode:
        """Count one use of a code.

        The increment is guarded in the store on the code being active, not
        deleted and below its usage cap, so concurrent redemptions never
        exceed ``max_uses``.

        Raises:
            EntityNotFoundError: If the code does not exist or is deleted
            ConflictError: If the code is inactive, outside its validity
                window or used up
        """
        moment = moment or utc_now()
        code = await self.get(discount_id)
        if not code.is_valid_at(moment):
            raise ConflictError(
                f"Discount code {code.code} cannot be redeemed",
                code="DISCOUNT_NOT_APPLICABLE",
                details={"discount_id": discount_id},
            )
        guards = [Guard(attribute="is_active", op="=", value=True)]
        if code.max_uses is not None:
            guards.append(Guard(attribute="times_used", op="<", value=code.max_uses))
        pk, sk = self.key_for(discount_id)
        try:
            item = await self.dynamodb_client.update_item(
                UpdateSpec(
                    pk=pk,
                    sk=sk,
                    set_fields={"updated_at": to_iso(utc_now())},
                    increments={"times_used": 1},
                    state=RowState.ACTIVE,
                    guards=guards,
                )
            )
        except ConditionFailedError as e:
            if not self._visible(e.existing_item):
                raise self._not_found(discount_id)
            logger.warning(
                "Discount redemption rejected",
                extra={"discount_id": discount_id, "times_used": (e.existing_item or {}).get("times_used")},
            )
            raise ConflictError(
                f"Discount code {code.code} is used up or inactive",
                code="DISCOUNT_EXHAUSTED",
                details={"discount_id": discount_id},
            )
        return self._decode(item)
