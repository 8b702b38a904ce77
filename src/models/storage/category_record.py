"""Category storage mapping."""

from typing import Dict, Optional, Tuple

from ..domain.category import Category
from ...utils.timestamps import to_iso
from .base_record import BaseRecord
from .keys import ROOT, EntityPrefix, EntityType, Index, index_key, pad, primary_key


class CategoryRecord(BaseRecord[Category]):
    """Category row.

    GSI1: slug lookup. GSI2: children of a parent (``ROOT`` for top-level
    categories), ordered by name.
    """

    entity_type = EntityType.CATEGORY
    model = Category

    @staticmethod
    def slug_partition(slug: str) -> str:
        return f"CATEGORY_SLUG#{slug}"

    @staticmethod
    def parent_partition(parent_id: Optional[int]) -> str:
        return f"CATEGORY_PARENT#{ROOT if parent_id is None else parent_id}"

    @classmethod
    def key(cls, entity: Category) -> Tuple[str, str]:
        return primary_key(EntityPrefix.CATEGORY, entity.id)

    @classmethod
    def index_attributes(cls, entity: Category) -> Dict[str, str]:
        return {
            **index_key(Index.GSI1, cls.slug_partition(entity.slug), to_iso(entity.created_at)),
            **index_key(
                Index.GSI2,
                cls.parent_partition(entity.parent_id),
                f"{entity.name.lower()}#{pad(entity.id)}",
            ),
        }
