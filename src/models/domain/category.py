"""Category domain model."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Category(BaseModel):
    """A node of the category tree.

    Attributes:
        id: Auto-increment category identifier
        name: Display name
        slug: Globally unique URL slug
        parent_id: Parent category, None for a root category
    """

    id: int = Field(..., description="Auto-increment category identifier")
    name: str = Field(..., min_length=1, description="Display name")
    slug: str = Field(..., min_length=1, description="Globally unique URL slug")
    description: Optional[str] = None
    parent_id: Optional[int] = Field(None, description="Parent category")
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
