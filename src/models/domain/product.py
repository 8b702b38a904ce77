"""Product aggregate: product, variants, images and category links."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .enums import ProductStatus


class Product(BaseModel):
    """A sellable catalog product.

    This is the aggregate root for the catalog. Variants and images live under
    the same partition and are fetched by explicit follow-up calls.

    Attributes:
        id: Auto-increment product identifier
        slug: Globally unique URL slug
        title: Display title
        base_price: Price before variant adjustments
        currency: ISO currency code
        status: Publication status
        character_id: Optional character the product is associated with
        deleted_at: Soft-delete marker
    """

    id: int = Field(..., description="Auto-increment product identifier")
    slug: str = Field(..., min_length=1, description="Globally unique URL slug")
    title: str = Field(..., min_length=1, description="Display title")
    short_description: Optional[str] = Field(None, description="Short description")
    long_description: Optional[str] = Field(None, description="Long description")
    base_price: Decimal = Field(..., ge=0, description="Price before variant adjustments")
    currency: str = Field(default="EUR", description="ISO currency code")
    sku: Optional[str] = Field(None, description="Stock keeping unit")
    gtin: Optional[str] = Field(None, description="Global trade item number")
    status: ProductStatus = Field(default=ProductStatus.DRAFT, description="Publication status")
    character_id: Optional[int] = Field(None, description="Associated character")
    character_value: Optional[str] = Field(None, description="Free-text character label")
    etsy_link: Optional[str] = Field(None, description="Marketplace listing URL")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    deleted_at: Optional[datetime] = Field(None, description="Soft-delete timestamp")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class ProductVariant(BaseModel):
    """A purchasable variant of a product carrying its own stock level."""

    id: int = Field(..., description="Auto-increment variant identifier")
    product_id: int = Field(..., description="Parent product")
    sku: str = Field(..., min_length=1, description="Globally unique variant SKU")
    name: str = Field(..., min_length=1, description="Variant name")
    attributes: Optional[Dict[str, Any]] = Field(None, description="Free-form attributes")
    price_adjustment: Decimal = Field(default=Decimal("0"), description="Added to base price")
    stock: int = Field(default=0, ge=0, description="Units in stock")
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class ProductImage(BaseModel):
    """An image of a product, ordered by position."""

    id: int = Field(..., description="Auto-increment image identifier")
    product_id: int = Field(..., description="Parent product")
    url: str = Field(..., min_length=1, description="Storage key or absolute URL")
    alt_text: Optional[str] = None
    position: int = Field(default=0, ge=0, description="Display order")
    created_at: datetime
    updated_at: datetime


class ProductCategoryLink(BaseModel):
    """Membership of a product in a category."""

    product_id: int
    category_id: int
    created_at: datetime
