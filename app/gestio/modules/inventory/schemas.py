from __future__ import annotations

from datetime import datetime

from pydantic import EmailStr, Field, HttpUrl, field_validator

from app.gestio.schemas import ApiModel, OutModel


class CategoryIn(ApiModel):
    name: str = Field(min_length=2)
    description: str | None = None
    company_id: int | None = None


class CategoryOut(OutModel):
    id: int
    company_id: int
    name: str
    description: str | None
    created_at: datetime


class WarehouseIn(ApiModel):
    name: str = Field(min_length=2)
    code: str | None = None
    description: str | None = None
    location: str = Field(min_length=2)
    address: str | None = None
    contact_name: str | None = None
    contact_email: EmailStr | None = None
    contact_phone: str | None = None
    company_id: int | None = None


class WarehouseOut(OutModel):
    id: int
    company_id: int
    name: str
    code: str | None
    description: str | None
    location: str
    address: str | None
    contact_name: str | None
    contact_email: str | None
    contact_phone: str | None
    is_active: bool
    created_at: datetime


class ProductIn(ApiModel):
    name: str = Field(min_length=2)
    description: str | None = None
    sku: str | None = None
    barcode: str | None = None
    price: float = Field(ge=0)
    cost: float | None = Field(default=None, ge=0)
    category_id: int | None = None
    company_id: int | None = None
    unit: str | None = None
    weight: float | None = Field(default=None, ge=0)
    dimensions: str | None = None
    image_url: HttpUrl | None = None
    is_active: bool = True
    min_stock_level: int | None = Field(default=None, ge=0)
    max_stock_level: int | None = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list)


class ProductUpdateIn(ApiModel):
    name: str | None = Field(default=None, min_length=2)
    description: str | None = None
    sku: str | None = None
    barcode: str | None = None
    price: float | None = Field(default=None, ge=0)
    cost: float | None = Field(default=None, ge=0)
    category_id: int | None = None
    unit: str | None = None
    weight: float | None = Field(default=None, ge=0)
    dimensions: str | None = None
    image_url: HttpUrl | None = None
    is_active: bool | None = None
    min_stock_level: int | None = Field(default=None, ge=0)
    max_stock_level: int | None = Field(default=None, ge=0)
    tags: list[str] | None = None


class ProductOut(OutModel):
    id: int
    company_id: int
    category_id: int | None
    name: str
    description: str | None
    sku: str | None
    barcode: str | None
    price: float
    cost: float | None
    unit: str | None
    weight: float | None
    dimensions: str | None
    image_url: str | None
    is_active: bool
    min_stock_level: int | None
    max_stock_level: int | None
    tags: list[str] | None
    created_at: datetime
    updated_at: datetime
    category: CategoryOut | None


class StockMovementIn(ApiModel):
    product_id: int
    warehouse_id: int
    quantity: int
    reason: str | None = None
    reference: str | None = None
    notes: str | None = None
    purchase_order_id: int | None = None
    unit_price: float | None = Field(default=None, ge=0)

    @field_validator("quantity")
    @classmethod
    def _non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("quantity must not be zero")
        return v


class MovementProductOut(OutModel):
    id: int
    name: str
    sku: str | None


class MovementWarehouseOut(OutModel):
    id: int
    name: str


class StockMovementOut(OutModel):
    id: int
    product_id: int
    warehouse_id: int
    purchase_order_id: int | None
    user_id: int | None
    quantity: int
    unit_price: float | None
    reason: str | None
    reference: str | None
    notes: str | None
    created_at: datetime
    product: MovementProductOut
    warehouse: MovementWarehouseOut
