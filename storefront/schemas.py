"""
Input schemas, one per mutating operation.

Every payload coming from a form goes through `parse_input`, which turns a
pydantic failure into a single `ValidationError` keyed by field name.
"""

from decimal import Decimal
from typing import Any, Literal, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from storefront.exceptions import ValidationError
from storefront.models.order import OrderStatus


SchemaT = TypeVar("SchemaT", bound=BaseModel)


class CartAddInput(BaseModel):
    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)


class CartUpdateInput(BaseModel):
    quantity: int = Field(..., ge=1)


class CheckoutCompleteInput(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=255)


class OrderStoreInput(BaseModel):
    payment_reference: str = Field(..., min_length=1, max_length=255)


class OrderStatusInput(BaseModel):
    status: OrderStatus


class ProductInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    stock_quantity: int = Field(..., ge=0)
    image_url: str | None = Field(None, max_length=255)


class RegisterInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class ListingQuery(BaseModel):
    """Query parameters shared by the paginated listings."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    search: str = ""
    sort: str = "id"
    direction: Literal["asc", "desc"] = "desc"
    per_page: int = Field(10, ge=1, le=100, alias="perPage")
    page: int = Field(1, ge=1)
    status: str = ""
    filter: str = ""


def _field_name(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) if loc else "__root__"


def parse_input(schema: type[SchemaT], data: dict[str, Any]) -> SchemaT:
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as exc:
        errors: dict[str, str] = {}
        for err in exc.errors():
            errors.setdefault(_field_name(err.get("loc", ())), err.get("msg", "Invalid value"))
        raise ValidationError(errors) from exc
