"""
API request and response models for the catalog REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two: request models hand plain attribute dicts to
the services, response models are built with the from_domain() factories.

Request models are the validation rule tables. FastAPI validates a body
against them before the handler runs; every violation is collected and
api/main.py reports them together as
    {field, message, value}
entries in a 400 envelope.

Every JSON response body -- success or failure -- is an Envelope:
    {success, message?, token?, count?, data?, errors?, error?}
Absent members are omitted rather than sent as null.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Any, Literal, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from auth.models import User
from catalog.models import Product

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CategoryEnum(str, Enum):
    """Must list exactly catalog.models.CATEGORIES."""

    Electronics = "Electronics"
    Clothing = "Clothing"
    Books = "Books"
    Home = "Home"
    Sports = "Sports"
    Other = "Other"


# ---------------------------------------------------------------------------
# Shared field types
# ---------------------------------------------------------------------------

_PASSWORD_COMPLEXITY = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
# bcrypt refuses secrets above 72 bytes.
_PASSWORD_MAX_BYTES = 72


def _normalize_email(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _finite_number(value: Any) -> Any:
    """Reject booleans and integers too large for a float before float parsing."""
    if isinstance(value, bool):
        raise PydanticCustomError("float_type", "Price must be a number")
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            raise PydanticCustomError("float_parsing", "Price is too large") from None
    return value


_Email = Annotated[EmailStr, BeforeValidator(_normalize_email)]
_UserName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
_ProductName = Annotated[str, Field(min_length=2, max_length=100)]
_Price = Annotated[float, BeforeValidator(_finite_number), Field(ge=0, allow_inf_nan=False)]
_Description = Annotated[str, Field(max_length=1000)]


# ---------------------------------------------------------------------------
# Request models -- auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register.

    Email is trimmed and lowercased before the shape check, so everything
    downstream (duplicate check, UNIQUE index, login lookup) sees one form.
    The password is never stripped.
    """

    name: _UserName
    email: _Email
    password: str = Field(min_length=6)
    role: Optional[Literal["user", "admin"]] = None

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value.encode("utf-8")) > _PASSWORD_MAX_BYTES:
            raise PydanticCustomError("password_too_long", "Password cannot exceed 72 bytes")
        if not _PASSWORD_COMPLEXITY.search(value):
            raise PydanticCustomError(
                "password_strength",
                "Password must contain at least one lowercase letter, one uppercase letter, and one number",
            )
        return value


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    email: _Email
    password: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Request models -- products
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    """Request body for POST /api/products. Keys are camelCase on the wire."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: _ProductName
    price: _Price
    category: CategoryEnum
    description: _Description = ""
    in_stock: bool = Field(default=True, alias="inStock")

    def to_fields(self) -> dict[str, Any]:
        """Product attribute values, defaults included."""
        return self.model_dump(mode="json")


class ProductUpdate(BaseModel):
    """Request body for PUT /api/products/{id}.

    Every field is optional, but a field that is present is held to the same
    rules as on create and may not be null. An empty body is rejected.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: Optional[_ProductName] = None
    price: Optional[_Price] = None
    category: Optional[CategoryEnum] = None
    description: Optional[_Description] = None
    in_stock: Optional[bool] = Field(default=None, alias="inStock")

    @model_validator(mode="after")
    def require_changes(self) -> "ProductUpdate":
        if not self.model_fields_set:
            raise PydanticCustomError("empty_update", "At least one product field must be provided")
        fields = type(self).model_fields
        nulls = sorted(fields[name].alias or name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise PydanticCustomError("null_field", "{fields} cannot be null", {"fields": ", ".join(nulls)})
        return self

    def to_changes(self) -> dict[str, Any]:
        """Product attribute values for the fields the client actually sent."""
        return self.model_dump(mode="json", exclude_unset=True)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class Envelope(BaseModel):
    """Uniform wrapper for every response body."""

    success: bool
    message: Optional[str] = None
    token: Optional[str] = None
    count: Optional[int] = None
    data: Any = None
    # Field-level violations: [{field, message, value}]
    errors: Optional[list[dict[str, Any]]] = None
    # Raw exception text; only populated in development mode.
    error: Optional[str] = None


def envelope(**fields: Any) -> dict[str, Any]:
    """Build an Envelope and dump it as a JSON-ready dict without null members."""
    return Envelope(**fields).model_dump(exclude_none=True)


class UserOut(BaseModel):
    """Public view of an account. The password hash has no field here."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    email: str
    role: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @classmethod
    def from_domain(cls, user: User) -> "UserOut":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role, created_at=user.created_at)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ProductOut(BaseModel):
    """Public view of a product, camelCase on the wire."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    price: float
    formatted_price: str = Field(alias="formattedPrice")
    is_expensive: bool = Field(alias="isExpensive")
    description: str
    category: str
    in_stock: bool = Field(alias="inStock")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @classmethod
    def from_domain(cls, product: Product) -> "ProductOut":
        # Product.to_dict() is the same shape real-time events carry.
        return cls.model_validate(product.to_dict())

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
