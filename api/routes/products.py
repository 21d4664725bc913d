"""
api/routes/products.py -- Product catalog endpoints.

Routes:
  GET    /api/products        -- list, filtered by query (public)
  GET    /api/products/{id}   -- detail (public)
  POST   /api/products        -- create (authenticated)
  PUT    /api/products/{id}   -- partial update (authenticated)
  DELETE /api/products/{id}   -- delete (admin)

List query parameters: category, name (case-insensitive substring), inStock
(true/false), minPrice, maxPrice (inclusive).

Bodies are validated by the request models in api/models.py before the
handler runs. The handlers contain no error handling; ProductService raises
from the taxonomy in core/errors.py and api/main.py turns that into the
envelope.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.models import ProductCreate, ProductOut, ProductUpdate, envelope
from auth.dependencies import get_current_user, require_roles
from auth.models import ROLE_ADMIN, User
from catalog.models import ProductFilters
from catalog.service import ProductService
from core.errors import ValidationFailed

router = APIRouter()


def _service(request: Request) -> ProductService:
    return request.app.state.products


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def list_filters(
    category: Optional[str] = Query(None),
    name: Optional[str] = Query(None),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0, allow_inf_nan=False),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0, allow_inf_nan=False),
) -> ProductFilters:
    """Query string -> ProductFilters. Blank text filters are ignored."""
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationFailed(
            errors=[{"field": "minPrice", "message": "minPrice cannot be greater than maxPrice", "value": min_price}]
        )
    return ProductFilters(
        category=_blank_to_none(category),
        name=_blank_to_none(name),
        in_stock=in_stock,
        min_price=min_price,
        max_price=max_price,
    )


@router.get("/products")
def list_products(request: Request, filters: ProductFilters = Depends(list_filters)) -> dict:
    """Return products matching the query filters, newest first."""
    products = _service(request).list(filters)
    return envelope(success=True, count=len(products), data=[ProductOut.from_domain(p).dump() for p in products])


@router.get("/products/{product_id}")
def get_product(request: Request, product_id: str) -> dict:
    product = _service(request).get(product_id)
    return envelope(success=True, data=ProductOut.from_domain(product).dump())


@router.post("/products", status_code=201)
def create_product(
    request: Request,
    body: ProductCreate,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    product = _service(request).create(body.to_fields(), actor=current_user.name)
    return JSONResponse(
        status_code=201,
        content=envelope(
            success=True,
            message="Product created successfully",
            data=ProductOut.from_domain(product).dump(),
        ),
    )


@router.put("/products/{product_id}")
def update_product(
    request: Request,
    product_id: str,
    body: ProductUpdate,
    current_user: User = Depends(get_current_user),
) -> dict:
    """Change only the fields present in the body."""
    product = _service(request).update(product_id, body.to_changes(), actor=current_user.name)
    return envelope(success=True, message="Product updated successfully", data=ProductOut.from_domain(product).dump())


@router.delete("/products/{product_id}")
def delete_product(
    request: Request,
    product_id: str,
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
) -> dict:
    """Delete a product and return it as it was. Admin only."""
    product = _service(request).delete(product_id, actor=current_user.name)
    return envelope(success=True, message="Product deleted successfully", data=ProductOut.from_domain(product).dump())
