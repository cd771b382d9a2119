"""
api/routes/v1/products.py -- Product and product-type endpoints.

Routes:
  GET    /api/v1/products         -- list products, newest first (all roles)
  POST   /api/v1/products         -- create product (ADMIN, EDITOR)
  DELETE /api/v1/products/{id}    -- delete product (ADMIN, EDITOR)
  GET    /api/v1/product-types    -- list product types (all roles)

A non-numeric {id} fails FastAPI's path validation, which api/main.py
renders as a 400 validation_error.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, ProductCreate, ProductResponse, ProductTypeResponse
from auth.dependencies import AccessGate, read_json_body
from auth.errors import ErrorKind, Rejection, RequestRejected, validation_error
from auth.models import Claims, Role
from inventory.models import Product
from inventory.store import InventoryStore

# Auth policy:
# - GET    /api/v1/products:        ADMIN, EDITOR, VIEWER
# - POST   /api/v1/products:        ADMIN, EDITOR
# - DELETE /api/v1/products/{id}:   ADMIN, EDITOR
# - GET    /api/v1/product-types:   ADMIN, EDITOR, VIEWER
router = APIRouter()

_readers = AccessGate(Role.ADMIN, Role.EDITOR, Role.VIEWER)
_writers = AccessGate(Role.ADMIN, Role.EDITOR)


@router.get("/products", response_model=list[ProductResponse])
def list_products(request: Request, identity: Claims = Depends(_readers)) -> list[ProductResponse]:
    inventory: InventoryStore = request.app.state.inventory
    return [ProductResponse.from_domain(p) for p in inventory.list_products()]


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    request: Request,
    identity: Claims = Depends(_writers),
    raw: dict = Depends(read_json_body),
) -> ProductResponse:
    """Create a product. The referenced product type must already exist."""
    body = ProductCreate.parse(raw)
    inventory: InventoryStore = request.app.state.inventory

    if inventory.get_type(body.type_id) is None:
        raise validation_error("Unknown product type.")

    product_id = inventory.create_product(
        Product(name=body.name, expiration=body.expiration, type_id=body.type_id)
    )
    return ProductResponse.from_domain(inventory.get_product(product_id))


@router.delete("/products/{product_id}", response_model=MessageResponse)
def delete_product(
    request: Request,
    product_id: int,
    identity: Claims = Depends(_writers),
) -> MessageResponse:
    inventory: InventoryStore = request.app.state.inventory
    if not inventory.delete_product(product_id):
        raise RequestRejected(Rejection(ErrorKind.NOT_FOUND, "Product not found."))
    return MessageResponse(message="Product deleted successfully.")


@router.get("/product-types", response_model=list[ProductTypeResponse])
def list_product_types(request: Request, identity: Claims = Depends(_readers)) -> list[ProductTypeResponse]:
    inventory: InventoryStore = request.app.state.inventory
    return [ProductTypeResponse.from_domain(t) for t in inventory.list_types()]
