"""Inventory service API built with FastAPI.

This module exposes the product catalog used by the orders web service
when it runs with HTTP adapters: product creation, lookup by name, bulk
lookup by ids and bulk quantity overwrite. Validation is performed with
Pydantic models, while persistence is delegated to the SQLAlchemy-backed
repository in ``repo.InventoryRepo``.
"""

import logging
import time
import uuid
from decimal import Decimal
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_serializer
from pythonjsonlogger import jsonlogger
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from repo import InventoryRepo, ProductAlreadyExists, UnknownProducts, engine, init_db

app = FastAPI(title="Inventory Service")

# Largest value an integer column holds on PostgreSQL.
MAX_QUANTITY = 2_147_483_647

logger = logging.getLogger("inventory")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)


@app.on_event("startup")
def _startup_db():
    # short active wait until the database accepts connections
    deadline = time.time() + 30
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            break
        except OperationalError:
            if time.time() > deadline:
                raise
            time.sleep(1)
    init_db()


class ProductIn(BaseModel):
    """Request body for product creation.

    Attributes:
        name: Unique product name.
        price: Non-negative unit price with at most 2 decimal places.
        quantity: Non-negative units in stock.
    """
    name: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(ge=0, le=MAX_QUANTITY)


class ProductOut(BaseModel):
    id: str
    name: str
    price: Decimal
    quantity: int

    @field_serializer("price")
    def serialize_price(self, v: Decimal) -> str:
        return f"{v:.2f}"


class ProductList(BaseModel):
    products: List[ProductOut]


class LookupRequest(BaseModel):
    """Request body for the bulk lookup endpoint."""
    ids: List[str]


class QuantityIn(BaseModel):
    id: str
    quantity: int = Field(ge=0, le=MAX_QUANTITY)


class QuantitiesRequest(BaseModel):
    """Request body for the bulk quantity overwrite endpoint.

    Each entry sets the absolute available quantity of a product.
    """
    products: List[QuantityIn] = Field(min_length=1)


class QuantitiesResponse(BaseModel):
    updated: int


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/products", response_model=ProductList)
def list_products(name: Optional[str] = None):
    """Find products by exact name (the only supported filter)."""
    if name is None:
        return ProductList(products=[])
    found = InventoryRepo().find_by_name(name)
    return ProductList(products=[found] if found else [])


@app.post("/products", response_model=ProductOut, status_code=201)
def create_product(req: ProductIn):
    try:
        return InventoryRepo().create(name=req.name, price=req.price, quantity=req.quantity)
    except ProductAlreadyExists:
        return JSONResponse(status_code=409, content={"detail": "PRODUCT_ALREADY_EXISTS"})


@app.post("/products/lookup", response_model=ProductList)
def lookup(req: LookupRequest):
    """Return the catalog entries for the given ids; unknown ids are skipped."""
    return ProductList(products=InventoryRepo().find_all_by_id(req.ids))


@app.post("/products/quantities", response_model=QuantitiesResponse)
def update_quantities(req: QuantitiesRequest):
    """Overwrite quantities for a batch of products.

    Returns:
        QuantitiesResponse: Number of products updated.

    Responds 404 with ``PRODUCTS_MISSING`` and the unknown ids when any
    product does not exist; nothing is written in that case.
    """
    items = [(it.id, it.quantity) for it in req.products]
    try:
        updated = InventoryRepo().update_quantity(items)
    except UnknownProducts as e:
        return JSONResponse(status_code=404, content={"detail": "PRODUCTS_MISSING", "ids": e.ids})
    return QuantitiesResponse(updated=updated)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"request_id": rid, "path": request.url.path, "method": request.method})
    response.headers["X-Request-ID"] = rid
    return response
