"""
Pydantic schemas for API request/response validation.
"""
from typing import Optional
from pydantic import BaseModel, Field

from grainchain.utils import MAX_SQL_INT


# --- Readings ---
class ReadingWrite(BaseModel):
    """Request body for PUT /readings/{subject}."""
    humidity: int = Field(..., ge=0, le=MAX_SQL_INT)
    moisture_content: int = Field(..., ge=0, le=MAX_SQL_INT)
    storage_conditions: int = Field(..., ge=0, le=MAX_SQL_INT)


class ReadingResponse(BaseModel):
    subject: str
    humidity: int
    moisture_content: int
    storage_conditions: int


# --- Exchange ---
class OrderCreate(BaseModel):
    """Request body for POST /orders."""
    quantity_kg: int = Field(..., le=MAX_SQL_INT, description="Quantity of wheat in kilograms, > 0")


class OrderResponse(BaseModel):
    id: int
    quantity_kg: int
    status: str
    owner: str


class OfferCreate(BaseModel):
    """Request body for POST /orders/{order_id}/offers."""
    harvest_date: str = ""
    price_per_kg: int = Field(..., le=MAX_SQL_INT, description="Price per kilogram, > 0")
    origin: str = ""


class OfferResponse(BaseModel):
    id: int
    order_id: int
    harvest_date: str
    price_per_kg: int
    origin: str
    status: str
    owner: str


class TransactionResponse(BaseModel):
    """Exchange transaction created by an accepted offer."""
    id: int
    order_id: int
    offer_id: int
    timestamp: Optional[str] = None
    farmer: str
    processor: str


# --- Catalog ---
class ProductCreate(BaseModel):
    """Request body for POST /products."""
    product_type: int = Field(..., ge=1, le=MAX_SQL_INT)
    wheat_type: str = ""
    brand: str = ""
    origin: str = ""
    price: int = Field(0, ge=0, le=MAX_SQL_INT)
    description: str = ""
    stock: int = Field(0, ge=0, le=MAX_SQL_INT)


class ProductUpdate(BaseModel):
    """Request body for PATCH /products/{type}. Omitted, 0 or "" leaves a field unchanged."""
    wheat_type: Optional[str] = None
    brand: Optional[str] = None
    origin: Optional[str] = None
    price: Optional[int] = Field(None, ge=0, le=MAX_SQL_INT)
    description: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0, le=MAX_SQL_INT)


class ProductResponse(BaseModel):
    product_type: int
    wheat_type: str
    brand: str
    origin: str
    description: str
    price: int
    stock: int
    owner: str


class PurchaseRequest(BaseModel):
    quantity: int = Field(..., le=MAX_SQL_INT)


class ReconcileRequest(BaseModel):
    """Exchange transaction ids to attach to a sale."""
    offer_ids: list[int] = Field(default_factory=list)


class SaleResponse(BaseModel):
    id: int
    product_type: int
    quantity: int
    offer_ids: list[int]
    status: str
    customer: str
    retailer: str


class SaleTraceResponse(BaseModel):
    sale: SaleResponse
    transactions: list[dict]
    unknown_ids: list[int]


class SummaryResponse(BaseModel):
    orders: dict[str, int]
    offers: dict[str, int]
    sales: dict[str, int]
    transactions: int
    products: int
