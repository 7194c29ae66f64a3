"""
API routes: readings, exchange (orders, offers, transactions), catalog
(products, sales, reconciliation) and read-only summaries.
The caller identity comes from the X-Caller-Id header (configurable).
"""
import os
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.security import APIKeyHeader

from grainchain.schema import (
    ReadingWrite,
    ReadingResponse,
    OrderCreate,
    OrderResponse,
    OfferCreate,
    OfferResponse,
    TransactionResponse,
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    PurchaseRequest,
    ReconcileRequest,
    SaleResponse,
    SaleTraceResponse,
    SummaryResponse,
)
from grainchain.services.catalog import Catalog
from grainchain.services.exchange import Exchange
from grainchain.services.listing import LedgerQueries
from grainchain.services.reading_store import ReadingStore

logger = logging.getLogger(__name__)
router = APIRouter()

CALLER_HEADER = APIKeyHeader(name=os.environ.get("CALLER_HEADER", "X-Caller-Id"), auto_error=False)

_reading_store = ReadingStore()
_exchange = Exchange()
_catalog = Catalog()
_queries = LedgerQueries()


def get_reading_store() -> ReadingStore:
    return _reading_store


def get_exchange() -> Exchange:
    return _exchange


def get_catalog() -> Catalog:
    return _catalog


def get_queries() -> LedgerQueries:
    return _queries


def get_caller(caller: Optional[str] = Depends(CALLER_HEADER)) -> str:
    """Caller identity for owner-gated routes; missing header is a 401."""
    if not caller or not caller.strip():
        raise HTTPException(status_code=401, detail="Caller identity header is required")
    return caller.strip()


# --- Readings ---
@router.put("/readings/{subject}", response_model=ReadingResponse)
def write_reading(subject: str, body: ReadingWrite, store: ReadingStore = Depends(get_reading_store)):
    """Overwrite the reading for any subject; no ownership check."""
    store.write(subject, body.humidity, body.moisture_content, body.storage_conditions)
    return ReadingResponse(subject=subject, **store.read(subject))


@router.get("/readings/{subject}", response_model=ReadingResponse)
def read_reading(subject: str, store: ReadingStore = Depends(get_reading_store)):
    return ReadingResponse(subject=subject, **store.read(subject))


# --- Orders ---
@router.post("/orders", status_code=201)
def create_order(body: OrderCreate, caller: str = Depends(get_caller), exchange: Exchange = Depends(get_exchange)):
    return {"order_id": exchange.create_order(caller, body.quantity_kg)}


@router.get("/orders", response_model=list[OrderResponse])
def list_orders(status: Optional[str] = None, queries: LedgerQueries = Depends(get_queries)):
    return [OrderResponse(**o) for o in queries.list_orders(status)]


@router.get("/orders/{order_id}", response_model=OrderResponse)
def view_order(order_id: int, exchange: Exchange = Depends(get_exchange)):
    return OrderResponse(**exchange.view_order(order_id))


@router.post("/orders/{order_id}/cancel")
def cancel_order(order_id: int, caller: str = Depends(get_caller), exchange: Exchange = Depends(get_exchange)):
    return {"order_id": exchange.cancel_order(caller, order_id)}


@router.get("/orders/{order_id}/transactions", response_model=list[TransactionResponse])
def order_transactions(order_id: int, exchange: Exchange = Depends(get_exchange)):
    return [TransactionResponse(**t) for t in exchange.transactions_for_order(order_id)]


# --- Offers ---
@router.post("/orders/{order_id}/offers", status_code=201)
def create_offer(
    order_id: int,
    body: OfferCreate,
    caller: str = Depends(get_caller),
    exchange: Exchange = Depends(get_exchange),
):
    offer_id = exchange.create_offer(caller, order_id, body.harvest_date, body.price_per_kg, body.origin)
    return {"offer_id": offer_id}


@router.get("/orders/{order_id}/offers", response_model=list[OfferResponse])
def list_active_offers(order_id: int, exchange: Exchange = Depends(get_exchange)):
    """InProgress offers against one order."""
    return [OfferResponse(**o) for o in exchange.list_active_offers(order_id)]


@router.get("/offers/{offer_id}", response_model=OfferResponse)
def view_offer(offer_id: int, exchange: Exchange = Depends(get_exchange)):
    return OfferResponse(**exchange.view_offer(offer_id))


@router.post("/offers/{offer_id}/cancel")
def cancel_offer(offer_id: int, caller: str = Depends(get_caller), exchange: Exchange = Depends(get_exchange)):
    return {"offer_id": exchange.cancel_offer(caller, offer_id)}


@router.post("/orders/{order_id}/offers/{offer_id}/accept")
def accept_offer(
    order_id: int,
    offer_id: int,
    caller: str = Depends(get_caller),
    exchange: Exchange = Depends(get_exchange),
):
    return {"transaction_id": exchange.accept_offer(caller, order_id, offer_id)}


@router.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(exchange: Exchange = Depends(get_exchange)):
    return [TransactionResponse(**t) for t in exchange.list_all_transactions()]


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def view_transaction(transaction_id: int, exchange: Exchange = Depends(get_exchange)):
    tx = exchange.get_transaction(transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return TransactionResponse(**tx)


# --- Products ---
@router.post("/products", status_code=201)
def create_product(body: ProductCreate, caller: str = Depends(get_caller), catalog: Catalog = Depends(get_catalog)):
    catalog.create_product(
        caller,
        body.product_type,
        body.wheat_type,
        body.brand,
        body.origin,
        body.price,
        body.description,
        body.stock,
    )
    return {"status": "ok", "product_type": body.product_type}


@router.get("/products", response_model=list[ProductResponse])
def view_products(
    product_type: int = Query(0, alias="type", ge=0, description="Product type, 0 for all"),
    catalog: Catalog = Depends(get_catalog),
):
    return [ProductResponse(**p) for p in catalog.list_products(product_type)]


@router.get("/products/{product_type}", response_model=ProductResponse)
def view_product(product_type: int, catalog: Catalog = Depends(get_catalog)):
    return ProductResponse(**catalog.list_products(product_type)[0])


@router.patch("/products/{product_type}")
def update_product(
    product_type: int,
    body: ProductUpdate,
    caller: str = Depends(get_caller),
    catalog: Catalog = Depends(get_catalog),
):
    catalog.update_product(caller, product_type, **body.model_dump())
    return {"status": "ok", "product_type": product_type}


@router.delete("/products/{product_type}")
def remove_product(product_type: int, caller: str = Depends(get_caller), catalog: Catalog = Depends(get_catalog)):
    catalog.remove_product(caller, product_type)
    return {"status": "ok", "product_type": product_type}


@router.post("/products/{product_type}/purchase")
def purchase(
    product_type: int,
    body: PurchaseRequest,
    caller: str = Depends(get_caller),
    catalog: Catalog = Depends(get_catalog),
):
    catalog.purchase(caller, product_type, body.quantity)
    return {"status": "ok"}


# --- Sales ---
@router.get("/sales", response_model=list[SaleResponse])
def list_sales(status: Optional[str] = None, queries: LedgerQueries = Depends(get_queries)):
    return [SaleResponse(**s) for s in queries.list_sales(status)]


@router.get("/sales/{sale_id}", response_model=SaleResponse)
def view_sale(sale_id: int, catalog: Catalog = Depends(get_catalog)):
    return SaleResponse(**catalog.view_sale(sale_id))


@router.get("/sales/{sale_id}/trace", response_model=SaleTraceResponse)
def trace_sale(sale_id: int, queries: LedgerQueries = Depends(get_queries)):
    return SaleTraceResponse(**queries.trace_sale(sale_id))


@router.post("/sales/{sale_id}/reconcile")
def reconcile(
    sale_id: int,
    body: ReconcileRequest,
    caller: str = Depends(get_caller),
    catalog: Catalog = Depends(get_catalog),
):
    """Attach exchange transaction ids as supplied; they are not checked."""
    catalog.reconcile(caller, sale_id, body.offer_ids)
    return {"status": "ok", "sale_id": sale_id}


@router.post("/sales/{sale_id}/reconcile-verified")
def reconcile_verified(
    sale_id: int,
    body: ReconcileRequest,
    caller: str = Depends(get_caller),
    catalog: Catalog = Depends(get_catalog),
):
    catalog.reconcile_verified(caller, sale_id, body.offer_ids)
    return {"status": "ok", "sale_id": sale_id}


@router.get("/summary", response_model=SummaryResponse)
def summary(queries: LedgerQueries = Depends(get_queries)):
    return SummaryResponse(**queries.summary())
