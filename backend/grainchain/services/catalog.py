"""
Retailer-Customer Exchange: retailer catalog products, customer sales and
the reconciliation step that attaches exchange transaction ids to a sale.

Trust boundary: ``reconcile`` records whatever transaction ids the retailer
supplies without looking at the exchange ledger. ``reconcile_verified`` is
the stricter variant and checks the ids exist.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import select

from grainchain.db import ledger_session
from grainchain.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from grainchain.lifecycle import SaleStatus, require_transition
from grainchain.models import ExchangeTransaction, Product, ProductIndex, Sale
from grainchain.utils import (
    ZERO_IDENTITY,
    is_storable_id,
    require_caller,
    require_unsigned,
    unset_if_sentinel,
)

logger = logging.getLogger(__name__)

PRODUCT_TEXT_FIELDS = ("wheat_type", "brand", "origin", "description")
PRODUCT_NUMBER_FIELDS = ("price", "stock")


def product_exists(product: Optional[Product]) -> bool:
    return product is not None and product.owner != ZERO_IDENTITY


def product_to_dict(product: Product) -> dict:
    return {
        "product_type": product.product_type,
        "wheat_type": product.wheat_type,
        "brand": product.brand,
        "origin": product.origin,
        "description": product.description,
        "price": product.price,
        "stock": product.stock,
        "owner": product.owner,
    }


def sale_to_dict(sale: Sale) -> dict:
    return {
        "id": sale.id,
        "product_type": sale.product_type,
        "quantity": sale.quantity,
        "offer_ids": list(sale.offer_ids or []),
        "status": sale.status.value,
        "customer": sale.customer,
        "retailer": sale.retailer,
    }


def _clean_id_list(ids: Iterable[int]) -> list[int]:
    cleaned = []
    for value in ids or []:
        cleaned.append(require_unsigned("offer_ids[]", value))
    return cleaned


class Catalog:
    """Aggregate root for products and sales."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    # =========================
    # LOOKUP HELPERS
    # =========================
    @staticmethod
    def _get_product(db, product_type: int) -> Product:
        product = db.get(Product, product_type) if is_storable_id(product_type) else None
        if not product_exists(product):
            raise NotFoundError(f"Product {product_type} not found", product_type=product_type)
        return product

    @staticmethod
    def _get_sale(db, sale_id: int) -> Sale:
        sale = db.get(Sale, sale_id) if is_storable_id(sale_id) else None
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} not found", sale_id=sale_id)
        return sale

    @staticmethod
    def _require_retailer(product: Product, caller: str, **context) -> None:
        if product.owner != caller:
            logger.warning("owner_check_failed", extra={"product_type": product.product_type, "caller": caller})
            raise AuthorizationError(
                f"Caller is not the retailer of product {product.product_type}",
                caller=caller,
                **context,
            )

    # =========================
    # PRODUCTS
    # =========================
    def create_product(
        self,
        caller: str,
        product_type: int,
        wheat_type: str,
        brand: str,
        origin: str,
        price: int,
        description: str,
        stock: int,
    ) -> None:
        caller = require_caller(caller)
        require_unsigned("product_type", product_type, positive=True)
        require_unsigned("price", price)
        require_unsigned("stock", stock)
        with ledger_session(self._session_factory) as db:
            product = db.get(Product, product_type)
            if product_exists(product):
                raise StateError(f"Product {product_type} already exists", product_type=product_type)
            if product is None:
                product = Product(product_type=product_type)
                db.add(product)
            product.wheat_type = wheat_type or ""
            product.brand = brand or ""
            product.origin = origin or ""
            product.description = description or ""
            product.price = price
            product.stock = stock
            product.owner = caller
            # A removed type keeps its index entry; re-creating it reuses that entry.
            indexed = db.scalar(select(ProductIndex).where(ProductIndex.product_type == product_type))
            if indexed is None:
                db.add(ProductIndex(product_type=product_type))
        logger.info("product_created", extra={"product_type": product_type, "owner": caller})

    def update_product(
        self,
        caller: str,
        product_type: int,
        wheat_type: Optional[str] = None,
        brand: Optional[str] = None,
        origin: Optional[str] = None,
        price: Optional[int] = None,
        description: Optional[str] = None,
        stock: Optional[int] = None,
    ) -> None:
        """
        Partial update by the product's owner. A zero or empty value means
        "leave unchanged", so a field cannot be set to zero or emptied here.
        """
        caller = require_caller(caller)
        changes = {
            "wheat_type": unset_if_sentinel(wheat_type),
            "brand": unset_if_sentinel(brand),
            "origin": unset_if_sentinel(origin),
            "description": unset_if_sentinel(description),
            "price": unset_if_sentinel(price),
            "stock": unset_if_sentinel(stock),
        }
        for name in PRODUCT_NUMBER_FIELDS:
            if changes[name] is not None:
                require_unsigned(name, changes[name])
        with ledger_session(self._session_factory) as db:
            product = self._get_product(db, product_type)
            self._require_retailer(product, caller, product_type=product_type)
            self._apply_changes(product, changes)
        logger.info(
            "product_updated",
            extra={"product_type": product_type, "fields": sorted(k for k, v in changes.items() if v is not None)},
        )

    @staticmethod
    def _apply_changes(product: Product, changes: dict) -> None:
        """Write every field whose value is not None."""
        for name, value in changes.items():
            if value is not None:
                setattr(product, name, value)

    def remove_product(self, caller: str, product_type: int) -> None:
        """Reset every field to its zero value; the index entry stays behind."""
        caller = require_caller(caller)
        with ledger_session(self._session_factory) as db:
            product = self._get_product(db, product_type)
            self._require_retailer(product, caller, product_type=product_type)
            for name in PRODUCT_TEXT_FIELDS:
                setattr(product, name, "")
            for name in PRODUCT_NUMBER_FIELDS:
                setattr(product, name, 0)
            product.owner = ZERO_IDENTITY
        logger.info("product_removed", extra={"product_type": product_type})

    def list_products(self, product_type: int = 0) -> list[dict]:
        """
        ``0`` lists every existing product in index order, re-checking each
        index entry; any other value returns that one product or NotFoundError.
        """
        with ledger_session(self._session_factory) as db:
            if product_type:
                return [product_to_dict(self._get_product(db, product_type))]
            items = []
            for entry in db.scalars(select(ProductIndex).order_by(ProductIndex.id.asc())).all():
                product = db.get(Product, entry.product_type)
                if product_exists(product):
                    items.append(product_to_dict(product))
            return items

    # =========================
    # SALES
    # =========================
    def purchase(self, caller: str, product_type: int, quantity: int) -> None:
        """
        Take ``quantity`` out of stock and open an Incomplete sale for the caller.
        The new sale id is the next value of the sale sequence.
        """
        caller = require_caller(caller)
        require_unsigned("quantity", quantity, positive=True)
        with ledger_session(self._session_factory) as db:
            product = self._get_product(db, product_type)
            if product.stock < quantity:
                raise ValidationError(
                    f"Insufficient stock for product {product_type}: {product.stock} < {quantity}",
                    product_type=product_type,
                    stock=product.stock,
                    quantity=quantity,
                )
            product.stock -= quantity
            sale = Sale(
                product_type=product_type,
                quantity=quantity,
                offer_ids=[],
                status=SaleStatus.INCOMPLETE,
                customer=caller,
                retailer=product.owner,
            )
            db.add(sale)
            db.flush()
            sale_id = sale.id
        logger.info("sale_created", extra={"sale_id": sale_id, "product_type": product_type, "quantity": quantity})

    def _reconcile(self, caller: str, sale_id: int, offer_ids: list[int], verify: bool) -> None:
        caller = require_caller(caller)
        offer_ids = _clean_id_list(offer_ids)
        with ledger_session(self._session_factory) as db:
            sale = self._get_sale(db, sale_id)
            # Authorization follows the product's current owner, not the sale's recorded retailer.
            product = db.get(Product, sale.product_type)
            if not product_exists(product) or product.owner != caller:
                logger.warning("owner_check_failed", extra={"sale_id": sale_id, "caller": caller})
                raise AuthorizationError(
                    f"Caller is not the retailer of product {sale.product_type} for sale {sale_id}",
                    caller=caller,
                    sale_id=sale_id,
                )
            require_transition(entity="Sale", entity_id=sale_id, current=sale.status, target=SaleStatus.COMPLETE)
            if verify:
                self._verify_transaction_ids(db, offer_ids)
            sale.offer_ids = list(offer_ids)
            sale.status = SaleStatus.COMPLETE
        logger.info(
            "sale_reconciled",
            extra={"sale_id": sale_id, "offer_ids": offer_ids, "verified": verify},
        )

    @staticmethod
    def _verify_transaction_ids(db, offer_ids: list[int]) -> None:
        if not offer_ids:
            raise ValidationError("At least one exchange transaction id is required")
        if len(set(offer_ids)) != len(offer_ids):
            raise ValidationError("Exchange transaction ids must not repeat", offer_ids=offer_ids)
        lookup = [i for i in offer_ids if is_storable_id(i)]
        found = set(
            db.scalars(select(ExchangeTransaction.id).where(ExchangeTransaction.id.in_(lookup))).all()
        ) if lookup else set()
        missing = [i for i in offer_ids if i not in found]
        if missing:
            raise ValidationError(f"Unknown exchange transaction ids: {missing}", missing=missing)

    def reconcile(self, caller: str, sale_id: int, offer_ids: list[int]) -> None:
        """
        Attach exchange transaction ids to an Incomplete sale and mark it Complete.
        The ids are taken on trust from the retailer.
        """
        self._reconcile(caller, sale_id, offer_ids, verify=False)

    def reconcile_verified(self, caller: str, sale_id: int, offer_ids: list[int]) -> None:
        """Like ``reconcile`` but every id must name an existing, distinct exchange transaction."""
        self._reconcile(caller, sale_id, offer_ids, verify=True)

    def view_sale(self, sale_id: int) -> dict:
        with ledger_session(self._session_factory) as db:
            return sale_to_dict(self._get_sale(db, sale_id))

    def list_all_sales(self) -> list[dict]:
        with ledger_session(self._session_factory) as db:
            rows = db.scalars(select(Sale).order_by(Sale.id.asc())).all()
            return [sale_to_dict(s) for s in rows]
