"""
Read-only queries across both ledgers: filtered listings, sale traceability
and ledger-wide counts. Nothing here mutates state.
"""
from typing import Optional

from sqlalchemy import func, select

from grainchain.db import ledger_session
from grainchain.errors import NotFoundError, ValidationError
from grainchain.lifecycle import OfferStatus, OrderStatus, SaleStatus
from grainchain.models import ExchangeTransaction, Offer, Order, Product, ProductIndex, Sale
from grainchain.services.catalog import sale_to_dict
from grainchain.services.exchange import offer_to_dict, order_to_dict, transaction_to_dict
from grainchain.utils import ZERO_IDENTITY, is_storable_id


def _parse_status(enum_cls, status):
    if status is None or isinstance(status, enum_cls):
        return status
    try:
        return enum_cls(status)
    except ValueError:
        allowed = ", ".join(s.value for s in enum_cls)
        raise ValidationError(f"Unknown status '{status}'; expected one of: {allowed}", status=status)


class LedgerQueries:

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def list_orders(self, status: Optional[str] = None) -> list[dict]:
        status = _parse_status(OrderStatus, status)
        stmt = select(Order).order_by(Order.id.asc())
        if status is not None:
            stmt = stmt.where(Order.status == status)
        with ledger_session(self._session_factory) as db:
            return [order_to_dict(o) for o in db.scalars(stmt).all()]

    def list_offers(self, order_id: Optional[int] = None, status: Optional[str] = None) -> list[dict]:
        status = _parse_status(OfferStatus, status)
        stmt = select(Offer).order_by(Offer.id.asc())
        if order_id:
            if not is_storable_id(order_id):
                return []
            stmt = stmt.where(Offer.order_id == order_id)
        if status is not None:
            stmt = stmt.where(Offer.status == status)
        with ledger_session(self._session_factory) as db:
            return [offer_to_dict(o) for o in db.scalars(stmt).all()]

    def list_sales(self, status: Optional[str] = None) -> list[dict]:
        status = _parse_status(SaleStatus, status)
        stmt = select(Sale).order_by(Sale.id.asc())
        if status is not None:
            stmt = stmt.where(Sale.status == status)
        with ledger_session(self._session_factory) as db:
            return [sale_to_dict(s) for s in db.scalars(stmt).all()]

    def trace_sale(self, sale_id: int) -> dict:
        """
        Join a sale with the exchange transactions it lists. Ids that name no
        transaction are reported under ``unknown_ids`` rather than rejected.
        """
        with ledger_session(self._session_factory) as db:
            sale = db.get(Sale, sale_id) if is_storable_id(sale_id) else None
            if sale is None:
                raise NotFoundError(f"Sale {sale_id} not found", sale_id=sale_id)
            ids = list(sale.offer_ids or [])
            lookup = [i for i in ids if is_storable_id(i)]
            rows = db.scalars(
                select(ExchangeTransaction).where(ExchangeTransaction.id.in_(lookup))
            ).all() if lookup else []
            by_id = {t.id: t for t in rows}
            transactions = []
            for tx_id in ids:
                tx = by_id.get(tx_id)
                if tx is None:
                    continue
                entry = transaction_to_dict(tx)
                order = db.get(Order, tx.order_id)
                offer = db.get(Offer, tx.offer_id)
                entry["quantity_kg"] = order.quantity_kg if order else None
                entry["origin"] = offer.origin if offer else None
                entry["harvest_date"] = offer.harvest_date if offer else None
                transactions.append(entry)
            return {
                "sale": sale_to_dict(sale),
                "transactions": transactions,
                "unknown_ids": [i for i in ids if i not in by_id],
            }

    def summary(self) -> dict:
        """Per-status counts for orders, offers and sales, plus totals."""
        with ledger_session(self._session_factory) as db:
            def _counts(model, enum_cls):
                rows = db.execute(select(model.status, func.count()).group_by(model.status)).all()
                counts = {s.value: 0 for s in enum_cls}
                for status, n in rows:
                    counts[status.value] = n
                return counts

            products = db.scalar(
                select(func.count())
                .select_from(ProductIndex)
                .join(Product, Product.product_type == ProductIndex.product_type)
                .where(Product.owner != ZERO_IDENTITY)
            )
            return {
                "orders": _counts(Order, OrderStatus),
                "offers": _counts(Offer, OfferStatus),
                "sales": _counts(Sale, SaleStatus),
                "transactions": db.scalar(select(func.count()).select_from(ExchangeTransaction)) or 0,
                "products": products or 0,
            }
