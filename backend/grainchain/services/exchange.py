"""
Farmer-Processor Exchange: processors open orders, farmers post offers
against them, and the order's owner accepts exactly one offer. Acceptance
completes both records and appends an immutable exchange transaction.

Order and offer ids are independent sequences starting at 1.
"""
import logging
from typing import Callable, Optional

from sqlalchemy import select

from grainchain.db import ledger_session
from grainchain.errors import AuthorizationError, NotFoundError, ValidationError
from grainchain.lifecycle import OfferStatus, OrderStatus, require_transition
from grainchain.models import ExchangeTransaction, Offer, Order
from grainchain.utils import is_storable_id, isoformat, require_caller, require_unsigned, utcnow

logger = logging.getLogger(__name__)


def order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "quantity_kg": order.quantity_kg,
        "status": order.status.value,
        "owner": order.owner,
    }


def offer_to_dict(offer: Offer) -> dict:
    return {
        "id": offer.id,
        "order_id": offer.order_id,
        "harvest_date": offer.harvest_date,
        "price_per_kg": offer.price_per_kg,
        "origin": offer.origin,
        "status": offer.status.value,
        "owner": offer.owner,
    }


def transaction_to_dict(tx: ExchangeTransaction) -> dict:
    return {
        "id": tx.id,
        "order_id": tx.order_id,
        "offer_id": tx.offer_id,
        "timestamp": isoformat(tx.timestamp),
        "farmer": tx.farmer,
        "processor": tx.processor,
    }


class Exchange:
    """Aggregate root for orders, offers and exchange transactions."""

    def __init__(self, session_factory=None, clock: Callable = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    # =========================
    # LOOKUP HELPERS
    # =========================
    @staticmethod
    def _get_order(db, order_id: int) -> Order:
        order = db.get(Order, order_id) if is_storable_id(order_id) else None
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", order_id=order_id)
        return order

    @staticmethod
    def _get_offer(db, offer_id: int) -> Offer:
        offer = db.get(Offer, offer_id) if is_storable_id(offer_id) else None
        if offer is None:
            raise NotFoundError(f"Offer {offer_id} not found", offer_id=offer_id)
        return offer

    @staticmethod
    def _require_owner(entity: str, entity_id: int, owner: str, caller: str) -> None:
        if owner != caller:
            logger.warning(
                "owner_check_failed",
                extra={"entity": entity, "entity_id": entity_id, "caller": caller},
            )
            raise AuthorizationError(
                f"Caller is not the owner of {entity.lower()} {entity_id}",
                caller=caller,
                entity_id=entity_id,
            )

    # =========================
    # ORDERS
    # =========================
    def create_order(self, caller: str, quantity_kg: int) -> int:
        """Open an order in InProgress owned by ``caller``; returns its id."""
        caller = require_caller(caller)
        require_unsigned("quantity_kg", quantity_kg, positive=True)
        with ledger_session(self._session_factory) as db:
            order = Order(quantity_kg=quantity_kg, status=OrderStatus.IN_PROGRESS, owner=caller)
            db.add(order)
            db.flush()
            order_id = order.id
        logger.info("order_created", extra={"order_id": order_id, "owner": caller, "quantity_kg": quantity_kg})
        return order_id

    def cancel_order(self, caller: str, order_id: int) -> int:
        caller = require_caller(caller)
        with ledger_session(self._session_factory) as db:
            order = self._get_order(db, order_id)
            self._require_owner("Order", order_id, order.owner, caller)
            require_transition(entity="Order", entity_id=order_id, current=order.status, target=OrderStatus.CANCELLED)
            order.status = OrderStatus.CANCELLED
        logger.info("order_cancelled", extra={"order_id": order_id})
        return order_id

    def view_order(self, order_id: int) -> dict:
        """Return (id, quantity_kg, status, owner) for one order."""
        with ledger_session(self._session_factory) as db:
            return order_to_dict(self._get_order(db, order_id))

    # =========================
    # OFFERS
    # =========================
    def create_offer(
        self,
        caller: str,
        order_id: int,
        harvest_date: str,
        price_per_kg: int,
        origin: str,
    ) -> int:
        """
        Post an offer against an existing order; returns the offer id.
        The order does not have to be InProgress: offers against closed
        orders are accepted but can never be accepted in turn.
        """
        caller = require_caller(caller)
        require_unsigned("price_per_kg", price_per_kg, positive=True)
        with ledger_session(self._session_factory) as db:
            self._get_order(db, order_id)
            offer = Offer(
                order_id=order_id,
                harvest_date=harvest_date or "",
                price_per_kg=price_per_kg,
                origin=origin or "",
                status=OfferStatus.IN_PROGRESS,
                owner=caller,
            )
            db.add(offer)
            db.flush()
            offer_id = offer.id
        logger.info("offer_created", extra={"offer_id": offer_id, "order_id": order_id, "owner": caller})
        return offer_id

    def cancel_offer(self, caller: str, offer_id: int) -> int:
        caller = require_caller(caller)
        with ledger_session(self._session_factory) as db:
            offer = self._get_offer(db, offer_id)
            self._require_owner("Offer", offer_id, offer.owner, caller)
            require_transition(entity="Offer", entity_id=offer_id, current=offer.status, target=OfferStatus.CANCELLED)
            offer.status = OfferStatus.CANCELLED
        logger.info("offer_cancelled", extra={"offer_id": offer_id})
        return offer_id

    def view_offer(self, offer_id: int) -> dict:
        with ledger_session(self._session_factory) as db:
            return offer_to_dict(self._get_offer(db, offer_id))

    def list_active_offers(self, order_id: int) -> list[dict]:
        """InProgress offers for ``order_id`` in ascending id order."""
        with ledger_session(self._session_factory) as db:
            self._get_order(db, order_id)
            rows = db.scalars(
                select(Offer)
                .where(Offer.order_id == order_id, Offer.status == OfferStatus.IN_PROGRESS)
                .order_by(Offer.id.asc())
            ).all()
            return [offer_to_dict(o) for o in rows]

    # =========================
    # MATCHING
    # =========================
    def accept_offer(self, caller: str, order_id: int, offer_id: int) -> int:
        """
        Complete the order and the offer together and append an exchange
        transaction. Returns the new transaction id.
        """
        caller = require_caller(caller)
        with ledger_session(self._session_factory) as db:
            order = self._get_order(db, order_id)
            offer = self._get_offer(db, offer_id)
            self._require_owner("Order", order_id, order.owner, caller)
            require_transition(entity="Order", entity_id=order_id, current=order.status, target=OrderStatus.COMPLETED)
            require_transition(entity="Offer", entity_id=offer_id, current=offer.status, target=OfferStatus.COMPLETED)
            if offer.order_id != order_id:
                raise ValidationError(
                    f"Offer {offer_id} was made against order {offer.order_id}, not {order_id}",
                    order_id=order_id,
                    offer_id=offer_id,
                )

            offer.status = OfferStatus.COMPLETED
            order.status = OrderStatus.COMPLETED
            tx = ExchangeTransaction(
                order_id=order_id,
                offer_id=offer_id,
                timestamp=self._clock(),
                farmer=offer.owner,
                processor=caller,
            )
            db.add(tx)
            db.flush()
            tx_id = tx.id
        logger.info("offer_accepted", extra={"order_id": order_id, "offer_id": offer_id, "transaction_id": tx_id})
        return tx_id

    def list_all_transactions(self) -> list[dict]:
        with ledger_session(self._session_factory) as db:
            rows = db.scalars(select(ExchangeTransaction).order_by(ExchangeTransaction.id.asc())).all()
            return [transaction_to_dict(t) for t in rows]

    def transactions_for_order(self, order_id: int) -> list[dict]:
        """Exchange transactions of one order (at most one by construction)."""
        with ledger_session(self._session_factory) as db:
            self._get_order(db, order_id)
            rows = db.scalars(
                select(ExchangeTransaction)
                .where(ExchangeTransaction.order_id == order_id)
                .order_by(ExchangeTransaction.id.asc())
            ).all()
            return [transaction_to_dict(t) for t in rows]

    def get_transaction(self, transaction_id: int) -> Optional[dict]:
        with ledger_session(self._session_factory) as db:
            tx = db.get(ExchangeTransaction, transaction_id) if is_storable_id(transaction_id) else None
            return transaction_to_dict(tx) if tx else None
