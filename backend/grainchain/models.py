"""
SQLAlchemy models for the exchange (orders, offers, transactions), the catalog
(products, product index, sales) and the environmental reading store.
"""
from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text

from grainchain.db import Base
from grainchain.lifecycle import OfferStatus, OrderStatus, SaleStatus
from grainchain.utils import ZERO_IDENTITY, utcnow

# AUTOINCREMENT keeps SQLite from ever handing out a used id again.
_SEQUENTIAL = {"sqlite_autoincrement": True}


class Reading(Base):
    """Last reading written for a subject; overwritten wholesale."""
    __tablename__ = "readings"

    subject = Column(String(128), primary_key=True)
    humidity = Column(Integer, nullable=False, default=0)
    moisture_content = Column(Integer, nullable=False, default=0)
    storage_conditions = Column(Integer, nullable=False, default=0)


class Order(Base):
    """A processor's standing request for a quantity of wheat."""
    __tablename__ = "orders"
    __table_args__ = _SEQUENTIAL

    id = Column(Integer, primary_key=True, autoincrement=True)
    quantity_kg = Column(Integer, nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.IN_PROGRESS)
    owner = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)


class Offer(Base):
    """A farmer's proposal against one order."""
    __tablename__ = "offers"
    __table_args__ = _SEQUENTIAL

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    harvest_date = Column(String(32), nullable=False, default="")
    price_per_kg = Column(Integer, nullable=False)
    origin = Column(String(255), nullable=False, default="")
    status = Column(Enum(OfferStatus), nullable=False, default=OfferStatus.IN_PROGRESS)
    owner = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)


class ExchangeTransaction(Base):
    """Immutable record of an accepted offer."""
    __tablename__ = "exchange_transactions"
    __table_args__ = _SEQUENTIAL

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)
    offer_id = Column(Integer, ForeignKey("offers.id"), nullable=False, unique=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    farmer = Column(String(128), nullable=False)
    processor = Column(String(128), nullable=False)


class Product(Base):
    """
    Retailer catalog entry keyed by its product type code.
    Exists only while ``owner`` is not the zero identity.
    """
    __tablename__ = "products"

    product_type = Column(Integer, primary_key=True, autoincrement=False)
    wheat_type = Column(String(128), nullable=False, default="")
    brand = Column(String(128), nullable=False, default="")
    origin = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    price = Column(Integer, nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    owner = Column(String(128), nullable=False, default=ZERO_IDENTITY)


class ProductIndex(Base):
    """Enumeration index of product types. Never compacted on removal."""
    __tablename__ = "product_index"
    __table_args__ = _SEQUENTIAL

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_type = Column(Integer, nullable=False, unique=True)


class Sale(Base):
    """Customer purchase against a product, later reconciled with exchange transactions."""
    __tablename__ = "sales"
    __table_args__ = _SEQUENTIAL

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_type = Column(Integer, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    # Exchange transaction ids attached by reconciliation, in caller order.
    offer_ids = Column(JSON, nullable=False, default=list)
    status = Column(Enum(SaleStatus), nullable=False, default=SaleStatus.INCOMPLETE)
    customer = Column(String(128), nullable=False, index=True)
    retailer = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
