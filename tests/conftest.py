"""
Pytest configuration: add backend to path, point the default DB at a test file,
and give every test its own in-memory ledgers.
"""
import os
import sys
from pathlib import Path

import pytest

# Project root = parent of tests/
ROOT = Path(__file__).resolve().parent.parent
BACKEND = ROOT / "backend"
sys.path.insert(0, str(BACKEND))
# Use a test DB
os.environ["SQLITE_DB_PATH"] = str(ROOT / "data" / "test_grainchain.db")

from grainchain.db import make_session_factory  # noqa: E402
from grainchain.services.catalog import Catalog  # noqa: E402
from grainchain.services.exchange import Exchange  # noqa: E402
from grainchain.services.listing import LedgerQueries  # noqa: E402
from grainchain.services.reading_store import ReadingStore  # noqa: E402

PROCESSOR = "0xprocessor"
FARMER_1 = "0xfarmer1"
FARMER_2 = "0xfarmer2"
RETAILER = "0xretailer"
CUSTOMER = "0xcustomer"


@pytest.fixture
def session_factory():
    return make_session_factory("sqlite://")


@pytest.fixture
def exchange(session_factory):
    return Exchange(session_factory)


@pytest.fixture
def catalog(session_factory):
    return Catalog(session_factory)


@pytest.fixture
def queries(session_factory):
    return LedgerQueries(session_factory)


@pytest.fixture
def reading_store(session_factory):
    return ReadingStore(session_factory)


@pytest.fixture
def wheat_product(catalog):
    """Retailer product 1001: stock 50, price 10."""
    catalog.create_product(RETAILER, 1001, "Durum", "Golden Mill", "Punjab", 10, "Whole wheat flour", 50)
    return 1001
