"""
Database setup for GrainChain.
Uses SQLAlchemy with SQLite for the exchange, catalog and reading ledgers.
All ledger access is serialized through one process-wide lock.
"""
import os
import threading
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Default DB path: project root / data directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent
DB_PATH = os.environ.get("SQLITE_DB_PATH", str(BASE_DIR / "data" / "grainchain.db"))
DATABASE_URL = f"sqlite:///{DB_PATH}"
SQL_ECHO = os.environ.get("SQL_ECHO", "").lower() == "true"

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    echo=SQL_ECHO,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# One lock for every ledger: each call runs to completion before the next starts.
LEDGER_LOCK = threading.RLock()


def make_session_factory(url: str = "sqlite://"):
    """
    Build an isolated engine + session factory with all tables created.
    An in-memory URL shares one connection so every thread sees the same data.
    """
    kwargs = {"connect_args": {"check_same_thread": False}, "echo": SQL_ECHO}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    isolated = create_engine(url, **kwargs)
    _create_tables(isolated)
    return sessionmaker(autocommit=False, autoflush=False, bind=isolated)


@contextmanager
def ledger_session(session_factory=None):
    """Run a block under the ledger lock; commit on success, roll back on any error."""
    factory = session_factory or SessionLocal
    with LEDGER_LOCK:
        db = factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def _create_tables(bind) -> None:
    from grainchain import models  # noqa: F401
    Base.metadata.create_all(bind=bind)


def init_db():
    """Create all tables. Call at app startup."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    _create_tables(engine)
