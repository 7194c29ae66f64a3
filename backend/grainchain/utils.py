"""
Utility functions: caller identity checks, timestamps, sentinel handling
and unsigned-integer validation shared by the ledgers.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from grainchain.errors import ValidationError

# The "no owner" identity. A product whose owner equals it does not exist.
ZERO_IDENTITY = ""

# Largest value a SQLite INTEGER column can hold.
MAX_SQL_INT = 2**63 - 1


def utcnow() -> datetime:
    """Current UTC time without tzinfo (SQLite stores naive datetimes)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_identity(identity: Optional[str]) -> str:
    """Strip surrounding whitespace; None becomes the zero identity."""
    return (identity or "").strip()


def require_caller(caller: Optional[str]) -> str:
    """Return the normalized caller, rejecting the zero identity."""
    ident = normalize_identity(caller)
    if ident == ZERO_IDENTITY:
        raise ValidationError("Caller identity is required")
    return ident


def require_unsigned(name: str, value: Any, *, positive: bool = False) -> int:
    """Reject non-integers, negatives, values above MAX_SQL_INT and (when positive=True) zero."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", field=name)
    if value > MAX_SQL_INT:
        raise ValidationError(f"{name} must be <= {MAX_SQL_INT}", field=name, value=value)
    if value < 0 or (positive and value == 0):
        bound = "> 0" if positive else ">= 0"
        raise ValidationError(f"{name} must be {bound}", field=name, value=value)
    return value


def is_storable_id(value: Any) -> bool:
    """True for ids the ledgers can look up: integers in 1..MAX_SQL_INT."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_SQL_INT


def unset_if_sentinel(value: Any) -> Any:
    """
    Map the external "zero/empty means leave unchanged" contract to None.
    0, "" and None all become None; anything else passes through.
    """
    if value is None or value == "" or (isinstance(value, int) and not isinstance(value, bool) and value == 0):
        return None
    return value


def isoformat(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None
