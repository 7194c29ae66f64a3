"""
Typed errors for the GrainChain ledgers.

Every rejected call raises exactly one of these, so a caller can tell a
retry-with-different-input failure (validation, authorization) from a
retry-after-state-change failure (state). Each carries a machine-readable
``code`` and the HTTP status the API layer reports it with.
"""
from typing import Any


class LedgerError(Exception):
    """Base class for all ledger rejections."""

    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.message}
        if self.details:
            body["context"] = self.details
        return body


class NotFoundError(LedgerError):
    """Id or product type outside the valid range, or not existing."""

    code = "NOT_FOUND"
    status_code = 404


class AuthorizationError(LedgerError):
    """Caller is not the recorded owner of the entity."""

    code = "NOT_AUTHORIZED"
    status_code = 403


class StateError(LedgerError):
    """Entity is not in the status the requested transition needs."""

    code = "INVALID_STATE"
    status_code = 409


class ValidationError(LedgerError):
    """Zero or otherwise invalid quantity, price, identity or input."""

    code = "INVALID_INPUT"
    status_code = 422
