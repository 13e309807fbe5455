"""Typed ledger errors.

Every failure the ledger can report is one of these. The API layer turns them
into ``{"success": false, "error": ...}`` responses with the matching status
code (see ``main.py``), so routers and utilities raise them directly instead
of building HTTP responses themselves.
"""

from typing import Optional


class LedgerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"success": False, "error": self.message}


class ValidationError(LedgerError):
    """Malformed or missing input: non-positive amount, empty participant list."""
    status_code = 400


class SplitMismatchError(ValidationError):
    """Custom split amounts do not add up to the expense total."""

    def __init__(self, message: str, discrepancy: float):
        super().__init__(message)
        self.discrepancy = discrepancy

    def payload(self) -> dict:
        return {**super().payload(), "discrepancy": self.discrepancy}


class NotFoundError(LedgerError):
    status_code = 404


class ForbiddenError(LedgerError):
    status_code = 403


class ConflictError(LedgerError):
    """The action is blocked by existing ledger state (e.g. an outstanding balance)."""
    status_code = 409

    def __init__(self, message: str, amount: Optional[float] = None):
        super().__init__(message)
        self.amount = amount

    def payload(self) -> dict:
        data = super().payload()
        if self.amount is not None:
            data["amount"] = self.amount
        return data
