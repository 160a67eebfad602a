"""Typed errors raised by the offer core.

Each error carries a machine-readable ``kind`` and a human ``message``. The
HTTP layer maps kinds to status codes; nothing in the core formats a response.
"""
import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    PAYOUT_NOT_READY = "PAYOUT_NOT_READY"
    INTERNAL = "INTERNAL"


class OfferError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.kind.value, "detail": self.message, **self.details}


class OfferValidationError(OfferError):
    """Malformed input or a variant that does not belong to the stated product"""
    kind = ErrorKind.VALIDATION


class OfferNotFoundError(OfferError):
    kind = ErrorKind.NOT_FOUND


class OfferConflictError(OfferError):
    """Uniqueness violation, occupied conversion target, or order history block"""
    kind = ErrorKind.CONFLICT


class PayoutNotReadyError(OfferError):
    kind = ErrorKind.PAYOUT_NOT_READY

    def __init__(self, message: str, remediation: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.remediation = remediation

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["code"] = "SUPPLIER_PAYOUT_NOT_READY"
        data["userMessage"] = self.remediation
        return data


class OfferInternalError(OfferError):
    kind = ErrorKind.INTERNAL


class DeleteNotAppliedError(OfferInternalError):
    """A delete was issued but the row is still readable afterwards"""
