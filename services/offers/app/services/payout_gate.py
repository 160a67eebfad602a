from sqlalchemy import and_, func
from sqlalchemy.orm import Session
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID
import logging

from app.models.supplier import Supplier, BankVerificationStatus
from app.services.errors import PayoutNotReadyError

logger = logging.getLogger(__name__)

PAYOUT_REMEDIATION = (
    "Please complete and verify your bank details in Supplier Settings "
    "before activating offers with stock."
)

_REQUIRED_BANK_FIELDS = ("account_number", "account_name", "bank_code", "bank_country")


def offer_becomes_purchasable(
    is_active: bool,
    in_stock: bool,
    qty: int,
    price: Union[Decimal, int, float, None],
) -> bool:
    """Pure predicate: can a buyer check out against this offer state?"""
    return bool(is_active) and bool(in_stock) and (qty or 0) > 0 and (price or 0) > 0


def _non_empty(value: Optional[str]) -> bool:
    return value is not None and str(value).strip() != ""


def missing_payout_requirements(supplier: Optional[Supplier]) -> List[str]:
    """Names of the payout requirements a supplier row does not meet"""
    if supplier is None:
        return ["supplier"]

    missing = []
    if not supplier.is_payout_enabled:
        missing.append("is_payout_enabled")
    for field in _REQUIRED_BANK_FIELDS:
        if not _non_empty(getattr(supplier, field)):
            missing.append(field)
    if supplier.bank_verification_status != BankVerificationStatus.VERIFIED.value:
        missing.append("bank_verification_status")
    return missing


def payout_ready_clause():
    """The readiness predicate as a SQL expression over ``suppliers``"""
    def non_empty(column):
        return and_(column.isnot(None), func.trim(column) != "")

    return and_(
        Supplier.is_payout_enabled.is_(True),
        non_empty(Supplier.account_number),
        non_empty(Supplier.account_name),
        non_empty(Supplier.bank_code),
        non_empty(Supplier.bank_country),
        Supplier.bank_verification_status == BankVerificationStatus.VERIFIED.value,
    )


class PayoutGate:
    """Checks supplier payout configuration before an offer may be sold

    Reads only persisted supplier columns through the caller's session, so it
    never leaves the current transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _load_supplier(self, supplier_id: UUID) -> Optional[Supplier]:
        return self.db.query(Supplier).filter(Supplier.id == supplier_id).first()

    def is_payout_ready(self, supplier_id: UUID) -> bool:
        return not missing_payout_requirements(self._load_supplier(supplier_id))

    def assert_payout_ready(self, supplier_id: UUID, would_be_purchasable: bool) -> None:
        """Raise PayoutNotReadyError if a purchasable write comes from a non-ready supplier"""
        if not would_be_purchasable:
            return

        missing = missing_payout_requirements(self._load_supplier(supplier_id))
        if not missing:
            return

        logger.warning(f"Blocked purchasable offer for supplier {supplier_id}: payout not ready (missing: {missing})")
        raise PayoutNotReadyError(
            "Supplier payout not ready",
            remediation=PAYOUT_REMEDIATION,
            details={"supplierId": str(supplier_id), "missing": missing},
        )
