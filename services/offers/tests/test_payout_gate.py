"""Tests for the payout readiness gate."""
from decimal import Decimal
import uuid

import pytest

from app.services.errors import PayoutNotReadyError
from app.services.payout_gate import (
    PAYOUT_REMEDIATION,
    PayoutGate,
    missing_payout_requirements,
    offer_becomes_purchasable,
)


@pytest.mark.parametrize(
    "is_active,in_stock,qty,price,expected",
    [
        (True, True, 5, Decimal("1000"), True),
        (False, True, 5, Decimal("1000"), False),
        (True, False, 5, Decimal("1000"), False),
        (True, True, 0, Decimal("1000"), False),
        (True, True, 5, Decimal("0"), False),
        (True, True, 5, None, False),
    ],
)
def test_offer_becomes_purchasable(is_active, in_stock, qty, price, expected):
    assert offer_becomes_purchasable(is_active, in_stock, qty, price) is expected


def test_ready_supplier_passes(db, make_supplier):
    supplier = make_supplier(ready=True)
    gate = PayoutGate(db)

    assert gate.is_payout_ready(supplier.id)
    gate.assert_payout_ready(supplier.id, would_be_purchasable=True)


def test_unknown_supplier_is_not_ready(db):
    gate = PayoutGate(db)
    assert gate.is_payout_ready(uuid.uuid4()) is False
    assert missing_payout_requirements(None) == ["supplier"]


def test_blank_bank_fields_count_as_missing(db, make_supplier):
    supplier = make_supplier(ready=True, account_number="   ", bank_country="")
    assert missing_payout_requirements(supplier) == ["account_number", "bank_country"]
    assert PayoutGate(db).is_payout_ready(supplier.id) is False


def test_unverified_bank_details_are_not_ready(db, make_supplier):
    supplier = make_supplier(ready=True, bank_verification_status="PENDING")
    assert missing_payout_requirements(supplier) == ["bank_verification_status"]


def test_gate_is_noop_when_not_purchasable(db, make_supplier):
    supplier = make_supplier(ready=False)
    PayoutGate(db).assert_payout_ready(supplier.id, would_be_purchasable=False)


def test_gate_rejects_purchasable_offer_from_unready_supplier(db, make_supplier):
    supplier = make_supplier(ready=False)

    with pytest.raises(PayoutNotReadyError) as exc_info:
        PayoutGate(db).assert_payout_ready(supplier.id, would_be_purchasable=True)

    error = exc_info.value
    assert error.remediation == PAYOUT_REMEDIATION
    assert "is_payout_enabled" in error.details["missing"]
    body = error.to_dict()
    assert body["code"] == "SUPPLIER_PAYOUT_NOT_READY"
    assert body["userMessage"] == PAYOUT_REMEDIATION
