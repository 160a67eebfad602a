"""Tests for tagged offer ids and boundary payload normalization."""
from decimal import Decimal
import uuid

import pytest

from app.schemas.offer import (
    BaseOfferUpsertRequest,
    OfferPatchRequest,
    normalize_offer_payload,
)
from app.services.errors import OfferValidationError
from app.services.offer_ref import OfferKind, OfferRef


def test_parse_and_render_tagged_ids():
    offer_id = uuid.uuid4()

    ref = OfferRef.parse(f"variant:{offer_id}")

    assert ref.kind == OfferKind.VARIANT
    assert ref.id == offer_id
    assert str(ref) == f"variant:{offer_id}"
    assert OfferRef.parse(str(OfferRef.base(offer_id))) == OfferRef.base(offer_id)


@pytest.mark.parametrize(
    "raw",
    [
        str(uuid.uuid4()),
        f"bundle:{uuid.uuid4()}",
        "base:not-a-uuid",
        "",
    ],
)
def test_parse_rejects_bare_unknown_or_malformed_ids(raw):
    with pytest.raises(OfferValidationError):
        OfferRef.parse(raw)


def test_normalize_folds_aliases_and_blank_strings():
    payload = normalize_offer_payload({
        "productId": "p-1",
        "qty": "7",
        "unitPrice": "1200",
        "currency": "",
        "leadDays": "",
        "inStock": True,
    })

    assert payload == {
        "product_id": "p-1",
        "available_qty": "7",
        "price": "1200",
        "lead_days": None,
        "inStock": True,
    }


def test_canonical_key_wins_over_alias():
    payload = normalize_offer_payload({"available_qty": 3, "stock": 9})
    assert payload["available_qty"] == 3


def test_upsert_request_accepts_loose_input():
    product_id = uuid.uuid4()

    request = BaseOfferUpsertRequest.model_validate({
        "productId": str(product_id),
        "basePrice": "1500.50",
        "availableQty": "4",
        "isActive": "true",
        "inStock": False,
    })
    fields = request.to_fields()

    assert request.product_id == product_id
    assert fields.price == Decimal("1500.50")
    assert fields.available_qty == 4
    assert fields.is_active is True
    assert fields.currency is None


def test_patch_request_only_carries_sent_fields():
    patch = OfferPatchRequest.model_validate({"stock": 2, "leadDays": None}).to_patch()
    assert patch.changes() == {"available_qty": 2, "lead_days": None}
