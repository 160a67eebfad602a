"""Tests for order history checks."""
import uuid

import pytest

from app.services.errors import OfferConflictError
from app.services.integrity_guard import IntegrityGuard
from app.services.offer_ref import OfferRef, ProductScope

from conftest import offer_fields


def test_unreferenced_offer_is_deletable(db, manager, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()
    base = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields())
    guard = IntegrityGuard(db)

    ref = OfferRef.base(base.offer.id)
    assert guard.has_order_references(ref) is False
    guard.assert_deletable(ref)
    guard.assert_deletable(ProductScope(product.id))


def test_offer_scope_matches_only_the_chosen_offer_column(db, make_order_item):
    offer_id = uuid.uuid4()
    make_order_item(chosen_variant_offer_id=offer_id)
    guard = IntegrityGuard(db)

    assert guard.count_order_references(OfferRef.variant(offer_id)) == 1
    # Same id under the other kind is a different offer
    assert guard.count_order_references(OfferRef.base(offer_id)) == 0


def test_product_scope_matches_product_variants_and_offers(
    db, manager, make_supplier, make_product, make_variant, make_order_item
):
    supplier = make_supplier()
    product = make_product()
    variant = make_variant(product)
    base = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields())
    scope = ProductScope(product.id)
    guard = IntegrityGuard(db)

    make_order_item(chosen_base_offer_id=base.offer.id)
    assert guard.count_order_references(scope) == 1

    make_order_item(variant_id=variant.id)
    make_order_item(product_id=product.id)
    make_order_item(product_id=uuid.uuid4())
    assert guard.count_order_references(scope) == 3


def test_conflict_explains_and_counts(db, make_order_item):
    offer_id = uuid.uuid4()
    make_order_item(chosen_base_offer_id=offer_id)
    make_order_item(chosen_base_offer_id=offer_id)

    with pytest.raises(OfferConflictError) as exc_info:
        IntegrityGuard(db).assert_deletable(OfferRef.base(offer_id))

    error = exc_info.value
    assert error.details == {"offerId": f"base:{offer_id}", "orderItemsCount": 2}
    assert "Deactivate it instead" in error.message
