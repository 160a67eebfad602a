"""Tests for offer upserts, patches and restocks."""
from decimal import Decimal
import uuid

import pytest

from app.models import SupplierProductOffer, SupplierVariantOffer
from app.schemas.offer import OfferPatch
from app.services.errors import (
    OfferConflictError,
    OfferNotFoundError,
    OfferValidationError,
    PayoutNotReadyError,
)
from app.services.offer_ref import OfferRef
from app.services.offer_store import OfferStore

from conftest import offer_fields


def test_unready_supplier_cannot_create_purchasable_base_offer(db, manager, make_supplier, make_product):
    supplier = make_supplier(ready=False)
    product = make_product()

    with pytest.raises(PayoutNotReadyError):
        manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(price="1000", available_qty=5))

    assert db.query(SupplierProductOffer).count() == 0


def test_unready_supplier_can_create_offer_without_stock(db, manager, make_supplier, make_product):
    supplier = make_supplier(ready=False)
    product = make_product()

    result = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(price="1000", available_qty=0))

    assert result.created is True
    assert result.offer.in_stock is False
    assert db.query(SupplierProductOffer).count() == 1


def test_variant_must_belong_to_stated_product(db, manager, make_supplier, make_product, make_variant):
    supplier = make_supplier()
    p1 = make_product("Earbuds")
    p2 = make_product("Charger")
    v2 = make_variant(p2)

    with pytest.raises(OfferValidationError) as exc_info:
        manager.create_or_update_variant_offer(supplier.id, v2.id, offer_fields(), expected_product_id=p1.id)

    assert exc_info.value.message == "variantId does not belong to this product"
    assert db.query(SupplierVariantOffer).count() == 0


def test_second_base_upsert_updates_in_place(db, manager, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()

    first = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(price="1000", currency="USD"))
    second = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(price="900", available_qty=2))

    assert second.created is False
    assert second.offer.id == first.offer.id
    assert db.query(SupplierProductOffer).count() == 1
    row = db.query(SupplierProductOffer).one()
    assert row.price == Decimal("900")
    assert row.available_qty == 2
    # Currency is kept when the update does not send one
    assert row.currency == "USD"


def test_in_stock_is_derived_on_every_write(db, manager, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()
    result = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(available_qty=3))
    ref = OfferRef.base(result.offer.id)
    assert result.offer.in_stock is True

    patched = manager.patch_offer(ref, OfferPatch(is_active=False))
    assert patched.offer.in_stock is False

    patched = manager.patch_offer(ref, OfferPatch(is_active=True, available_qty=0))
    assert patched.offer.in_stock is False

    restocked = manager.restock_offer(ref, 4)
    assert restocked.offer.available_qty == 4
    assert restocked.offer.in_stock is True


def test_variant_offer_links_to_existing_base_and_inherits_currency_once(
    db, manager, make_supplier, make_product, make_variant
):
    supplier = make_supplier()
    product = make_product()
    variant = make_variant(product)
    base = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(currency="USD"))

    created = manager.create_or_update_variant_offer(supplier.id, variant.id, offer_fields(price="1100"))

    assert created.offer.base_offer_id == base.offer.id
    assert created.offer.product_id == product.id
    assert created.offer.currency == "USD"

    manager.patch_offer(OfferRef.base(base.offer.id), OfferPatch(currency="EUR"))
    db.refresh(created.offer)
    assert created.offer.currency == "USD"


def test_variant_offer_without_base_is_unlinked_and_uses_default_currency(
    db, manager, make_supplier, make_product, make_variant
):
    supplier = make_supplier()
    product = make_product()
    variant = make_variant(product)

    result = manager.create_or_update_variant_offer(supplier.id, variant.id, offer_fields())

    assert result.offer.base_offer_id is None
    assert result.offer.currency == "NGN"
    assert db.query(SupplierProductOffer).count() == 0


def test_restock_below_zero_is_rejected(db, manager, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()
    result = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(available_qty=2))

    with pytest.raises(OfferValidationError) as exc_info:
        manager.restock_offer(OfferRef.base(result.offer.id), -3)

    assert exc_info.value.message == "Resulting quantity would be negative"
    assert db.query(SupplierProductOffer).one().available_qty == 2


def test_patch_that_makes_offer_purchasable_is_gated(db, manager, make_supplier, make_product):
    supplier = make_supplier(ready=False)
    product = make_product()
    result = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(available_qty=0))

    with pytest.raises(PayoutNotReadyError):
        manager.restock_offer(OfferRef.base(result.offer.id), 5)

    row = db.query(SupplierProductOffer).one()
    assert row.available_qty == 0
    assert row.in_stock is False


def test_offer_of_another_supplier_reads_as_not_found(db, manager, make_supplier, make_product):
    owner = make_supplier()
    other = make_supplier(name="Abuja Electronics")
    product = make_product()
    result = manager.create_or_update_base_offer(owner.id, product.id, offer_fields())

    with pytest.raises(OfferNotFoundError):
        manager.patch_offer(OfferRef.base(result.offer.id), OfferPatch(price=Decimal("10")), supplier_id=other.id)


def test_missing_references_are_not_found(db, manager, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()

    with pytest.raises(OfferNotFoundError):
        manager.create_or_update_base_offer(supplier.id, uuid.uuid4(), offer_fields())
    with pytest.raises(OfferNotFoundError):
        manager.create_or_update_base_offer(uuid.uuid4(), product.id, offer_fields())
    with pytest.raises(OfferNotFoundError):
        manager.create_or_update_variant_offer(supplier.id, uuid.uuid4(), offer_fields())
    with pytest.raises(OfferNotFoundError):
        manager.delete_offer(OfferRef.variant(uuid.uuid4()))


def test_racing_create_is_reported_as_conflict(db, manager, make_supplier, make_product, monkeypatch):
    supplier = make_supplier()
    product = make_product()
    manager.create_or_update_base_offer(supplier.id, product.id, offer_fields())

    # Simulate a second writer that checked for an existing row before the first committed
    monkeypatch.setattr(OfferStore, "find_base_offer", lambda self, supplier_id, product_id: None)

    with pytest.raises(OfferConflictError):
        manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(price="500"))

    assert db.query(SupplierProductOffer).count() == 1
    assert db.query(SupplierProductOffer).one().price == Decimal("1000")


def test_racing_variant_create_is_reported_as_conflict(db, manager, make_supplier, make_product, make_variant, monkeypatch):
    supplier = make_supplier()
    variant = make_variant(make_product())
    manager.create_or_update_variant_offer(supplier.id, variant.id, offer_fields())

    monkeypatch.setattr(OfferStore, "find_variant_offer", lambda self, supplier_id, variant_id: None)

    with pytest.raises(OfferConflictError):
        manager.create_or_update_variant_offer(supplier.id, variant.id, offer_fields(price="500"))

    assert db.query(SupplierVariantOffer).count() == 1
    assert db.query(SupplierVariantOffer).one().price == Decimal("1000")


def test_list_product_offers_returns_base_rows_first(db, manager, make_supplier, make_product, make_variant):
    supplier = make_supplier()
    product = make_product()
    variant = make_variant(product)
    manager.create_or_update_variant_offer(supplier.id, variant.id, offer_fields())
    manager.create_or_update_base_offer(supplier.id, product.id, offer_fields())

    offers = manager.list_product_offers(product.id)

    assert [kind.value for kind, _ in offers] == ["base", "variant"]
