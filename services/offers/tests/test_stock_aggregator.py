"""Tests for product stock and auto price recomputation."""
from decimal import Decimal
import uuid

import pytest

from app.models import PriceMode, Product, SupplierProductOffer, SupplierVariantOffer
from app.schemas.offer import OfferPatch
from app.services.errors import OfferNotFoundError
from app.services.offer_ref import OfferRef
from app.services.stock_aggregator import StockAggregator

from conftest import offer_fields


def test_sums_base_and_variant_offers(db, manager, make_supplier, make_product, make_variant):
    supplier = make_supplier()
    product = make_product()
    v1 = make_variant(product)
    v2 = make_variant(product)
    manager.create_or_update_variant_offer(supplier.id, v1.id, offer_fields(available_qty=3))
    manager.create_or_update_variant_offer(supplier.id, v2.id, offer_fields(available_qty=4))
    manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(available_qty=2))

    stock = manager.recompute_product_stock(product.id)

    assert stock.available_qty == 9
    assert stock.in_stock is True
    db.refresh(product)
    assert product.available_qty == 9
    assert product.in_stock is True


def test_inactive_and_empty_offers_do_not_count(db, manager, make_supplier, make_product, make_variant):
    supplier = make_supplier()
    other = make_supplier(name="Kano Traders")
    product = make_product()
    variant = make_variant(product)
    manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(available_qty=6, is_active=False))
    manager.create_or_update_base_offer(other.id, product.id, offer_fields(available_qty=0))
    result = manager.create_or_update_variant_offer(supplier.id, variant.id, offer_fields(available_qty=1))

    assert result.stock.available_qty == 1


def test_recompute_is_idempotent(db, manager, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()
    manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(price="750", available_qty=3))

    first = manager.recompute_product_stock(product.id)
    second = manager.recompute_product_stock(product.id)

    assert first == second


def test_aggregate_matches_live_offers_after_every_mutation(db, manager, make_supplier, make_product, make_variant):
    supplier = make_supplier()
    product = make_product()
    variant = make_variant(product)

    def live_total():
        rows = db.query(SupplierProductOffer).filter_by(product_id=product.id).all()
        rows += db.query(SupplierVariantOffer).filter_by(product_id=product.id).all()
        for row in rows:
            assert row.in_stock == (row.is_active and row.available_qty > 0)
        return sum(r.available_qty for r in rows if r.is_active and r.in_stock and r.available_qty > 0)

    base = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(available_qty=2))
    assert base.stock.available_qty == live_total()

    var = manager.create_or_update_variant_offer(supplier.id, variant.id, offer_fields(available_qty=5))
    assert var.stock.available_qty == live_total()

    patched = manager.patch_offer(OfferRef.variant(var.offer.id), OfferPatch(is_active=False))
    assert patched.stock.available_qty == live_total() == 2

    deleted = manager.delete_offer(OfferRef.base(base.offer.id))
    assert deleted.stock.available_qty == live_total() == 0
    assert deleted.stock.in_stock is False


def test_auto_price_ignores_unready_suppliers(db, manager, make_supplier, make_product):
    ready = make_supplier()
    unready = make_supplier(ready=False, name="Pending Bank Ltd")
    product = make_product()
    manager.create_or_update_base_offer(ready.id, product.id, offer_fields(price="1200", available_qty=2))
    # Written while ready, then the supplier's bank details lapse
    cheap = make_supplier(name="Cheap Co")
    manager.create_or_update_base_offer(cheap.id, product.id, offer_fields(price="800", available_qty=2))
    cheap.bank_verification_status = "REJECTED"
    db.commit()
    manager.create_or_update_base_offer(unready.id, product.id, offer_fields(price="500", available_qty=0))

    stock = manager.recompute_product_stock(product.id)

    assert stock.auto_price == Decimal("1200.00")
    assert stock.available_qty == 4


def test_auto_price_is_cleared_when_no_offer_qualifies(db, manager, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()
    result = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(price="900"))
    assert result.stock.auto_price == Decimal("900.00")

    stock = manager.patch_offer(OfferRef.base(result.offer.id), OfferPatch(available_qty=0)).stock

    assert stock.auto_price is None


def test_admin_price_mode_leaves_auto_price_untouched(db, manager, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product(price_mode=PriceMode.ADMIN.value)
    product.auto_price = Decimal("4999.00")
    db.commit()

    stock = manager.create_or_update_base_offer(supplier.id, product.id, offer_fields(price="100")).stock

    assert stock.auto_price == Decimal("4999.00")
    assert stock.available_qty == 5


def test_variant_stock_counts_even_when_denormalized_product_drifted(
    db, manager, make_supplier, make_product, make_variant
):
    supplier = make_supplier()
    product = make_product()
    stray = make_product("Stray")
    variant = make_variant(product)
    result = manager.create_or_update_variant_offer(supplier.id, variant.id, offer_fields(available_qty=3))
    result.offer.product_id = stray.id
    db.commit()

    assert manager.recompute_product_stock(product.id).available_qty == 3


def test_recompute_unknown_product_is_not_found(db):
    with pytest.raises(OfferNotFoundError):
        StockAggregator(db).recompute_product_stock(uuid.uuid4())


def test_aggregator_does_not_commit(db, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()
    db.add(SupplierProductOffer(
        supplier_id=supplier.id,
        product_id=product.id,
        price=Decimal("300.00"),
        currency="NGN",
        available_qty=7,
        is_active=True,
        in_stock=True,
    ))
    db.commit()

    assert StockAggregator(db).recompute_product_stock(product.id).available_qty == 7
    db.rollback()

    assert db.get(Product, product.id).available_qty == 0
