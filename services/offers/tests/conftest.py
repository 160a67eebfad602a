"""Shared pytest fixtures for offer service tests."""
import os

os.environ.setdefault("AUTH0_DOMAIN", "test.auth0.local")

from decimal import Decimal
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.database import Base
from app.models import (
    BankVerificationStatus,
    OrderItem,
    PriceMode,
    Product,
    ProductVariant,
    Supplier,
)
from app.schemas.offer import OfferFields
from app.services.offer_transitions import OfferTransitionManager


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def manager(db):
    return OfferTransitionManager(db)


@pytest.fixture
def make_supplier(db):
    def _make(ready: bool = True, **overrides) -> Supplier:
        values = {
            "name": "Lagos Gadgets",
            "is_payout_enabled": ready,
            "bank_code": "058" if ready else None,
            "account_number": "0123456789" if ready else None,
            "account_name": "Lagos Gadgets Ltd" if ready else None,
            "bank_country": "NG" if ready else None,
            "bank_verification_status": (
                BankVerificationStatus.VERIFIED.value if ready else BankVerificationStatus.UNVERIFIED.value
            ),
        }
        values.update(overrides)
        supplier = Supplier(**values)
        db.add(supplier)
        db.commit()
        return supplier
    return _make


@pytest.fixture
def make_product(db):
    def _make(title: str = "Wireless Earbuds", price_mode: str = PriceMode.AUTO.value) -> Product:
        product = Product(title=title, price_mode=price_mode)
        db.add(product)
        db.commit()
        return product
    return _make


@pytest.fixture
def make_variant(db):
    def _make(product: Product, sku: str = None, options: dict = None) -> ProductVariant:
        variant = ProductVariant(
            product_id=product.id,
            sku=sku or f"SKU-{uuid.uuid4().hex[:8]}",
            options=options or {"color": "black"},
        )
        db.add(variant)
        db.commit()
        return variant
    return _make


@pytest.fixture
def make_order_item(db):
    def _make(**references) -> OrderItem:
        item = OrderItem(order_id=uuid.uuid4(), quantity=1, **references)
        db.add(item)
        db.commit()
        return item
    return _make


def offer_fields(price="1000.00", available_qty=5, is_active=True, currency=None, lead_days=None) -> OfferFields:
    return OfferFields(
        price=Decimal(price),
        currency=currency,
        available_qty=available_qty,
        lead_days=lead_days,
        is_active=is_active,
    )
