from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, ForeignKey, Uuid, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from app.db.database import Base


class SupplierProductOffer(Base):
    """Base offer: one supplier's price and availability for a whole product"""
    __tablename__ = "supplier_product_offers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    supplier_id = Column(Uuid(as_uuid=True), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    available_qty = Column(Integer, nullable=False, default=0)
    lead_days = Column(Integer)
    is_active = Column(Boolean, nullable=False, default=True)
    in_stock = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("supplier_id", "product_id", name="uq_base_offer_supplier_product"),
        CheckConstraint("price >= 0", name="base_offer_price_non_negative"),
        CheckConstraint("available_qty >= 0", name="base_offer_qty_non_negative"),
        Index("idx_base_offers_product", "product_id"),
        Index("idx_base_offers_active_in_stock", "is_active", "in_stock"),
    )

    variant_offers = relationship("SupplierVariantOffer", back_populates="base_offer")


class SupplierVariantOffer(Base):
    """Variant offer: one supplier's full price and availability for one variant

    ``product_id`` is a denormalized copy of the variant's product and must
    always match it.
    """
    __tablename__ = "supplier_variant_offers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    supplier_id = Column(Uuid(as_uuid=True), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(Uuid(as_uuid=True), ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False)
    base_offer_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("supplier_product_offers.id", ondelete="SET NULL"),
        nullable=True
    )
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    available_qty = Column(Integer, nullable=False, default=0)
    lead_days = Column(Integer)
    is_active = Column(Boolean, nullable=False, default=True)
    in_stock = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("supplier_id", "variant_id", name="uq_variant_offer_supplier_variant"),
        CheckConstraint("price >= 0", name="variant_offer_price_non_negative"),
        CheckConstraint("available_qty >= 0", name="variant_offer_qty_non_negative"),
        Index("idx_variant_offers_product", "product_id"),
        Index("idx_variant_offers_variant", "variant_id"),
        Index("idx_variant_offers_active_in_stock", "is_active", "in_stock"),
    )

    base_offer = relationship("SupplierProductOffer", back_populates="variant_offers")
