from sqlalchemy import Column, String, Text, Integer, Boolean, Numeric, DateTime, ForeignKey, Uuid, JSON, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
import uuid
from app.db.database import Base


class PriceMode(str, enum.Enum):
    AUTO = "AUTO"
    ADMIN = "ADMIN"


class Product(Base):
    """Catalog product

    ``available_qty``, ``in_stock`` and ``auto_price`` are caches derived from the
    live offer set by the stock aggregator; nothing else writes them.
    """
    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    price_mode = Column(String(10), nullable=False, default=PriceMode.AUTO.value)
    auto_price = Column(Numeric(10, 2))
    available_qty = Column(Integer, nullable=False, default=0)
    in_stock = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("price_mode IN ('AUTO', 'ADMIN')", name="price_mode_valid"),
        CheckConstraint("available_qty >= 0", name="product_available_qty_non_negative"),
    )

    variants = relationship("ProductVariant", back_populates="product")


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    sku = Column(Text)
    options = Column(JSON().with_variant(JSONB(), "postgresql"))  # {attribute: value}
    # Legacy per-variant stock; display uses offer-derived values
    available_qty = Column(Integer, nullable=False, default=0)
    in_stock = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_product_variants_product", "product_id"),
    )

    product = relationship("Product", back_populates="variants")
