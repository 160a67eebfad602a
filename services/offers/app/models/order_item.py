from sqlalchemy import Column, Integer, DateTime, Uuid, Index
from sqlalchemy.sql import func
import uuid
from app.db.database import Base


class OrderItem(Base):
    """Historical order line, owned by the order service

    The offer core only ever checks whether rows reference an offer, product or
    variant. The chosen offer ids are plain columns so that order history keeps
    the id even after the offer row is gone.
    """
    __tablename__ = "order_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid(as_uuid=True), nullable=False)
    product_id = Column(Uuid(as_uuid=True))
    variant_id = Column(Uuid(as_uuid=True))
    chosen_base_offer_id = Column(Uuid(as_uuid=True))
    chosen_variant_offer_id = Column(Uuid(as_uuid=True))
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_order_items_product", "product_id"),
        Index("idx_order_items_variant", "variant_id"),
        Index("idx_order_items_base_offer", "chosen_base_offer_id"),
        Index("idx_order_items_variant_offer", "chosen_variant_offer_id"),
    )
