from sqlalchemy import func
from sqlalchemy.orm import Session
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID
import logging

from app.models.offer import SupplierProductOffer, SupplierVariantOffer
from app.models.product import Product, ProductVariant, PriceMode
from app.models.supplier import Supplier
from app.services.errors import OfferNotFoundError
from app.services.payout_gate import payout_ready_clause

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockSnapshot:
    product_id: UUID
    available_qty: int
    in_stock: bool
    auto_price: Optional[Decimal]


class StockAggregator:
    """Recomputes a product's cached availability and price from its live offers

    Works inside the caller's transaction: it flushes but never commits, so the
    cache always lands together with the offer mutation that triggered it.
    """

    def __init__(self, db: Session):
        self.db = db

    def _base_available_qty(self, product_id: UUID) -> int:
        total = self.db.query(
            func.coalesce(func.sum(SupplierProductOffer.available_qty), 0)
        ).filter(
            SupplierProductOffer.product_id == product_id,
            SupplierProductOffer.is_active.is_(True),
            SupplierProductOffer.in_stock.is_(True),
            SupplierProductOffer.available_qty > 0,
        ).scalar()
        return int(total or 0)

    def _variant_available_qty(self, product_id: UUID) -> int:
        # Join through the variant so a drifted denormalized product_id cannot hide stock
        total = self.db.query(
            func.coalesce(func.sum(SupplierVariantOffer.available_qty), 0)
        ).join(
            ProductVariant, ProductVariant.id == SupplierVariantOffer.variant_id
        ).filter(
            ProductVariant.product_id == product_id,
            SupplierVariantOffer.is_active.is_(True),
            SupplierVariantOffer.in_stock.is_(True),
            SupplierVariantOffer.available_qty > 0,
        ).scalar()
        return int(total or 0)

    def _auto_price_floor(self, product_id: UUID) -> Optional[Decimal]:
        """Cheapest purchasable base offer among payout-ready suppliers"""
        floor = self.db.query(
            func.min(SupplierProductOffer.price)
        ).join(
            Supplier, Supplier.id == SupplierProductOffer.supplier_id
        ).filter(
            SupplierProductOffer.product_id == product_id,
            SupplierProductOffer.is_active.is_(True),
            SupplierProductOffer.in_stock.is_(True),
            SupplierProductOffer.available_qty > 0,
            SupplierProductOffer.price > 0,
            payout_ready_clause(),
        ).scalar()
        if floor is None:
            return None
        return Decimal(floor).quantize(Decimal("0.01"))

    def recompute_product_stock(self, product_id: UUID) -> StockSnapshot:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise OfferNotFoundError(f"Product not found: {product_id}")

        available_qty = self._base_available_qty(product_id) + self._variant_available_qty(product_id)
        product.available_qty = available_qty
        product.in_stock = available_qty > 0

        if product.price_mode == PriceMode.AUTO.value:
            product.auto_price = self._auto_price_floor(product_id)

        self.db.flush()

        logger.debug(
            f"Recomputed stock for product {product_id}: available_qty={available_qty}, "
            f"in_stock={product.in_stock}, auto_price={product.auto_price}"
        )
        return StockSnapshot(
            product_id=product.id,
            available_qty=product.available_qty,
            in_stock=product.in_stock,
            auto_price=product.auto_price,
        )
