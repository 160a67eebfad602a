from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from typing import Union
import logging

from app.models.offer import SupplierProductOffer, SupplierVariantOffer
from app.models.order_item import OrderItem
from app.models.product import ProductVariant
from app.services.errors import OfferConflictError
from app.services.offer_ref import OfferKind, OfferRef, ProductScope

logger = logging.getLogger(__name__)

Scope = Union[OfferRef, ProductScope]


class IntegrityGuard:
    """Read-only check that order history does not point at what is about to go away"""

    def __init__(self, db: Session):
        self.db = db

    def _reference_filter(self, scope: Scope):
        if isinstance(scope, OfferRef):
            if scope.kind == OfferKind.BASE:
                return OrderItem.chosen_base_offer_id == scope.id
            return OrderItem.chosen_variant_offer_id == scope.id

        pid = scope.product_id
        variant_ids = select(ProductVariant.id).where(ProductVariant.product_id == pid)
        base_offer_ids = select(SupplierProductOffer.id).where(SupplierProductOffer.product_id == pid)
        variant_offer_ids = select(SupplierVariantOffer.id).where(
            or_(
                SupplierVariantOffer.product_id == pid,
                SupplierVariantOffer.variant_id.in_(variant_ids),
            )
        )
        return or_(
            OrderItem.product_id == pid,
            OrderItem.variant_id.in_(variant_ids),
            OrderItem.chosen_base_offer_id.in_(base_offer_ids),
            OrderItem.chosen_variant_offer_id.in_(variant_offer_ids),
        )

    def count_order_references(self, scope: Scope) -> int:
        return self.db.query(func.count(OrderItem.id)).filter(self._reference_filter(scope)).scalar() or 0

    def has_order_references(self, scope: Scope) -> bool:
        return self.count_order_references(scope) > 0

    def assert_deletable(self, scope: Scope) -> None:
        count = self.count_order_references(scope)
        if not count:
            return

        if isinstance(scope, OfferRef):
            message = (
                f"Offer {scope} cannot be deleted or converted because it is referenced "
                f"by {count} order item(s). Deactivate it instead."
            )
            details = {"offerId": str(scope), "orderItemsCount": count}
        else:
            message = (
                f"Offers for product {scope.product_id} cannot be deleted because the product "
                f"appears in {count} order item(s). Deactivate the offers instead."
            )
            details = {"productId": str(scope.product_id), "orderItemsCount": count}

        logger.warning(message)
        raise OfferConflictError(message, details=details)
