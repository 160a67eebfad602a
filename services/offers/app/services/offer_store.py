from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import UUID
import logging

from app.config import settings
from app.models.offer import SupplierProductOffer, SupplierVariantOffer
from app.models.product import Product, ProductVariant
from app.models.supplier import Supplier
from app.schemas.offer import OfferFields, OfferPatch
from app.services.errors import (
    DeleteNotAppliedError,
    OfferConflictError,
    OfferNotFoundError,
    OfferValidationError,
)
from app.services.offer_ref import OfferKind, OfferRef
from app.services.payout_gate import PayoutGate, offer_becomes_purchasable

logger = logging.getLogger(__name__)

OfferRow = Union[SupplierProductOffer, SupplierVariantOffer]

_MODELS = {
    OfferKind.BASE: SupplierProductOffer,
    OfferKind.VARIANT: SupplierVariantOffer,
}


def model_for(kind: OfferKind):
    return _MODELS[kind]


def derive_in_stock(is_active: bool, available_qty: int) -> bool:
    return bool(is_active) and (available_qty or 0) > 0


def carried_fields(row: OfferRow) -> OfferFields:
    """Snapshot of the fields an offer keeps when it changes kind"""
    return OfferFields(
        price=row.price,
        currency=row.currency,
        available_qty=row.available_qty,
        lead_days=row.lead_days,
        is_active=row.is_active,
    )


class OfferStore:
    """Owns the base and variant offer tables

    Every write derives ``in_stock`` itself and consults the payout gate when
    the resulting row would be purchasable. Rows are flushed, never committed;
    the transition manager owns the transaction.
    """

    def __init__(self, db: Session, gate: Optional[PayoutGate] = None):
        self.db = db
        self.gate = gate or PayoutGate(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require_supplier(self, supplier_id: UUID) -> Supplier:
        supplier = self.db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier:
            raise OfferNotFoundError(f"Supplier not found: {supplier_id}")
        return supplier

    def _require_product(self, product_id: UUID) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise OfferNotFoundError(f"Product not found: {product_id}")
        return product

    def _require_variant(self, variant_id: UUID) -> ProductVariant:
        variant = self.db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()
        if not variant:
            raise OfferNotFoundError(f"Variant not found: {variant_id}")
        return variant

    def get_offer(self, ref: OfferRef, supplier_id: Optional[UUID] = None) -> OfferRow:
        """Load an offer by tagged id, optionally scoped to its owning supplier"""
        model = model_for(ref.kind)
        query = self.db.query(model).filter(model.id == ref.id)
        if supplier_id is not None:
            query = query.filter(model.supplier_id == supplier_id)
        row = query.first()
        if not row:
            raise OfferNotFoundError(f"Offer not found: {ref}")
        return row

    def find_base_offer(self, supplier_id: UUID, product_id: UUID) -> Optional[SupplierProductOffer]:
        return self.db.query(SupplierProductOffer).filter(
            SupplierProductOffer.supplier_id == supplier_id,
            SupplierProductOffer.product_id == product_id,
        ).first()

    def find_variant_offer(self, supplier_id: UUID, variant_id: UUID) -> Optional[SupplierVariantOffer]:
        return self.db.query(SupplierVariantOffer).filter(
            SupplierVariantOffer.supplier_id == supplier_id,
            SupplierVariantOffer.variant_id == variant_id,
        ).first()

    def list_product_offers(self, product_id: UUID) -> List[Tuple[OfferKind, OfferRow]]:
        """All offers of a product: base rows first, then variant rows"""
        self._require_product(product_id)

        bases = self.db.query(SupplierProductOffer).filter(
            SupplierProductOffer.product_id == product_id
        ).order_by(SupplierProductOffer.created_at, SupplierProductOffer.id).all()
        variants = self.db.query(SupplierVariantOffer).filter(
            SupplierVariantOffer.product_id == product_id
        ).order_by(SupplierVariantOffer.created_at, SupplierVariantOffer.id).all()

        return [(OfferKind.BASE, b) for b in bases] + [(OfferKind.VARIANT, v) for v in variants]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _flush(self, conflict_message: str) -> None:
        # The unique constraints are the real guard against racing creates
        try:
            self.db.flush()
        except IntegrityError as e:
            logger.warning(f"{conflict_message}: {e.orig}")
            raise OfferConflictError(conflict_message) from e

    def _write(self, row: OfferRow, supplier_id: UUID, values: Dict[str, Any], conflict_message: str) -> OfferRow:
        """Apply values to a row after deriving in_stock and checking the payout gate

        The row is left untouched if the gate refuses the write.
        """
        values = dict(values)
        values["in_stock"] = derive_in_stock(values["is_active"], values["available_qty"])

        self.gate.assert_payout_ready(
            supplier_id,
            offer_becomes_purchasable(
                values["is_active"], values["in_stock"], values["available_qty"], values["price"]
            ),
        )

        for field, value in values.items():
            setattr(row, field, value)
        if row not in self.db:
            self.db.add(row)
        self._flush(conflict_message)
        return row

    def create_or_update_base_offer(
        self,
        supplier_id: UUID,
        product_id: UUID,
        fields: OfferFields,
    ) -> Tuple[SupplierProductOffer, bool]:
        """Upsert the supplier's base offer for a product. Returns (row, created)."""
        self._require_supplier(supplier_id)
        self._require_product(product_id)

        existing = self.find_base_offer(supplier_id, product_id)
        row = existing or SupplierProductOffer(supplier_id=supplier_id, product_id=product_id)
        currency = fields.currency or (existing.currency if existing else None) or settings.default_currency

        self._write(
            row,
            supplier_id,
            {
                "price": fields.price,
                "currency": currency,
                "available_qty": fields.available_qty,
                "lead_days": fields.lead_days,
                "is_active": fields.is_active,
            },
            conflict_message="Conflict: duplicate offer for this supplier and product",
        )
        logger.info(f"{'Created' if existing is None else 'Updated'} base offer {row.id} for supplier {supplier_id}, product {product_id}")
        return row, existing is None

    def create_or_update_variant_offer(
        self,
        supplier_id: UUID,
        variant_id: UUID,
        fields: OfferFields,
        expected_product_id: Optional[UUID] = None,
    ) -> Tuple[SupplierVariantOffer, bool]:
        """Upsert the supplier's offer for one variant. Returns (row, created).

        Links the row to the supplier's base offer for the same product when one
        exists; never creates a base offer.
        """
        self._require_supplier(supplier_id)
        variant = self._require_variant(variant_id)
        if expected_product_id is not None and variant.product_id != expected_product_id:
            raise OfferValidationError(
                "variantId does not belong to this product",
                details={"variantId": str(variant_id), "productId": str(expected_product_id)},
            )

        base_offer = self.find_base_offer(supplier_id, variant.product_id)
        existing = self.find_variant_offer(supplier_id, variant_id)
        row = existing or SupplierVariantOffer(supplier_id=supplier_id, variant_id=variant_id)

        if existing is not None:
            currency = fields.currency or existing.currency
        else:
            # Base currency is only a creation-time default
            currency = fields.currency or (base_offer.currency if base_offer else None) or settings.default_currency

        self._write(
            row,
            supplier_id,
            {
                "product_id": variant.product_id,
                "base_offer_id": base_offer.id if base_offer else None,
                "price": fields.price,
                "currency": currency,
                "available_qty": fields.available_qty,
                "lead_days": fields.lead_days,
                "is_active": fields.is_active,
            },
            conflict_message="Conflict: duplicate offer for this supplier and variant",
        )
        logger.info(f"{'Created' if existing is None else 'Updated'} variant offer {row.id} for supplier {supplier_id}, variant {variant_id}")
        return row, existing is None

    def patch_offer(self, ref: OfferRef, patch: OfferPatch, supplier_id: Optional[UUID] = None) -> OfferRow:
        row = self.get_offer(ref, supplier_id)
        changes = patch.changes()
        values = {
            "price": changes.get("price", row.price),
            "currency": changes.get("currency", row.currency),
            "available_qty": changes.get("available_qty", row.available_qty),
            "lead_days": changes["lead_days"] if "lead_days" in changes else row.lead_days,
            "is_active": changes.get("is_active", row.is_active),
        }
        self._write(row, row.supplier_id, values, conflict_message=f"Conflict while updating offer {ref}")
        logger.info(f"Patched offer {ref}: {sorted(changes)}")
        return row

    def restock_offer(self, ref: OfferRef, delta: int, supplier_id: Optional[UUID] = None) -> OfferRow:
        """Shift available quantity by a signed delta, refusing to go below zero"""
        row = self.get_offer(ref, supplier_id)
        next_qty = (row.available_qty or 0) + int(delta)
        if next_qty < 0:
            raise OfferValidationError(
                "Resulting quantity would be negative",
                details={"offerId": str(ref), "availableQty": row.available_qty, "delta": delta},
            )
        values = {
            "price": row.price,
            "currency": row.currency,
            "available_qty": next_qty,
            "lead_days": row.lead_days,
            "is_active": row.is_active,
        }
        self._write(row, row.supplier_id, values, conflict_message=f"Conflict while restocking offer {ref}")
        logger.info(f"Restocked offer {ref} by {delta} to {next_qty}")
        return row

    def detach_variant_offers(self, base_offer_id: UUID) -> int:
        """Null the base link on every variant offer pointing at a base offer"""
        count = self.db.query(SupplierVariantOffer).filter(
            SupplierVariantOffer.base_offer_id == base_offer_id
        ).update({SupplierVariantOffer.base_offer_id: None}, synchronize_session="fetch")
        self.db.flush()
        return count

    def delete_offer_row(self, ref: OfferRef, row: OfferRow) -> None:
        """Hard delete one offer row and verify it is really gone"""
        self.db.delete(row)
        self.db.flush()
        self.assert_row_gone(ref)

    def _product_offer_queries(self, product_id: UUID):
        variant_ids = select(ProductVariant.id).where(ProductVariant.product_id == product_id)
        variant_offers = self.db.query(SupplierVariantOffer).filter(
            (SupplierVariantOffer.product_id == product_id)
            | SupplierVariantOffer.variant_id.in_(variant_ids)
        )
        base_offers = self.db.query(SupplierProductOffer).filter(
            SupplierProductOffer.product_id == product_id
        )
        return base_offers, variant_offers

    def delete_product_offers(self, product_id: UUID) -> Tuple[int, int]:
        """Hard delete every base and variant offer of a product and verify none remain

        Returns (deleted base offers, deleted variant offers).
        """
        base_offers, variant_offers = self._product_offer_queries(product_id)
        deleted_variants = variant_offers.delete(synchronize_session="fetch")
        deleted_bases = base_offers.delete(synchronize_session="fetch")
        self.db.flush()

        base_offers, variant_offers = self._product_offer_queries(product_id)
        remaining = base_offers.count() + variant_offers.count()
        if remaining:
            logger.error(
                f"{remaining} offer(s) of product {product_id} still present after bulk delete "
                f"(reported {deleted_bases} base, {deleted_variants} variant)"
            )
            raise DeleteNotAppliedError(
                f"Offers of product {product_id} were not deleted",
                details={"productId": str(product_id), "remainingOffers": remaining},
            )
        return deleted_bases, deleted_variants

    def assert_row_gone(self, ref: OfferRef) -> None:
        model = model_for(ref.kind)
        remaining = self.db.query(func.count(model.id)).filter(model.id == ref.id).scalar()
        if remaining:
            logger.error(f"Offer {ref} still present after delete; a trigger or soft-delete rule may have intercepted it")
            raise DeleteNotAppliedError(
                f"Offer {ref} was not deleted",
                details={"offerId": str(ref)},
            )
