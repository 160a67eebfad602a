from contextlib import contextmanager
from dataclasses import dataclass
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from app.models.offer import SupplierProductOffer, SupplierVariantOffer
from app.models.product import ProductVariant
from app.schemas.offer import OfferFields, OfferPatch
from app.services.errors import (
    OfferConflictError,
    OfferError,
    OfferInternalError,
    OfferValidationError,
)
from app.services.integrity_guard import IntegrityGuard
from app.services.offer_ref import OfferKind, OfferRef, ProductScope
from app.services.offer_store import OfferRow, OfferStore, carried_fields
from app.services.payout_gate import PayoutGate
from app.services.stock_aggregator import StockAggregator, StockSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfferResult:
    ref: OfferRef
    offer: OfferRow
    stock: StockSnapshot
    created: bool = False


@dataclass(frozen=True)
class ConversionResult:
    source: OfferRef
    ref: OfferRef
    offer: OfferRow
    stock: StockSnapshot


@dataclass(frozen=True)
class DeletionResult:
    ref: OfferRef
    detached_variant_offers: int
    stock: StockSnapshot


@dataclass(frozen=True)
class BulkDeletionResult:
    product_id: UUID
    deleted_base_offers: int
    deleted_variant_offers: int
    stock: StockSnapshot


@dataclass(frozen=True)
class RepairResult:
    product_id: UUID
    corrected: int
    stock: StockSnapshot


class OfferTransitionManager:
    """Entry point for every offer mutation

    Each public method is one unit of work: the offer change and the product
    stock recompute commit together, or the whole thing is rolled back.
    """

    def __init__(self, db: Session):
        self.db = db
        self.gate = PayoutGate(db)
        self.guard = IntegrityGuard(db)
        self.store = OfferStore(db, self.gate)
        self.aggregator = StockAggregator(db)

    @contextmanager
    def _unit_of_work(self, operation: str):
        try:
            yield
            self.db.commit()
        except OfferError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{operation} failed: {e}", exc_info=True)
            raise OfferInternalError(f"{operation} failed due to a persistence error") from e
        except Exception:
            self.db.rollback()
            raise

    def _affected_products(self, ref: OfferRef, row: OfferRow) -> List[UUID]:
        """Products whose cache depends on an offer row, the reported one first

        A variant offer counts towards its variant's product. When the stored
        product_id has drifted from it, both products are refreshed.
        """
        product_ids = [row.product_id]
        if ref.kind == OfferKind.VARIANT:
            variant = self.db.get(ProductVariant, row.variant_id)
            if variant is not None and variant.product_id != row.product_id:
                product_ids.insert(0, variant.product_id)
        return product_ids

    def _recompute(self, *product_ids: Optional[UUID]) -> StockSnapshot:
        """Recompute every distinct product given; returns the first snapshot"""
        snapshots = [
            self.aggregator.recompute_product_stock(pid)
            for pid in dict.fromkeys(p for p in product_ids if p is not None)
        ]
        return snapshots[0]

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    def create_or_update_base_offer(self, supplier_id: UUID, product_id: UUID, fields: OfferFields) -> OfferResult:
        with self._unit_of_work("Saving base offer"):
            row, created = self.store.create_or_update_base_offer(supplier_id, product_id, fields)
            stock = self.aggregator.recompute_product_stock(row.product_id)
        return OfferResult(OfferRef.base(row.id), row, stock, created)

    def create_or_update_variant_offer(
        self,
        supplier_id: UUID,
        variant_id: UUID,
        fields: OfferFields,
        expected_product_id: Optional[UUID] = None,
    ) -> OfferResult:
        with self._unit_of_work("Saving variant offer"):
            previous = self.store.find_variant_offer(supplier_id, variant_id)
            stale_product_id = previous.product_id if previous else None
            row, created = self.store.create_or_update_variant_offer(
                supplier_id, variant_id, fields, expected_product_id
            )
            stock = self._recompute(row.product_id, stale_product_id)
        return OfferResult(OfferRef.variant(row.id), row, stock, created)

    def patch_offer(self, ref: OfferRef, patch: OfferPatch, supplier_id: Optional[UUID] = None) -> OfferResult:
        with self._unit_of_work(f"Updating offer {ref}"):
            row = self.store.patch_offer(ref, patch, supplier_id)
            stock = self._recompute(*self._affected_products(ref, row))
        return OfferResult(ref, row, stock)

    def restock_offer(self, ref: OfferRef, delta: int, supplier_id: Optional[UUID] = None) -> OfferResult:
        with self._unit_of_work(f"Restocking offer {ref}"):
            row = self.store.restock_offer(ref, delta, supplier_id)
            stock = self._recompute(*self._affected_products(ref, row))
        return OfferResult(ref, row, stock)

    # ------------------------------------------------------------------
    # Convert
    # ------------------------------------------------------------------

    def convert_offer(
        self,
        ref: OfferRef,
        target_kind: OfferKind,
        variant_id: Optional[UUID] = None,
        supplier_id: Optional[UUID] = None,
    ) -> ConversionResult:
        """Turn a base offer into a variant offer or the reverse

        The new row carries price, quantity, active flag, lead days and
        currency. The old row is deleted in the same transaction.
        """
        if target_kind == ref.kind:
            raise OfferValidationError(f"Offer {ref} is already a {target_kind.value} offer")

        with self._unit_of_work(f"Converting offer {ref}"):
            source = self.store.get_offer(ref, supplier_id)
            self.guard.assert_deletable(ref)
            fields = carried_fields(source)
            source_products = self._affected_products(ref, source)

            if target_kind == OfferKind.VARIANT:
                new_row = self._convert_base_to_variant(source, fields, variant_id)
                new_ref = OfferRef.variant(new_row.id)
            else:
                new_row = self._convert_variant_to_base(source, fields)
                new_ref = OfferRef.base(new_row.id)

            self.store.delete_offer_row(ref, source)
            stock = self._recompute(new_row.product_id, *source_products)

        logger.info(f"Converted offer {ref} into {new_ref}")
        return ConversionResult(ref, new_ref, new_row, stock)

    def _convert_base_to_variant(
        self,
        source: SupplierProductOffer,
        fields: OfferFields,
        variant_id: Optional[UUID],
    ) -> SupplierVariantOffer:
        if variant_id is None:
            raise OfferValidationError("variantId is required to convert into a variant offer")

        if self.store.find_variant_offer(source.supplier_id, variant_id):
            raise OfferConflictError(
                "Conflict: duplicate offer",
                details={"supplierId": str(source.supplier_id), "variantId": str(variant_id)},
            )

        new_row, _ = self.store.create_or_update_variant_offer(
            source.supplier_id, variant_id, fields, expected_product_id=source.product_id
        )
        # The source base offer is going away; nothing may keep pointing at it
        self.store.detach_variant_offers(source.id)
        return new_row

    def _convert_variant_to_base(self, source: SupplierVariantOffer, fields: OfferFields) -> SupplierProductOffer:
        variant = self.db.query(ProductVariant).filter(ProductVariant.id == source.variant_id).first()
        product_id = variant.product_id if variant else source.product_id

        if self.store.find_base_offer(source.supplier_id, product_id):
            raise OfferConflictError(
                "Conflict: duplicate offer",
                details={"supplierId": str(source.supplier_id), "productId": str(product_id)},
            )

        new_row, _ = self.store.create_or_update_base_offer(source.supplier_id, product_id, fields)
        return new_row

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_offer(self, ref: OfferRef, supplier_id: Optional[UUID] = None) -> DeletionResult:
        """Hard delete one offer; variant offers of a deleted base are detached, never deleted"""
        with self._unit_of_work(f"Deleting offer {ref}"):
            row = self.store.get_offer(ref, supplier_id)
            self.guard.assert_deletable(ref)
            affected = self._affected_products(ref, row)

            detached = 0
            if ref.kind == OfferKind.BASE:
                detached = self.store.detach_variant_offers(row.id)

            self.store.delete_offer_row(ref, row)
            stock = self._recompute(*affected)

        logger.info(f"Deleted offer {ref} (detached {detached} variant offer(s))")
        return DeletionResult(ref, detached, stock)

    def delete_all_product_offers(self, product_id: UUID) -> BulkDeletionResult:
        with self._unit_of_work(f"Deleting offers of product {product_id}"):
            self.store._require_product(product_id)
            self.guard.assert_deletable(ProductScope(product_id))

            deleted_bases, deleted_variants = self.store.delete_product_offers(product_id)
            stock = self.aggregator.recompute_product_stock(product_id)

        logger.info(f"Deleted {deleted_bases} base and {deleted_variants} variant offer(s) of product {product_id}")
        return BulkDeletionResult(product_id, deleted_bases, deleted_variants, stock)

    # ------------------------------------------------------------------
    # Repair / recompute
    # ------------------------------------------------------------------

    def repair_product_offers(self, product_id: UUID) -> RepairResult:
        """Re-derive product_id and base_offer_id on every variant offer of a product

        Safe to run any number of times; a second run corrects nothing.
        """
        with self._unit_of_work(f"Repairing offers of product {product_id}"):
            self.store._require_product(product_id)

            rows: List[Tuple[SupplierVariantOffer, ProductVariant]] = self.db.query(
                SupplierVariantOffer, ProductVariant
            ).join(
                ProductVariant, ProductVariant.id == SupplierVariantOffer.variant_id
            ).filter(
                (SupplierVariantOffer.product_id == product_id)
                | (ProductVariant.product_id == product_id)
            ).all()

            corrected = 0
            for offer, variant in rows:
                changed = False
                if offer.product_id != variant.product_id:
                    offer.product_id = variant.product_id
                    changed = True

                base_offer = self.store.find_base_offer(offer.supplier_id, variant.product_id)
                expected_link = base_offer.id if base_offer else None
                if offer.base_offer_id != expected_link:
                    offer.base_offer_id = expected_link
                    changed = True

                if changed:
                    corrected += 1
            self.db.flush()

            stock = self.aggregator.recompute_product_stock(product_id)

        logger.info(f"Repaired {corrected} variant offer(s) of product {product_id}")
        return RepairResult(product_id, corrected, stock)

    def recompute_product_stock(self, product_id: UUID) -> StockSnapshot:
        with self._unit_of_work(f"Recomputing stock of product {product_id}"):
            stock = self.aggregator.recompute_product_stock(product_id)
        return stock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_product_offers(self, product_id: UUID) -> List[Tuple[OfferKind, OfferRow]]:
        return self.store.list_product_offers(product_id)

    def count_order_references(self, product_id: UUID) -> int:
        self.store._require_product(product_id)
        return self.guard.count_order_references(ProductScope(product_id))

    def has_order_references(self, product_id: UUID) -> bool:
        self.store._require_product(product_id)
        return self.guard.has_order_references(ProductScope(product_id))
