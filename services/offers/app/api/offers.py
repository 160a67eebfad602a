from fastapi import APIRouter, Depends, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from app.auth.dependencies import SupplierContext, get_current_user, get_supplier_context, require_admin
from app.db.database import get_db
from app.kafka.producer import event_producer
from app.schemas.offer import (
    BaseOfferUpsertRequest,
    BulkDeleteResponse,
    ConvertOfferRequest,
    ConvertOfferResponse,
    DeleteOfferResponse,
    HasOrdersResponse,
    OfferListResponse,
    OfferMutationResponse,
    OfferPatchRequest,
    OfferResponse,
    RepairResponse,
    RestockRequest,
    StockSnapshotResponse,
    VariantOfferUpsertRequest,
)
from app.services.offer_ref import OfferRef
from app.services.offer_transitions import OfferResult, OfferTransitionManager
from app.services.stock_aggregator import StockSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Offers"])

# Security scheme for OpenAPI documentation
security = HTTPBearer()

_ERROR_RESPONSES = {
    400: {"description": "Invalid request data or malformed offer id"},
    401: {"description": "Authentication required"},
    404: {"description": "Supplier, product, variant or offer not found"},
    409: {"description": "Duplicate offer, order history block, or supplier payout not ready"},
}


def get_offer_manager(db: Session = Depends(get_db)) -> OfferTransitionManager:
    """Dependency to get the offer transition manager"""
    return OfferTransitionManager(db)


def _stock_response(stock: StockSnapshot) -> StockSnapshotResponse:
    return StockSnapshotResponse(
        product_id=stock.product_id,
        available_qty=stock.available_qty,
        in_stock=stock.in_stock,
        auto_price=stock.auto_price,
    )


def _mutation_response(result: OfferResult, publish_upsert: bool = True) -> OfferMutationResponse:
    response = OfferMutationResponse(
        data=OfferResponse.from_row(result.ref.kind, result.offer),
        stock=_stock_response(result.stock),
    )
    if publish_upsert:
        event_producer.publish_offer_upserted(response.data.model_dump(mode="json"), created=result.created)
    event_producer.publish_stock_recomputed(response.stock.model_dump(mode="json"))
    return response


@router.put(
    "/offers/base",
    response_model=OfferMutationResponse,
    summary="Create or update a base offer",
    description="""
    Upsert the caller's offer for a whole product. A second call for the same
    supplier and product updates the existing offer in place.

    **Requirements:**
    - Authentication: Required (JWT token)
    - Account Type: SUPPLIER, or ADMIN with the `X-Supplier-Id` header

    **Payout readiness:**
    An offer that would be purchasable (active, in stock, price above zero) is
    rejected with 409 `SUPPLIER_PAYOUT_NOT_READY` until the supplier's bank
    details are complete and verified.
    """,
    dependencies=[Depends(security)],
    responses=_ERROR_RESPONSES,
)
async def upsert_base_offer(
    request: BaseOfferUpsertRequest,
    context: SupplierContext = Depends(get_supplier_context),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    result = manager.create_or_update_base_offer(context.supplier_id, request.product_id, request.to_fields())
    return _mutation_response(result)


@router.put(
    "/offers/variant",
    response_model=OfferMutationResponse,
    summary="Create or update a variant offer",
    description="""
    Upsert the caller's offer for one variant. The variant must belong to
    `product_id`. The offer is linked to the supplier's base offer for the same
    product when one exists; a base offer is never created implicitly.
    """,
    dependencies=[Depends(security)],
    responses=_ERROR_RESPONSES,
)
async def upsert_variant_offer(
    request: VariantOfferUpsertRequest,
    context: SupplierContext = Depends(get_supplier_context),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    result = manager.create_or_update_variant_offer(
        context.supplier_id,
        request.variant_id,
        request.to_fields(),
        expected_product_id=request.product_id,
    )
    return _mutation_response(result)


@router.patch(
    "/offers/{ref}",
    response_model=OfferMutationResponse,
    summary="Partially update an offer",
    description="Update any of price, currency, available_qty, lead_days and is_active on `base:<id>` or `variant:<id>`.",
    dependencies=[Depends(security)],
    responses=_ERROR_RESPONSES,
)
async def patch_offer(
    ref: str,
    request: OfferPatchRequest,
    context: SupplierContext = Depends(get_supplier_context),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    result = manager.patch_offer(OfferRef.parse(ref), request.to_patch(), context.supplier_id)
    return _mutation_response(result)


@router.post(
    "/offers/{ref}/restock",
    response_model=OfferMutationResponse,
    summary="Adjust an offer's quantity",
    description="Add a signed delta to available_qty. A result below zero is rejected.",
    dependencies=[Depends(security)],
    responses=_ERROR_RESPONSES,
)
async def restock_offer(
    ref: str,
    request: RestockRequest,
    context: SupplierContext = Depends(get_supplier_context),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    result = manager.restock_offer(OfferRef.parse(ref), request.delta, context.supplier_id)
    return _mutation_response(result)


@router.post(
    "/offers/{ref}/convert",
    response_model=ConvertOfferResponse,
    summary="Convert an offer between base and variant",
    description="""
    Replace a base offer with a variant offer (or the reverse), carrying price,
    quantity, active flag, lead days and currency. The source offer is deleted.

    Rejected with 409 when the source appears in order history or the target
    slot already holds an offer.
    """,
    dependencies=[Depends(security)],
    responses=_ERROR_RESPONSES,
)
async def convert_offer(
    ref: str,
    request: ConvertOfferRequest,
    context: SupplierContext = Depends(get_supplier_context),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    result = manager.convert_offer(
        OfferRef.parse(ref),
        request.target_kind,
        variant_id=request.variant_id,
        supplier_id=context.supplier_id,
    )
    response = ConvertOfferResponse(
        data=OfferResponse.from_row(result.ref.kind, result.offer),
        replaced=str(result.source),
        stock=_stock_response(result.stock),
    )
    event_producer.publish_offer_converted(response.replaced, response.data.model_dump(mode="json"))
    event_producer.publish_stock_recomputed(response.stock.model_dump(mode="json"))
    return response


@router.delete(
    "/offers/{ref}",
    response_model=DeleteOfferResponse,
    summary="Delete an offer",
    description="""
    Hard delete an offer. Deleting a base offer detaches its variant offers
    instead of deleting them. Offers that appear in order history cannot be
    deleted; deactivate them instead.
    """,
    dependencies=[Depends(security)],
    responses=_ERROR_RESPONSES,
)
async def delete_offer(
    ref: str,
    context: SupplierContext = Depends(get_supplier_context),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    result = manager.delete_offer(OfferRef.parse(ref), context.supplier_id)
    response = DeleteOfferResponse(
        deleted=str(result.ref),
        detached_variant_offers=result.detached_variant_offers,
        stock=_stock_response(result.stock),
    )
    event_producer.publish_offer_deleted(
        response.deleted, str(result.stock.product_id), result.detached_variant_offers
    )
    event_producer.publish_stock_recomputed(response.stock.model_dump(mode="json"))
    return response


@router.get(
    "/products/{product_id}/offers",
    response_model=OfferListResponse,
    summary="List a product's offers",
    description="All base offers of the product followed by all variant offers.",
    dependencies=[Depends(security)],
    responses={401: {"description": "Authentication required"}, 404: {"description": "Product not found"}},
)
async def list_product_offers(
    product_id: UUID,
    credentials: HTTPAuthorizationCredentials = Security(security),
    current_user: dict = Depends(get_current_user),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    offers = manager.list_product_offers(product_id)
    return OfferListResponse(
        product_id=product_id,
        offers=[OfferResponse.from_row(kind, row) for kind, row in offers],
    )


@router.get(
    "/products/{product_id}/has-orders",
    response_model=HasOrdersResponse,
    summary="Check order history for a product (ADMIN only)",
    dependencies=[Depends(security)],
    responses={403: {"description": "Requires ADMIN account type"}, 404: {"description": "Product not found"}},
)
async def has_order_references(
    product_id: UUID,
    current_user: dict = Depends(require_admin),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    has_orders = manager.has_order_references(product_id)
    count = manager.count_order_references(product_id) if has_orders else 0
    return HasOrdersResponse(has=has_orders, count=count)


@router.delete(
    "/products/{product_id}/offers",
    response_model=BulkDeleteResponse,
    summary="Delete every offer of a product (ADMIN only)",
    description="Rejected with 409 when the product, any of its variants or any of its offers appear in order history.",
    dependencies=[Depends(security)],
    responses={403: {"description": "Requires ADMIN account type"}, **_ERROR_RESPONSES},
)
async def delete_all_product_offers(
    product_id: UUID,
    current_user: dict = Depends(require_admin),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    result = manager.delete_all_product_offers(product_id)
    logger.info(
        f"Admin {current_user.get('user_id')} deleted all offers of product {product_id}"
    )
    response = BulkDeleteResponse(
        deleted_base_offers=result.deleted_base_offers,
        deleted_variant_offers=result.deleted_variant_offers,
        stock=_stock_response(result.stock),
    )
    event_producer.publish_stock_recomputed(response.stock.model_dump(mode="json"))
    return response


@router.post(
    "/products/{product_id}/offers/repair",
    response_model=RepairResponse,
    summary="Repair variant offer links of a product (ADMIN only)",
    description="Re-derive product_id and base_offer_id on every variant offer of the product. Safe to repeat.",
    dependencies=[Depends(security)],
    responses={403: {"description": "Requires ADMIN account type"}, 404: {"description": "Product not found"}},
)
async def repair_product_offers(
    product_id: UUID,
    current_user: dict = Depends(require_admin),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    result = manager.repair_product_offers(product_id)
    response = RepairResponse(corrected=result.corrected, stock=_stock_response(result.stock))
    event_producer.publish_stock_recomputed(response.stock.model_dump(mode="json"))
    return response


@router.post(
    "/products/{product_id}/stock/recompute",
    response_model=StockSnapshotResponse,
    status_code=status.HTTP_200_OK,
    summary="Recompute a product's cached stock and price (ADMIN only)",
    dependencies=[Depends(security)],
    responses={403: {"description": "Requires ADMIN account type"}, 404: {"description": "Product not found"}},
)
async def recompute_product_stock(
    product_id: UUID,
    current_user: dict = Depends(require_admin),
    manager: OfferTransitionManager = Depends(get_offer_manager),
):
    response = _stock_response(manager.recompute_product_stock(product_id))
    event_producer.publish_stock_recomputed(response.model_dump(mode="json"))
    return response
