from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Dict, Any
from decimal import Decimal
from uuid import UUID
from datetime import datetime

from app.services.offer_ref import OfferKind, OfferRef


# ---------------------------------------------------------------------------
# Core commands
#
# The offer core only accepts these strictly typed structures. Everything
# lenient (aliases, "" as null, string numbers) is handled by the request
# models further down.
# ---------------------------------------------------------------------------

class OfferFields(BaseModel):
    """Full field set for creating or replacing an offer"""
    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, pattern="^[A-Z]{3}$")
    available_qty: int = Field(0, ge=0)
    lead_days: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class OfferPatch(BaseModel):
    """Partial update; only explicitly set fields are applied"""
    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, pattern="^[A-Z]{3}$")
    available_qty: Optional[int] = Field(None, ge=0)
    lead_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        changes = self.model_dump(exclude_unset=True)
        # lead_days is the only field where an explicit null means "clear it"
        return {k: v for k, v in changes.items() if v is not None or k == "lead_days"}


# ---------------------------------------------------------------------------
# Request models (HTTP boundary)
# ---------------------------------------------------------------------------

_KEY_ALIASES = {
    "productId": "product_id",
    "variantId": "variant_id",
    "availableQty": "available_qty",
    "qty": "available_qty",
    "stock": "available_qty",
    "leadDays": "lead_days",
    "isActive": "is_active",
    "basePrice": "price",
    "unitPrice": "price",
    "offerPrice": "price",
    "targetKind": "target_kind",
}

_NULLABLE_KEYS = {"lead_days"}


def normalize_offer_payload(data: Any) -> Any:
    """Fold camelCase and legacy aliases onto canonical keys

    Blank strings count as missing, except for ``lead_days`` where they clear
    the value. Canonical keys win over aliases when both are sent.
    """
    if not isinstance(data, dict):
        return data

    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        canonical = _KEY_ALIASES.get(key, key)
        if isinstance(value, str) and not value.strip():
            value = None
        if value is None and canonical not in _NULLABLE_KEYS:
            continue
        if canonical in normalized and key != canonical:
            continue
        normalized[canonical] = value
    return normalized


class _OfferRequest(BaseModel):
    # inStock is derived server side and silently dropped if sent
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        return normalize_offer_payload(data)


class BaseOfferUpsertRequest(_OfferRequest):
    product_id: UUID = Field(..., description="Product UUID")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Full unit price", examples=["1500.00"])
    currency: Optional[str] = Field(None, pattern="^[A-Z]{3}$", description="Currency code (ISO 4217)", examples=["NGN"])
    available_qty: int = Field(0, ge=0, description="Units available from this supplier")
    lead_days: Optional[int] = Field(None, ge=0, description="Days until dispatch")
    is_active: bool = Field(True, description="Whether the offer is listed")

    def to_fields(self) -> OfferFields:
        return OfferFields(
            price=self.price,
            currency=self.currency,
            available_qty=self.available_qty,
            lead_days=self.lead_days,
            is_active=self.is_active,
        )


class VariantOfferUpsertRequest(BaseOfferUpsertRequest):
    variant_id: UUID = Field(..., description="Variant UUID, must belong to product_id")


class OfferPatchRequest(_OfferRequest):
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, pattern="^[A-Z]{3}$")
    available_qty: Optional[int] = Field(None, ge=0)
    lead_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    def to_patch(self) -> OfferPatch:
        return OfferPatch(**self.model_dump(exclude_unset=True))


class RestockRequest(BaseModel):
    delta: int = Field(..., description="Signed change to available quantity", examples=[5, -2])


class ConvertOfferRequest(_OfferRequest):
    target_kind: OfferKind = Field(..., description="Kind of offer to convert into")
    variant_id: Optional[UUID] = Field(None, description="Target variant (required when converting to a variant offer)")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class OfferResponse(BaseModel):
    id: str = Field(..., description="Tagged offer id", examples=["base:123e4567-e89b-12d3-a456-426614174000"])
    kind: OfferKind
    supplier_id: UUID
    product_id: UUID
    variant_id: Optional[UUID] = None
    base_offer_id: Optional[str] = Field(None, description="Tagged id of the linked base offer")
    price: Decimal
    currency: str
    available_qty: int
    lead_days: Optional[int] = None
    is_active: bool
    in_stock: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, kind: OfferKind, row) -> "OfferResponse":
        base_offer_id = getattr(row, "base_offer_id", None)
        return cls(
            id=str(OfferRef(kind, row.id)),
            kind=kind,
            supplier_id=row.supplier_id,
            product_id=row.product_id,
            variant_id=getattr(row, "variant_id", None),
            base_offer_id=str(OfferRef.base(base_offer_id)) if base_offer_id else None,
            price=row.price,
            currency=row.currency,
            available_qty=row.available_qty,
            lead_days=row.lead_days,
            is_active=row.is_active,
            in_stock=row.in_stock,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class StockSnapshotResponse(BaseModel):
    product_id: UUID
    available_qty: int
    in_stock: bool
    auto_price: Optional[Decimal] = None


class OfferMutationResponse(BaseModel):
    data: OfferResponse
    stock: StockSnapshotResponse


class OfferListResponse(BaseModel):
    product_id: UUID
    offers: List[OfferResponse]


class ConvertOfferResponse(BaseModel):
    data: OfferResponse
    replaced: str = Field(..., description="Tagged id of the offer that was converted")
    stock: StockSnapshotResponse


class DeleteOfferResponse(BaseModel):
    ok: bool = True
    deleted: str
    detached_variant_offers: int = 0
    stock: StockSnapshotResponse


class BulkDeleteResponse(BaseModel):
    ok: bool = True
    deleted_base_offers: int
    deleted_variant_offers: int
    stock: StockSnapshotResponse


class RepairResponse(BaseModel):
    corrected: int
    stock: StockSnapshotResponse


class HasOrdersResponse(BaseModel):
    has: bool
    count: int
