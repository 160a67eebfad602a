# Package exports - these allow cleaner imports like:
# from app.schemas import OfferFields, OfferResponse
from app.schemas.offer import (
    OfferFields,
    OfferPatch,
    BaseOfferUpsertRequest,
    VariantOfferUpsertRequest,
    OfferPatchRequest,
    RestockRequest,
    ConvertOfferRequest,
    OfferResponse,
    OfferMutationResponse,
    OfferListResponse,
)
