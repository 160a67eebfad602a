# Package exports - these allow cleaner imports like:
# from app.services import OfferError, OfferRef
from app.services.errors import ErrorKind, OfferError
from app.services.offer_ref import OfferKind, OfferRef, ProductScope
