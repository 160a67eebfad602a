# Package exports - these allow cleaner imports like:
# from app.models import Product, SupplierProductOffer
# Used by alembic/env.py for migration autogenerate
from app.models.supplier import Supplier, BankVerificationStatus
from app.models.product import Product, ProductVariant, PriceMode
from app.models.offer import SupplierProductOffer, SupplierVariantOffer
from app.models.order_item import OrderItem
