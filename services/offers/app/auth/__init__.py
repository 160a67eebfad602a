# Package exports - these allow cleaner imports like:
# from app.auth import get_current_user, get_supplier_context
from app.auth.dependencies import SupplierContext, get_current_user, get_supplier_context, require_admin
