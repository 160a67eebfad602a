from dataclasses import dataclass
from fastapi import HTTPException, status, Depends, Header, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from uuid import UUID
import logging

from app.auth.jwt_validator import CLAIM_NAMESPACE, jwt_validator

logger = logging.getLogger(__name__)

ADMIN_ACCOUNT_TYPE = "ADMIN"
SUPPLIER_ACCOUNT_TYPE = "SUPPLIER"


@dataclass(frozen=True)
class SupplierContext:
    """The supplier a request acts for"""
    supplier_id: UUID
    is_admin_impersonating: bool = False


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(HTTPBearer())
) -> dict:
    """Dependency to extract and validate JWT token

    Works with Security(security) authentication scheme.
    """
    if not credentials:
        logger.warning("Authentication credentials missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing"
        )

    token = credentials.credentials

    try:
        payload = jwt_validator.verify_token(token)

        user_id = payload.get(CLAIM_NAMESPACE + "user_id")
        email = payload.get(CLAIM_NAMESPACE + "email")
        account_type = payload.get(CLAIM_NAMESPACE + "account_type")
        supplier_id = payload.get(CLAIM_NAMESPACE + "supplier_id")

        if not user_id:
            logger.warning("Token missing user_id claim")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token missing user_id claim"
            )

        if not account_type:
            logger.warning("Token missing account_type claim")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token missing account_type claim"
            )

        logger.info(f"Authenticated user: {email or user_id} (account_type: {account_type})")

        return {
            "user_id": user_id,
            "email": email,
            "account_type": account_type,
            "supplier_id": supplier_id,
            "payload": payload
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error authenticating user: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication failed"
        )


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """Dependency to require ADMIN account type"""
    if current_user.get("account_type") != ADMIN_ACCOUNT_TYPE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Requires ADMIN account type"
        )
    return current_user


def _parse_supplier_id(raw: str) -> UUID:
    try:
        return UUID(str(raw))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Malformed supplier id '{raw}'"
        )


async def get_supplier_context(
    x_supplier_id: Optional[str] = Header(None, alias="X-Supplier-Id"),
    current_user: dict = Depends(get_current_user),
) -> SupplierContext:
    """Resolve which supplier the caller is acting for

    Suppliers act for themselves through their token claim. An ADMIN may act
    for any supplier by naming it in the X-Supplier-Id header.
    """
    account_type = current_user.get("account_type")

    if account_type == ADMIN_ACCOUNT_TYPE:
        if not x_supplier_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="X-Supplier-Id header is required when acting as ADMIN"
            )
        supplier_id = _parse_supplier_id(x_supplier_id)
        logger.info(f"Admin {current_user.get('user_id')} acting for supplier {supplier_id}")
        return SupplierContext(supplier_id=supplier_id, is_admin_impersonating=True)

    if account_type != SUPPLIER_ACCOUNT_TYPE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Requires SUPPLIER or ADMIN account type"
        )

    claim = current_user.get("supplier_id")
    if not claim:
        logger.warning(f"Supplier token for user {current_user.get('user_id')} has no supplier_id claim")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing supplier_id claim"
        )
    return SupplierContext(supplier_id=_parse_supplier_id(claim))
