"""Role-Based Access Control (RBAC) utilities.

The identity provider issues JWTs carrying the caller's role and scope
(company, site and supplier ids). These dependencies only decode and check
that scope; approver privileges are re-checked against the database by the
workflow services.
"""

from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from uniflow.core.security import decode_access_token


class UserRole(str, Enum):
    """Actor roles for RBAC."""

    EMPLOYEE = "employee"
    SITE_ADMIN = "site_admin"
    COMPANY_ADMIN = "company_admin"
    SUPPLIER = "supplier"


class TokenData:
    """Decoded token data.

    Attributes:
        user_id: Employee id for employee/admin roles, supplier user id otherwise.
        role: The caller's role.
        company_id: Company scope (None for supplier tokens).
        location_id: Site scope for site admins.
        supplier_id: Supplier scope for supplier tokens.
    """

    def __init__(self, user_id: int, role: UserRole,
                 company_id: Optional[int] = None,
                 location_id: Optional[int] = None,
                 supplier_id: Optional[int] = None):
        self.user_id = user_id
        self.id = user_id
        self.role = role
        self.company_id = company_id
        self.location_id = location_id
        self.supplier_id = supplier_id


def _optional_int(value) -> Optional[int]:
    return int(value) if value is not None else None


async def get_current_user(request: Request) -> TokenData:
    """Get the current caller from the JWT token.

    Checks in order:
    1. Authorization: Bearer <token> header
    2. access_token cookie
    """
    payload = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        cookie_token = request.cookies.get("access_token")
        if cookie_token:
            payload = decode_access_token(cookie_token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    role = payload.get("role")

    if user_id is None or role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        user_role = UserRole(role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid role in token",
        )

    return TokenData(
        user_id=int(user_id),
        role=user_role,
        company_id=_optional_int(payload.get("company_id")),
        location_id=_optional_int(payload.get("location_id")),
        supplier_id=_optional_int(payload.get("supplier_id")),
    )


def require_roles(*roles: UserRole):
    """Dependency to require one of the given roles."""

    async def role_checker(
        current_user: Annotated[TokenData, Depends(get_current_user)]
    ) -> TokenData:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role {' or '.join(r.value for r in roles)}",
            )
        return current_user

    return role_checker


# Common role dependencies
CurrentUser = Annotated[TokenData, Depends(get_current_user)]
# Admins are employees too and may order for themselves
RequireEmployee = Annotated[
    TokenData,
    Depends(require_roles(UserRole.EMPLOYEE, UserRole.SITE_ADMIN, UserRole.COMPANY_ADMIN)),
]
RequireApprover = Annotated[
    TokenData, Depends(require_roles(UserRole.SITE_ADMIN, UserRole.COMPANY_ADMIN))
]
RequireCompanyAdmin = Annotated[TokenData, Depends(require_roles(UserRole.COMPANY_ADMIN))]
RequireSupplier = Annotated[TokenData, Depends(require_roles(UserRole.SUPPLIER))]
RequireSupplierOrCompanyAdmin = Annotated[
    TokenData, Depends(require_roles(UserRole.SUPPLIER, UserRole.COMPANY_ADMIN))
]


def ensure_company_scope(current_user: TokenData, company_id: int) -> None:
    """Reject company-side callers acting outside their own company."""
    if current_user.role != UserRole.SUPPLIER and current_user.company_id != company_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Resource belongs to another company",
        )


def ensure_supplier_scope(current_user: TokenData, supplier_id: int) -> None:
    """Reject supplier callers acting on another supplier's records."""
    if current_user.role == UserRole.SUPPLIER and current_user.supplier_id != supplier_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Resource belongs to another supplier",
        )
