# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, Header, Path, status

from app.exceptions import AppError
from app.models.enums import UserRole
from app.schemas.auth import AuthContext


async def get_auth_context(
    x_company_id: uuid.UUID = Header(),
    x_user_id: uuid.UUID = Header(),
    x_role: UserRole = Header(default=UserRole.EMPLOYEE),
    x_employee_id: uuid.UUID | None = Header(default=None),
) -> AuthContext:
    """Extract the caller's auth context from request headers."""
    return AuthContext(company_id=x_company_id, user_id=x_user_id, role=x_role, employee_id=x_employee_id)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if not auth.is_admin:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


def require_roles(*roles: UserRole) -> Callable[[AuthContext], Awaitable[AuthContext]]:
    """Build a dependency that admits admins plus the given roles."""
    allowed = ", ".join(r.value for r in (UserRole.ADMIN, *roles))

    async def _dependency(auth: AuthDep) -> AuthContext:
        if not auth.has_role(*roles):
            raise AppError(f"One of these roles is required: {allowed}", status_code=status.HTTP_403_FORBIDDEN)
        return auth

    return _dependency


HRDep = Annotated[AuthContext, Depends(require_roles(UserRole.HR))]
FinanceDep = Annotated[AuthContext, Depends(require_roles(UserRole.FINANCE))]
PayrollDep = Annotated[AuthContext, Depends(require_roles(UserRole.HR, UserRole.FINANCE))]


async def validate_company_scope(
    company_id: uuid.UUID = Path(),
    auth: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Ensure the path company_id matches the auth header company_id."""
    if company_id != auth.company_id:
        raise AppError("Company ID mismatch", status_code=status.HTTP_403_FORBIDDEN)
    return auth
