# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from app.models.enums import UserRole


class AuthContext(BaseModel):
    """Caller identity forwarded by the auth gateway in request headers."""

    company_id: uuid.UUID
    user_id: uuid.UUID
    role: UserRole = UserRole.EMPLOYEE
    employee_id: uuid.UUID | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def has_role(self, *roles: UserRole) -> bool:
        """True when the caller holds any of ``roles``. Admin satisfies every check."""
        return self.is_admin or self.role in roles
