"""
Staff Account Models.

``AuthAccount`` is the persisted account with its lockout counters;
``AdminUser`` is the public snapshot embedded in a session and returned
by a successful sign-in.  Credentials are stored separately (see
``AccountRepository``) and never appear on either model.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from cityreport.models.common import Entity, UtcDatetime
from cityreport.models.enums import AdminRole


class AdminUser(BaseModel):
    """User snapshot carried by a session."""

    id: str
    email: str
    role: AdminRole
    full_name: str

    model_config = {"from_attributes": True}


class AuthAccount(Entity):
    """Represents a staff account.

    ``email`` is unique and case-insensitive; it is always stored
    lowercased.
    """

    email: str
    role: AdminRole = AdminRole.ADMIN
    full_name: str
    is_active: bool = True
    failed_attempts: int = Field(default=0, ge=0)
    locked_until: Optional[UtcDatetime] = None
    last_login_at: Optional[UtcDatetime] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    def to_user(self) -> AdminUser:
        """Return the public snapshot used inside sessions."""
        return AdminUser(
            id=self.id,
            email=self.email,
            role=self.role,
            full_name=self.full_name,
        )
