"""
Authentication Pipeline Models.

Small typed results shared by the validators of ``AuthGateway`` and the
remote ``admin-auth`` mirror.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class ValidationResult(BaseModel):
    """Result of a single client-side field validation check.

    Attributes
    ----------
    is_valid:
        ``True`` when the value passes the validation rule.
    error_message:
        Human-readable description of the failure, or ``None`` on success.
    """

    is_valid: bool
    error_message: Optional[str] = None

    model_config = {"from_attributes": True}


class RemoteAuthResponse(BaseModel):
    """Body returned by the remote ``admin-auth`` function."""

    success: bool
    message: Optional[str] = None

    model_config = {"extra": "ignore"}
