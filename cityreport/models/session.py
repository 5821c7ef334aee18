"""
Session Model.

Persisted under the ``current_session`` key with the shape::

    {user: {id, email, role, full_name}, token, expires_at, last_activity}

A session is valid iff ``now < expires_at`` and
``now - last_activity < inactivity_ttl``.  Validation slides
``last_activity``; ``expires_at`` is fixed at creation.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from cityreport.models.account import AdminUser
from cityreport.models.common import UtcDatetime


class Session(BaseModel):
    """An authenticated staff session."""

    user: AdminUser
    token: str = Field(min_length=64)
    expires_at: UtcDatetime
    last_activity: UtcDatetime

    model_config = {"from_attributes": True}

    def is_absolutely_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_idle_expired(self, now: datetime, inactivity_ttl: timedelta) -> bool:
        return now - self.last_activity >= inactivity_ttl
