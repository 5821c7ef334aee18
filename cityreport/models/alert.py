"""
Alert Model.

Public broadcast message.  An alert stops being shown either when staff
toggle ``is_active`` off or once ``expires_at`` has passed; expiry is
evaluated at read time, nothing sweeps the collection.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from cityreport.models.common import Entity, UtcDatetime
from cityreport.models.enums import AlertType


class Alert(Entity):
    """Represents a public alert."""

    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: AlertType = AlertType.INFO
    is_active: bool = True
    expires_at: Optional[UtcDatetime] = None
    author: str = "Administration"

    def is_effective(self, now: datetime) -> bool:
        """Return ``True`` if the alert should be displayed at *now*."""
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > now
