"""
Report Model.

A citizen submission describing an issue in public space.  Created with
``status=new`` and ``priority=medium``; staff move it along through
partial updates.  Photo attachments travel out-of-band, only their count
is stored.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from cityreport.models.common import Entity, UtcDatetime
from cityreport.models.enums import ReportPriority, ReportStatus


class Report(Entity):
    """Represents a citizen report."""

    category: str = Field(min_length=1)
    description: str = Field(min_length=1)
    location_text: str = ""
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    location_accuracy: Optional[float] = Field(default=None, ge=0)
    location_timestamp: Optional[UtcDatetime] = None
    status: ReportStatus = ReportStatus.NEW
    priority: ReportPriority = ReportPriority.MEDIUM
    citizen_name: Optional[str] = None
    citizen_email: Optional[str] = None
    photos_count: int = Field(default=0, ge=0)

    @property
    def has_location(self) -> bool:
        """``True`` when both coordinates are known (map-displayable)."""
        return self.latitude is not None and self.longitude is not None


class ReportStatistics(BaseModel):
    """Dashboard counters over the whole report collection.

    ``active`` counts every report that is not resolved; ``urgent``
    counts high-priority reports regardless of status.
    """

    total: int = 0
    new: int = 0
    in_progress: int = 0
    resolved: int = 0
    active: int = 0
    urgent: int = 0
