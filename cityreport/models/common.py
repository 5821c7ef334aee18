"""
Shared Model Building Blocks.

Every persisted entity carries an ``id`` and UTC ``created_at`` /
``updated_at`` timestamps.  Naive datetimes are interpreted as UTC so
that expiry comparisons never mix naive and aware values.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class Entity(BaseModel):
    """Base for records stored by an ``EntityRepository``."""

    id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = {"from_attributes": True}
