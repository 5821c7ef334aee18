"""
Contact Model.

Entry of the emergency contact directory.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from cityreport.models.common import Entity
from cityreport.models.enums import ContactCategory


class Contact(Entity):
    """Represents an emergency contact."""

    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: Optional[str] = None
    category: ContactCategory = ContactCategory.OTHER
    is_active: bool = True
