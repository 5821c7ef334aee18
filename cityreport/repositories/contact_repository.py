"""
Contact Repository.

Emergency contact directory under the ``contacts`` key.
"""

from __future__ import annotations

from typing import Optional

from cityreport.models.contact import Contact
from cityreport.models.enums import ContactCategory
from cityreport.repositories.base_repository import EntityRepository


class ContactRepository(EntityRepository[Contact]):
    """CRUD over emergency contacts."""

    STORAGE_KEY = "contacts"
    MODEL = Contact

    def get_active(self) -> list[Contact]:
        return [contact for contact in self.get_all() if contact.is_active]

    def toggle_active(self, contact_id: str) -> Optional[Contact]:
        """Flip ``is_active``.  Returns ``None`` if *contact_id* is unknown."""
        contact = self.get_by_id(contact_id)
        if contact is None:
            return None
        return self.update(contact_id, {"is_active": not contact.is_active})

    def seed_sample_data(self) -> list[Contact]:
        """Populate the default municipal directory when it is empty."""
        return self._seed([
            {
                "name": "Police Municipale",
                "phone": "05 61 22 29 92",
                "email": "police.municipale@ville-toulouse.fr",
                "category": ContactCategory.POLICE,
            },
            {
                "name": "Service Technique Municipal",
                "phone": "05 61 22 31 31",
                "email": "services.techniques@ville-toulouse.fr",
                "category": ContactCategory.MUNICIPAL,
            },
            {
                "name": "Urgences Médicales",
                "phone": "15",
                "category": ContactCategory.MEDICAL,
            },
            {
                "name": "Sapeurs-Pompiers",
                "phone": "18",
                "category": ContactCategory.FIRE,
            },
        ])
