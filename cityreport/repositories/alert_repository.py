"""
Alert Repository.

Public broadcast alerts under the ``alerts`` key.  Expiry is evaluated
at read time against the injected clock; expired alerts stay stored.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from cityreport.models.alert import Alert
from cityreport.models.enums import AlertType
from cityreport.repositories.base_repository import EntityRepository


class AlertRepository(EntityRepository[Alert]):
    """CRUD over public alerts plus the "currently shown" query."""

    STORAGE_KEY = "alerts"
    MODEL = Alert

    def get_active(self) -> list[Alert]:
        """Alerts that are switched on and not yet expired."""
        now = self._clock()
        return [alert for alert in self.get_all() if alert.is_effective(now)]

    def toggle_active(self, alert_id: str) -> Optional[Alert]:
        """Flip ``is_active``.  Returns ``None`` if *alert_id* is unknown."""
        alert = self.get_by_id(alert_id)
        if alert is None:
            return None
        return self.update(alert_id, {"is_active": not alert.is_active})

    def seed_sample_data(self) -> list[Alert]:
        """Populate two demo alerts when the collection is empty."""
        now = self._clock()
        return self._seed([
            {
                "title": "Travaux Avenue Jean Jaurès",
                "message": (
                    "Des travaux de réfection de la chaussée auront lieu du "
                    "15 au 20 décembre. Circulation alternée mise en place."
                ),
                "type": AlertType.WARNING,
                "author": "Service Voirie",
                "created_at": now - timedelta(days=2),
            },
            {
                "title": "Coupure d'eau programmée",
                "message": (
                    "Interruption de l'alimentation en eau potable secteur "
                    "Centre-Ville de 14h à 17h demain pour maintenance."
                ),
                "type": AlertType.INFO,
                "author": "Service Technique",
                "created_at": now - timedelta(days=1),
                "expires_at": now + timedelta(days=1),
            },
        ])
