"""
Report Repository.

Local-first store of citizen reports under the ``reports`` key.  Every
successful create is handed to the ``SyncAgent`` for a best-effort push
to the remote ``citizen-reports`` endpoint; the caller never waits for
it and never sees its outcome.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from cityreport.logger import StructuredLogger
from cityreport.models.enums import ReportPriority, ReportStatus
from cityreport.models.report import Report, ReportStatistics
from cityreport.repositories.base_repository import EntityRepository, RawRecord
from cityreport.storage.local_store import LocalStore
from cityreport.utils.general import Clock, utc_now
from cityreport.utils.string_helpers import (
    DEFAULT_TEXT_LIMIT,
    clamp_number,
    sanitize_email,
    sanitize_text,
)

if TYPE_CHECKING:
    from cityreport.services.sync_worker import SyncAgent

_DESCRIPTION_MAX: int = 1000
_LOCATION_MAX: int = 200
_CITIZEN_NAME_MAX: int = 100
_MAX_PHOTOS: int = 10


class ReportRepository(EntityRepository[Report]):
    """CRUD and dashboard queries over citizen reports.

    Parameters
    ----------
    store:
        Authoritative local store.
    logger:
        Structured logger.
    sync_agent:
        Receives each newly created report.  ``None`` disables the
        remote push entirely.
    clock:
        Source of the current UTC time.
    """

    STORAGE_KEY = "reports"
    MODEL = Report

    def __init__(
        self,
        store: LocalStore,
        logger: StructuredLogger,
        sync_agent: Optional[SyncAgent] = None,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(store, logger, clock)
        self._sync_agent = sync_agent

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_status(self, status: ReportStatus | str) -> list[Report]:
        wanted = ReportStatus(status)
        return [report for report in self.get_all() if report.status == wanted]

    def get_located(self) -> list[Report]:
        """Reports with both coordinates, i.e. those the map can show."""
        return [report for report in self.get_all() if report.has_location]

    def get_statistics(self) -> ReportStatistics:
        reports = self.get_all()
        stats = ReportStatistics(total=len(reports))
        for report in reports:
            if report.status == ReportStatus.NEW:
                stats.new += 1
            elif report.status == ReportStatus.IN_PROGRESS:
                stats.in_progress += 1
            else:
                stats.resolved += 1
            if report.priority == ReportPriority.HIGH:
                stats.urgent += 1
        stats.active = stats.total - stats.resolved
        return stats

    # ------------------------------------------------------------------
    # Sample data
    # ------------------------------------------------------------------

    def seed_sample_data(self) -> list[Report]:
        """Populate three demo reports when the collection is empty."""
        now = self._clock()
        return self._seed([
            {
                "category": "routes",
                "description": (
                    "Nid-de-poule important sur l'Avenue de la République, "
                    "dangereux pour les véhicules"
                ),
                "location_text": "Avenue de la République, près du carrefour",
                "latitude": 43.6047,
                "longitude": 1.4442,
                "location_accuracy": 8,
                "status": ReportStatus.NEW,
                "priority": ReportPriority.HIGH,
                "citizen_name": "Marie Dubois",
                "citizen_email": "marie.dubois@email.fr",
                "photos_count": 2,
                "created_at": now - timedelta(hours=2),
            },
            {
                "category": "eclairage",
                "description": (
                    "Lampadaire défaillant depuis plusieurs jours, "
                    "zone très sombre le soir"
                ),
                "location_text": "Rue des Écoles, devant le numéro 45",
                "latitude": 43.6055,
                "longitude": 1.4435,
                "location_accuracy": 15,
                "status": ReportStatus.IN_PROGRESS,
                "priority": ReportPriority.MEDIUM,
                "citizen_name": "Jean Martin",
                "photos_count": 1,
                "created_at": now - timedelta(hours=24),
                "updated_at": now - timedelta(hours=12),
            },
            {
                "category": "proprete",
                "description": (
                    "Dépôt sauvage d'ordures sur le trottoir, "
                    "situation qui perdure"
                ),
                "location_text": "Place du Marché, côté nord",
                "latitude": 43.6038,
                "longitude": 1.4458,
                "location_accuracy": 12,
                "status": ReportStatus.NEW,
                "priority": ReportPriority.LOW,
                "photos_count": 3,
                "created_at": now - timedelta(hours=6),
            },
        ])

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _prepare_create(self, fields: RawRecord) -> RawRecord:
        """Sanitise citizen input before validation.

        Only keys that are present are touched, so missing fields still
        fall back to model defaults (or fail validation if required).
        """
        cleaned: RawRecord = dict(fields)

        for key, limit in (
            ("category", DEFAULT_TEXT_LIMIT),
            ("description", _DESCRIPTION_MAX),
            ("location_text", _LOCATION_MAX),
        ):
            if isinstance(cleaned.get(key), str):
                cleaned[key] = sanitize_text(cleaned[key], limit)

        if "location_text" in cleaned and not isinstance(cleaned["location_text"], str):
            cleaned["location_text"] = ""

        if "citizen_name" in cleaned:
            name = cleaned["citizen_name"]
            cleaned["citizen_name"] = (
                sanitize_text(name, _CITIZEN_NAME_MAX) or None if name else None
            )

        if "citizen_email" in cleaned:
            email = cleaned["citizen_email"]
            cleaned["citizen_email"] = sanitize_email(email) if email else None

        if "latitude" in cleaned:
            cleaned["latitude"] = clamp_number(cleaned["latitude"], -90, 90)
        if "longitude" in cleaned:
            cleaned["longitude"] = clamp_number(cleaned["longitude"], -180, 180)

        if "photos_count" in cleaned:
            photos = clamp_number(cleaned["photos_count"], 0, _MAX_PHOTOS)
            cleaned["photos_count"] = int(photos) if photos is not None else 0

        return cleaned

    def _after_create(self, entity: Report) -> None:
        if self._sync_agent is not None:
            self._sync_agent.push(entity)
