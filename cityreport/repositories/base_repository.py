"""
Base Repository.

Generic CRUD over a collection persisted as a single ``LocalStore``
document.  Each entity kind owns its own storage key; there are no
cross-entity joins.  The repository owns id generation and timestamp
bookkeeping:

- ``id``, ``created_at`` and ``updated_at`` are always assigned here,
  caller-supplied values are ignored.
- ``updated_at`` is forced forward on every update and never moves
  backwards, even when the clock has not advanced since the last write.

Writes are optimistic: when the local write fails the failure is logged
and the in-memory result is still returned to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from typing import ClassVar, Generic, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from cityreport.errors import ValidationError
from cityreport.logger import StructuredLogger
from cityreport.models.common import Entity
from cityreport.storage.local_store import LocalStore
from cityreport.utils.general import Clock, generate_id, utc_now

T = TypeVar("T", bound=Entity)

RawRecord = dict[str, object]

_MANAGED_FIELDS: frozenset[str] = frozenset({"id", "created_at", "updated_at"})


def describe_validation_error(exc: PydanticValidationError) -> str:
    """Flatten a pydantic error into a one-line, human-readable reason."""
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "value"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class EntityRepository(Generic[T]):
    """Base class for the local-first entity repositories.

    Subclasses set ``STORAGE_KEY`` and ``MODEL`` and may override the
    ``_prepare_create`` and ``_after_create`` hooks.

    Parameters
    ----------
    store:
        The authoritative local store.
    logger:
        Structured logger.
    clock:
        Source of the current UTC time (injected for tests).
    """

    STORAGE_KEY: ClassVar[str] = ""
    MODEL: ClassVar[type[Entity]] = Entity

    def __init__(
        self,
        store: LocalStore,
        logger: StructuredLogger,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._logger = logger
        self._clock = clock

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, data: Mapping[str, object]) -> T:
        """Create and persist a new entity from the partial *data*.

        Raises:
            ValidationError: If the merged fields do not form a valid entity.
        """
        fields: RawRecord = {
            key: value for key, value in dict(data).items()
            if key not in _MANAGED_FIELDS
        }
        fields = self._prepare_create(fields)

        records = self._load_records()
        existing_ids = {record.get("id") for record in records}
        entity_id = generate_id()
        while entity_id in existing_ids:
            entity_id = generate_id()

        now = self._clock()
        entity: T = self._validate({
            **fields,
            "id": entity_id,
            "created_at": now,
            "updated_at": now,
        })

        records.append(entity.model_dump(mode="json"))
        self._persist(records)
        self._logger.info(
            "Created %s %s", self.STORAGE_KEY, entity.id,
            extra={"event": "CREATE", "collection": self.STORAGE_KEY},
        )

        self._after_create(entity)
        return entity

    def get_all(self) -> list[T]:
        """Return every stored entity, in stored order."""
        entities: list[T] = []
        for record in self._load_records():
            entity = self._parse(record)
            if entity is not None:
                entities.append(entity)
        return entities

    def get_by_id(self, entity_id: str) -> Optional[T]:
        """Return the entity with *entity_id*, or ``None``."""
        for record in self._load_records():
            if record.get("id") == entity_id:
                return self._parse(record)
        return None

    def update(self, entity_id: str, changes: Mapping[str, object]) -> Optional[T]:
        """Merge *changes* into the stored entity and bump ``updated_at``.

        Returns ``None`` when *entity_id* does not exist; that is a
        normal "not found" signal, not an error.

        Raises:
            ValidationError: If the merged record is invalid.  Storage is
                left untouched in that case.
        """
        records = self._load_records()
        index = self._index_of(records, entity_id)
        if index is None:
            return None

        current = self._parse(records[index])
        if current is None:
            return None

        now = self._clock()
        if now <= current.updated_at:
            now = current.updated_at + timedelta(microseconds=1)

        updates: RawRecord = {
            key: value for key, value in dict(changes).items()
            if key not in _MANAGED_FIELDS
        }
        merged: T = self._validate({
            **current.model_dump(),
            **updates,
            "updated_at": now,
        })

        records[index] = merged.model_dump(mode="json")
        self._persist(records)
        self._logger.info(
            "Updated %s %s", self.STORAGE_KEY, entity_id,
            extra={"event": "UPDATE", "fields": ",".join(sorted(updates))},
        )
        return merged

    def delete(self, entity_id: str) -> bool:
        """Remove *entity_id*.  Returns ``False`` if it was not present."""
        records = self._load_records()
        remaining = [record for record in records if record.get("id") != entity_id]
        if len(remaining) == len(records):
            return False

        self._persist(remaining)
        self._logger.info(
            "Deleted %s %s", self.STORAGE_KEY, entity_id,
            extra={"event": "DELETE"},
        )
        return True

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def _seed(self, rows: list[RawRecord]) -> list[T]:
        """Store *rows* as the initial collection if it is still empty.

        Rows may carry their own ``created_at`` / ``updated_at`` (to look
        aged); ids are always generated.  Returns the seeded entities, or
        an empty list when the collection already had data.
        """
        if self._load_records():
            return []

        now = self._clock()
        entities: list[T] = []
        for row in rows:
            created_at = row.get("created_at", now)
            entities.append(self._validate({
                "updated_at": created_at,
                **row,
                "id": generate_id(),
                "created_at": created_at,
            }))

        self._persist([entity.model_dump(mode="json") for entity in entities])
        self._logger.info(
            "Seeded %d %s", len(entities), self.STORAGE_KEY,
            extra={"event": "SEED"},
        )
        return entities

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _prepare_create(self, fields: RawRecord) -> RawRecord:
        """Normalise caller input before validation.  Default: unchanged."""
        return fields

    def _after_create(self, entity: T) -> None:
        """Side effects after a successful create.  Default: none."""

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _load_records(self) -> list[RawRecord]:
        data = self._store.get(self.STORAGE_KEY, [])
        if not isinstance(data, list):
            self._logger.error(
                "Collection '%s' is not a list; treating as empty.",
                self.STORAGE_KEY,
            )
            return []
        return [record for record in data if isinstance(record, dict)]

    def _persist(self, records: list[RawRecord]) -> None:
        if not self._store.set(self.STORAGE_KEY, records):
            self._logger.error(
                "Local write of '%s' failed; returning the in-memory result.",
                self.STORAGE_KEY,
            )

    def _parse(self, record: RawRecord) -> Optional[T]:
        try:
            return self.MODEL.model_validate(record)  # type: ignore[return-value]
        except PydanticValidationError as exc:
            self._logger.warning(
                "Skipping corrupt %s record %s: %s",
                self.STORAGE_KEY,
                record.get("id"),
                describe_validation_error(exc),
            )
            return None

    def _validate(self, record: RawRecord) -> T:
        try:
            return self.MODEL.model_validate(record)  # type: ignore[return-value]
        except PydanticValidationError as exc:
            raise ValidationError(describe_validation_error(exc)) from exc

    @staticmethod
    def _index_of(records: list[RawRecord], entity_id: str) -> Optional[int]:
        for index, record in enumerate(records):
            if record.get("id") == entity_id:
                return index
        return None
