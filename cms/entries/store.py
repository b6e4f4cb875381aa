"""Entry store: schema-conformant content entries and their lifecycle.

Entries move between draft, published, modified and scheduled. Creating or
deleting an entry keeps the owning content type's ``entry_count`` in step.
Nothing transitions a scheduled entry to published on its own; callers that
want timed publishing must call ``publish_entry`` themselves.
"""

import copy
import json
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import (
    ContentTypeNotFoundError,
    EntryNotFoundError,
    InvalidScheduleError,
    InvalidUpdateError,
)
from ..core.logging import OperationLogger, get_logger
from ..core.models import (
    CMSModel,
    Entry,
    EntryStatus,
    as_utc,
    generate_id,
    to_attribute_names,
    utc_now,
)
from ..schema.registry import SchemaRegistry
from ..storage import KeyValueStore, PersistedCollection, StorageKey
from .validation import EntryDataValidator

logger = get_logger(__name__)

DEFAULT_USER = "current-user"
TITLE_FIELDS = ("title", "name", "heading", "subject")
ENTRY_UPDATABLE = frozenset({"data", "status", "locale", "updated_by", "scheduled_at"})
SORTABLE_ATTRIBUTES = frozenset(
    {
        "id",
        "content_type_id",
        "status",
        "locale",
        "created_at",
        "updated_at",
        "published_at",
        "scheduled_at",
        "created_by",
        "updated_by",
    }
)


class SearchFilters(CMSModel):
    """Criteria for ``EntryStore.filter_entries``; unset criteria match everything."""

    status: list[EntryStatus] = Field(default_factory=list)
    locale: list[str] = Field(default_factory=list)
    content_type_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None


class SortOptions(CMSModel):
    field: str = "updated_at"
    direction: Literal["asc", "desc"] = "desc"

    @field_validator("field")
    @classmethod
    def _orderable_entry_attribute(cls, value: str) -> str:
        name = to_attribute_names({value: None}, Entry)
        attribute = next(iter(name))
        if attribute not in SORTABLE_ATTRIBUTES:
            raise ValueError(f"Cannot sort entries by '{value}'")
        return attribute


class EntryStats(CMSModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_content_type: dict[str, int] = Field(default_factory=dict)
    by_locale: dict[str, int] = Field(default_factory=dict)
    recent_count: int = 0


def _future_schedule(value: datetime | str | None, now: datetime) -> datetime:
    if value is None:
        raise InvalidScheduleError("Scheduled entries need a scheduled date")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as e:
            raise InvalidScheduleError(f"Invalid scheduled date: {value!r}", e) from e
    value = as_utc(value)
    if value <= now:
        raise InvalidScheduleError("Scheduled date must be in the future")
    return value


def _sort_key(value: Any) -> Any:
    return as_utc(value) if isinstance(value, datetime) else value


class EntryStore:
    """Content entries persisted under the ``entries`` key.

    Args:
        store: Key-value store
        schema: Registry resolving content types and nested components
        clock: Returns the current time
        id_factory: Returns a fresh entry id
        default_locale: Locale given to entries created without one
        recent_limit: Default size of ``recent_entries``
    """

    def __init__(
        self,
        store: KeyValueStore,
        schema: SchemaRegistry,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_id,
        default_locale: str = "en",
        recent_limit: int = 10,
    ):
        self.schema = schema
        self.validator = EntryDataValidator(schema.get_component)
        self.default_locale = default_locale
        self.recent_limit = recent_limit
        self._clock = clock
        self._new_id = id_factory
        self._state = PersistedCollection(store, StorageKey.ENTRIES, Entry)
        self._entries: dict[str, Entry] = {}
        self.reload()

    def reload(self) -> None:
        self._entries = {e.id: e for e in self._state.load()}

    def subscribe(self, listener: Callable[[list[Entry]], None]) -> Callable[[], None]:
        return self._state.subscribe(listener)

    def _commit(
        self, changed: Iterable[Entry] = (), removed: Iterable[str] = ()
    ) -> None:
        new_entries = dict(self._entries)
        for entry in changed:
            new_entries[entry.id] = entry
        for entry_id in removed:
            new_entries.pop(entry_id, None)
        with OperationLogger(logger, "commit_entries"):
            self._state.save(new_entries.values())
        self._entries = new_entries

    def _require(self, entry_id: str) -> Entry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry not found: {entry_id}")
        return entry

    # CRUD

    def create_entry(
        self,
        content_type_id: str,
        data: Mapping[str, Any],
        status: EntryStatus | str = EntryStatus.DRAFT,
        locale: str | None = None,
        created_by: str = DEFAULT_USER,
        updated_by: str | None = None,
    ) -> Entry:
        """Validate ``data`` against the content type and store a new entry.

        Raises:
            ContentTypeNotFoundError: If the content type does not exist
            EntryValidationError: If ``data`` fails validation
        """
        content_type = self.schema.get_content_type(content_type_id)
        if content_type is None:
            raise ContentTypeNotFoundError(
                f"Content type not found: {content_type_id}"
            )

        self.validator.validate(content_type.fields, data)

        now = self._clock()
        status = EntryStatus(status)
        entry = Entry(
            id=self._new_id(),
            content_type_id=content_type_id,
            status=status,
            locale=locale or self.default_locale,
            data=copy.deepcopy(dict(data)),
            created_at=now,
            updated_at=now,
            created_by=created_by,
            updated_by=updated_by or created_by,
            published_at=now if status == EntryStatus.PUBLISHED else None,
        )
        self._commit(changed=[entry])
        self.schema.adjust_entry_count(content_type_id, +1)
        logger.info(
            "Entry created",
            entry_id=entry.id,
            content_type_id=content_type_id,
            status=entry.status.value,
        )
        return entry

    def update_entry(self, entry_id: str, updates: Mapping[str, Any]) -> Entry:
        """Apply updates to an entry.

        Updating the data of a published entry always leaves it modified,
        whatever status the update asks for.
        Status changes follow the lifecycle methods: a draft loses its
        ``published_at`` and a scheduled entry needs a future ``scheduled_at``.

        Raises:
            EntryNotFoundError: If the entry does not exist
            InvalidUpdateError: If a key is not updatable or a value is invalid
            InvalidScheduleError: If a scheduled entry gets no future date
            EntryValidationError: If new ``data`` fails validation
        """
        entry = self._require(entry_id)
        changes = to_attribute_names(updates, Entry)

        unknown = set(changes) - ENTRY_UPDATABLE
        if unknown:
            raise InvalidUpdateError(
                f"Cannot update entry attributes: {', '.join(sorted(unknown))}"
            )

        if "data" in changes:
            if not isinstance(changes["data"], Mapping):
                raise InvalidUpdateError("Entry data must be a mapping")
            content_type = self.schema.get_content_type(entry.content_type_id)
            if content_type is not None:
                self.validator.validate(content_type.fields, changes["data"])
            changes["data"] = copy.deepcopy(dict(changes["data"]))

        now = self._clock()
        if entry.status == EntryStatus.PUBLISHED and "data" in changes:
            changes["status"] = EntryStatus.MODIFIED
        merged = {**entry.model_dump(), **changes, "updated_at": now}
        self._apply_lifecycle(merged, changes, now)

        try:
            updated = Entry.model_validate(merged)
        except PydanticValidationError as e:
            raise InvalidUpdateError(f"Invalid entry update: {e}", e) from e

        self._commit(changed=[updated])
        logger.info(
            "Entry updated",
            entry_id=entry_id,
            changed=sorted(changes),
            status=updated.status.value,
        )
        return updated

    def _apply_lifecycle(
        self, merged: dict[str, Any], changes: Mapping[str, Any], now: datetime
    ) -> None:
        # Same rules as publish_entry, unpublish_entry and schedule_entry
        try:
            status = EntryStatus(merged["status"])
        except ValueError as e:
            raise InvalidUpdateError(f"Unknown entry status: {merged['status']!r}", e) from e

        if status == EntryStatus.SCHEDULED:
            if "status" in changes or "scheduled_at" in changes:
                merged["scheduled_at"] = _future_schedule(
                    merged["scheduled_at"], as_utc(now)
                )
        elif "scheduled_at" in changes and changes["scheduled_at"] is not None:
            raise InvalidUpdateError("scheduledAt can only be set on scheduled entries")
        else:
            merged["scheduled_at"] = None

        if status == EntryStatus.DRAFT:
            merged["published_at"] = None
        elif status == EntryStatus.PUBLISHED and merged["published_at"] is None:
            merged["published_at"] = now

    def delete_entry(self, entry_id: str) -> None:
        """Delete an entry and decrement its content type's entry count.

        Raises:
            EntryNotFoundError: If the entry does not exist
        """
        entry = self._require(entry_id)
        self._commit(removed=[entry_id])
        if self.schema.get_content_type(entry.content_type_id) is not None:
            self.schema.adjust_entry_count(entry.content_type_id, -1)
        else:
            logger.warning(
                "Deleted entry of missing content type",
                entry_id=entry_id,
                content_type_id=entry.content_type_id,
            )
        logger.info("Entry deleted", entry_id=entry_id)

    def get_entry(self, entry_id: str) -> Entry | None:
        return self._entries.get(entry_id)

    def duplicate_entry(self, entry_id: str) -> Entry | None:
        """Copy an entry's data into a new draft entry.

        Returns None when the source entry does not exist.
        """
        source = self._entries.get(entry_id)
        if source is None:
            logger.debug("Duplicate of missing entry ignored", entry_id=entry_id)
            return None
        return self.create_entry(
            source.content_type_id,
            copy.deepcopy(source.data),
            status=EntryStatus.DRAFT,
            locale=source.locale,
        )

    # Lifecycle

    def publish_entry(self, entry_id: str) -> Entry:
        entry = self._require(entry_id)
        now = self._clock()
        updated = entry.model_copy(
            update={
                "status": EntryStatus.PUBLISHED,
                "published_at": now,
                "scheduled_at": None,
                "updated_at": now,
            }
        )
        self._commit(changed=[updated])
        logger.info("Entry published", entry_id=entry_id)
        return updated

    def unpublish_entry(self, entry_id: str) -> Entry:
        entry = self._require(entry_id)
        updated = entry.model_copy(
            update={
                "status": EntryStatus.DRAFT,
                "published_at": None,
                "updated_at": self._clock(),
            }
        )
        self._commit(changed=[updated])
        logger.info("Entry unpublished", entry_id=entry_id)
        return updated

    def schedule_entry(self, entry_id: str, scheduled_at: datetime | str) -> Entry:
        """Mark an entry for publication at ``scheduled_at``.

        Naive datetimes and ISO strings without an offset are taken as UTC.

        Raises:
            EntryNotFoundError: If the entry does not exist
            InvalidScheduleError: If the time is not in the future or unparseable
        """
        entry = self._require(entry_id)
        now = as_utc(self._clock())
        scheduled_at = _future_schedule(scheduled_at, now)

        updated = entry.model_copy(
            update={
                "status": EntryStatus.SCHEDULED,
                "scheduled_at": scheduled_at,
                "updated_at": now,
            }
        )
        self._commit(changed=[updated])
        logger.info(
            "Entry scheduled", entry_id=entry_id, scheduled_at=scheduled_at.isoformat()
        )
        return updated

    # Bulk operations

    def _require_all(self, entry_ids: Iterable[str]) -> list[str]:
        entry_ids = list(dict.fromkeys(entry_ids))
        for entry_id in entry_ids:
            self._require(entry_id)
        return entry_ids

    def bulk_delete(self, entry_ids: Iterable[str]) -> None:
        """Delete several entries; all ids are checked before any is deleted."""
        for entry_id in self._require_all(entry_ids):
            self.delete_entry(entry_id)

    def bulk_publish(self, entry_ids: Iterable[str]) -> list[Entry]:
        return [self.publish_entry(i) for i in self._require_all(entry_ids)]

    def bulk_unpublish(self, entry_ids: Iterable[str]) -> list[Entry]:
        return [self.unpublish_entry(i) for i in self._require_all(entry_ids)]

    # Queries

    def list_entries(self) -> list[Entry]:
        return list(self._entries.values())

    def entries_by_content_type(self, content_type_id: str) -> list[Entry]:
        return [
            e for e in self._entries.values() if e.content_type_id == content_type_id
        ]

    def entries_by_status(self, status: EntryStatus | str) -> list[Entry]:
        status = EntryStatus(status)
        return [e for e in self._entries.values() if e.status == status]

    def entries_by_locale(self, locale: str) -> list[Entry]:
        return [e for e in self._entries.values() if e.locale == locale]

    def recent_entries(self, limit: int | None = None) -> list[Entry]:
        """Most recently updated entries first."""
        ordered = sorted(
            self._entries.values(),
            key=lambda e: as_utc(e.updated_at),
            reverse=True,
        )
        return ordered[: self.recent_limit if limit is None else limit]

    def entry_count(self, content_type_id: str) -> int:
        return len(self.entries_by_content_type(content_type_id))

    def filter_entries(
        self,
        filters: SearchFilters | None = None,
        sort: SortOptions | None = None,
    ) -> list[Entry]:
        """Filter by status, locale, content type, creation date and data text, then sort."""
        filters = filters or SearchFilters()
        sort = sort or SortOptions()
        results = list(self._entries.values())

        if filters.status:
            results = [e for e in results if e.status in filters.status]
        if filters.locale:
            results = [e for e in results if e.locale in filters.locale]
        if filters.content_type_id:
            results = [
                e for e in results if e.content_type_id == filters.content_type_id
            ]
        if filters.search:
            query = filters.search.lower()
            results = [
                e
                for e in results
                if query in json.dumps(e.to_storage()["data"]).lower()
            ]
        if filters.date_from:
            date_from = as_utc(filters.date_from)
            results = [e for e in results if as_utc(e.created_at) >= date_from]
        if filters.date_to:
            date_to = as_utc(filters.date_to)
            results = [e for e in results if as_utc(e.created_at) <= date_to]

        # Entries without a value sort last in either direction
        missing = [e for e in results if getattr(e, sort.field) is None]
        present = [e for e in results if getattr(e, sort.field) is not None]
        present.sort(
            key=lambda e: _sort_key(getattr(e, sort.field)),
            reverse=sort.direction == "desc",
        )
        return present + missing

    # Presentation helpers

    @staticmethod
    def entry_title(entry: Entry) -> str:
        """First non-empty string among title, name, heading and subject."""
        for name in TITLE_FIELDS:
            value = entry.data.get(name)
            if value and isinstance(value, str):
                return value
        return f"Entry {entry.id}"

    def entry_stats(self) -> EntryStats:
        by_status = {status.value: 0 for status in EntryStatus}
        by_content_type: dict[str, int] = {}
        by_locale: dict[str, int] = {}
        week_ago = as_utc(self._clock()) - timedelta(days=7)
        recent = 0

        for entry in self._entries.values():
            by_status[entry.status.value] += 1
            by_content_type[entry.content_type_id] = (
                by_content_type.get(entry.content_type_id, 0) + 1
            )
            by_locale[entry.locale] = by_locale.get(entry.locale, 0) + 1
            if as_utc(entry.updated_at) > week_ago:
                recent += 1

        return EntryStats(
            total=len(self._entries),
            by_status=by_status,
            by_content_type=by_content_type,
            by_locale=by_locale,
            recent_count=recent,
        )

    # Bulk replacement

    def replace_all(self, entries: Iterable[Entry]) -> None:
        """Replace every entry without validation or count adjustment."""
        new_entries = {e.id: e for e in entries}
        with OperationLogger(logger, "replace_entries"):
            self._state.save(new_entries.values())
        self._entries = new_entries
        logger.info("Entries replaced", entries=len(new_entries))
