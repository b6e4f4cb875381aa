"""Media registry: uploaded asset metadata, ingestion checks and queries.

Only metadata is kept; file bytes are inspected at ingestion (size, MIME
type, image dimensions) and then discarded.
"""

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

from ..config import CMSConfig
from ..core.exceptions import (
    FileTooLargeError,
    InvalidFileTypeError,
    InvalidUpdateError,
    MediaFileNotFoundError,
    MediaValidationError,
)
from ..core.logging import OperationLogger, get_logger
from ..core.models import (
    CMSModel,
    MediaFile,
    as_utc,
    generate_id,
    to_attribute_names,
    utc_now,
)
from ..storage import KeyValueStore, PersistedCollection, StorageKey
from .dimensions import HeaderImageDecoder, ImageDecoder

logger = get_logger(__name__)

MediaKind = Literal["image", "video", "document"]
MEDIA_UPDATABLE = frozenset(
    {
        "name",
        "filename",
        "mime_type",
        "size",
        "width",
        "height",
        "url",
        "alt",
        "caption",
        "folder",
    }
)
ROOT_FOLDER = "Root"


def file_type_of(mime_type: str) -> MediaKind:
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    return "document"


def format_file_size(size: int) -> str:
    """Human-readable size, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"


def file_url(filename: str) -> str:
    return f"/api/media/{filename}"


class MediaFilters(CMSModel):
    type: Literal["image", "video", "document", "all"] = "all"
    folder: str | None = None
    search: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class MediaStats(CMSModel):
    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_folder: dict[str, int] = Field(default_factory=dict)
    total_size: int = 0
    average_size: float = 0.0
    recent_count: int = 0


class MediaRegistry:
    """Media file metadata persisted under the ``media-files`` key.

    Args:
        store: Key-value store
        config: Supplies the size limit, MIME allow-list and recent limit
        clock: Returns the current time
        id_factory: Returns a fresh media id
        image_decoder: Reads pixel dimensions of uploaded images
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: CMSConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_id,
        image_decoder: ImageDecoder | None = None,
    ):
        self.config = config or CMSConfig()
        self.image_decoder = image_decoder or HeaderImageDecoder()
        self._clock = clock
        self._new_id = id_factory
        self._state = PersistedCollection(store, StorageKey.MEDIA_FILES, MediaFile)
        self._files: dict[str, MediaFile] = {}
        self.reload()

    def reload(self) -> None:
        self._files = {f.id: f for f in self._state.load()}

    def subscribe(
        self, listener: Callable[[list[MediaFile]], None]
    ) -> Callable[[], None]:
        return self._state.subscribe(listener)

    def _commit(
        self, changed: Iterable[MediaFile] = (), removed: Iterable[str] = ()
    ) -> None:
        new_files = dict(self._files)
        for media_file in changed:
            new_files[media_file.id] = media_file
        for media_id in removed:
            new_files.pop(media_id, None)
        with OperationLogger(logger, "commit_media"):
            self._state.save(new_files.values())
        self._files = new_files

    def _require(self, media_id: str) -> MediaFile:
        media_file = self._files.get(media_id)
        if media_file is None:
            raise MediaFileNotFoundError(f"Media file not found: {media_id}")
        return media_file

    # CRUD

    def add_media_file(self, meta: Mapping[str, Any]) -> MediaFile:
        """Store a metadata record as given.

        Raises:
            MediaValidationError: If a required member is missing or malformed
        """
        values = to_attribute_names(meta, MediaFile)
        now = self._clock()
        try:
            media_file = MediaFile.model_validate(
                {**values, "id": self._new_id(), "created_at": now, "updated_at": now}
            )
        except PydanticValidationError as e:
            raise MediaValidationError(f"Invalid media metadata: {e}", e) from e

        self._commit(changed=[media_file])
        logger.info(
            "Media file added", media_id=media_file.id, filename=media_file.filename
        )
        return media_file

    def update_media_file(self, media_id: str, updates: Mapping[str, Any]) -> MediaFile:
        """Apply metadata updates.

        Raises:
            MediaFileNotFoundError: If the file does not exist
            InvalidUpdateError: If a key is not updatable or a value is invalid
        """
        media_file = self._require(media_id)
        changes = to_attribute_names(updates, MediaFile)
        unknown = set(changes) - MEDIA_UPDATABLE
        if unknown:
            raise InvalidUpdateError(
                f"Cannot update media attributes: {', '.join(sorted(unknown))}"
            )
        try:
            updated = MediaFile.model_validate(
                {**media_file.model_dump(), **changes, "updated_at": self._clock()}
            )
        except PydanticValidationError as e:
            raise InvalidUpdateError(f"Invalid media update: {e}", e) from e

        self._commit(changed=[updated])
        logger.info("Media file updated", media_id=media_id, changed=sorted(changes))
        return updated

    def delete_media_file(self, media_id: str) -> None:
        self._require(media_id)
        self._commit(removed=[media_id])
        logger.info("Media file deleted", media_id=media_id)

    def get_media_file(self, media_id: str) -> MediaFile | None:
        return self._files.get(media_id)

    # Ingestion

    def validate_upload(self, mime_type: str, size: int) -> None:
        """Check an upload against the size limit and MIME allow-list.

        Raises:
            FileTooLargeError: If ``size`` exceeds ``max_file_size``
            InvalidFileTypeError: If ``mime_type`` is not allowed
        """
        limit = self.config.max_file_size
        if size > limit:
            raise FileTooLargeError(
                f"File size {format_file_size(size)} exceeds maximum allowed size "
                f"of {format_file_size(limit)}"
            )
        if mime_type not in self.config.allowed_mime_types:
            raise InvalidFileTypeError(f"File type {mime_type} is not allowed")

    async def _upload_metadata(
        self,
        file_bytes: bytes,
        filename: str,
        mime_type: str,
        declared_size: int | None,
    ) -> dict[str, Any]:
        size = declared_size if declared_size is not None else len(file_bytes)
        self.validate_upload(mime_type, size)

        width = height = None
        if file_type_of(mime_type) == "image":
            dimensions = await self.image_decoder.decode(file_bytes, mime_type)
            if dimensions and dimensions[0] > 0 and dimensions[1] > 0:
                width, height = dimensions
            else:
                logger.debug("Image dimensions unavailable", filename=filename)

        return {
            "name": filename.split(".")[0],
            "filename": filename,
            "mime_type": mime_type,
            "size": size,
            "width": width,
            "height": height,
            "url": file_url(filename),
        }

    async def ingest_upload(
        self,
        file_bytes: bytes,
        filename: str,
        declared_mime_type: str,
        declared_size: int | None = None,
        folder: str | None = None,
    ) -> MediaFile:
        """Validate an uploaded file and record its metadata.

        ``declared_size`` defaults to the byte length.

        Raises:
            FileTooLargeError: If the file exceeds the size limit
            InvalidFileTypeError: If the MIME type is not allowed
        """
        meta = await self._upload_metadata(
            file_bytes, filename, declared_mime_type, declared_size
        )
        return self.add_media_file({**meta, "folder": folder})

    async def replace_file(
        self,
        media_id: str,
        file_bytes: bytes,
        filename: str,
        declared_mime_type: str,
        declared_size: int | None = None,
    ) -> MediaFile:
        """Swap the file behind an existing record, keeping its id, alt, caption and folder.

        Raises:
            MediaFileNotFoundError: If the record does not exist
            FileTooLargeError: If the file exceeds the size limit
            InvalidFileTypeError: If the MIME type is not allowed
        """
        self._require(media_id)
        meta = await self._upload_metadata(
            file_bytes, filename, declared_mime_type, declared_size
        )
        updated = self.update_media_file(media_id, meta)
        logger.info("Media file replaced", media_id=media_id, filename=filename)
        return updated

    # Queries

    def list_files(self) -> list[MediaFile]:
        return list(self._files.values())

    def files_by_type(
        self, kind: Literal["image", "video", "document", "all"]
    ) -> list[MediaFile]:
        if kind == "all":
            return self.list_files()
        return [f for f in self._files.values() if file_type_of(f.mime_type) == kind]

    def files_by_folder(self, folder: str) -> list[MediaFile]:
        return [f for f in self._files.values() if f.folder == folder]

    def recent_files(self, limit: int | None = None) -> list[MediaFile]:
        """Most recently created files first."""
        ordered = sorted(
            self._files.values(), key=lambda f: as_utc(f.created_at), reverse=True
        )
        return ordered[: self.config.recent_limit if limit is None else limit]

    @staticmethod
    def _matches(media_file: MediaFile, query: str) -> bool:
        return any(
            query in (value or "").lower()
            for value in (
                media_file.name,
                media_file.filename,
                media_file.alt,
                media_file.caption,
            )
        )

    def search_files(self, query: str) -> list[MediaFile]:
        """Case-insensitive substring match on name, filename, alt text and caption."""
        needle = query.lower()
        return [f for f in self._files.values() if self._matches(f, needle)]

    def file_count(self) -> int:
        return len(self._files)

    def total_size(self) -> int:
        return sum(f.size for f in self._files.values())

    def filter_files(self, filters: MediaFilters | None = None) -> list[MediaFile]:
        filters = filters or MediaFilters()
        files = self.files_by_type(filters.type)
        if filters.folder:
            files = [f for f in files if f.folder == filters.folder]
        if filters.search:
            needle = filters.search.lower()
            files = [f for f in files if self._matches(f, needle)]
        if filters.date_from:
            date_from = as_utc(filters.date_from)
            files = [f for f in files if as_utc(f.created_at) >= date_from]
        if filters.date_to:
            date_to = as_utc(filters.date_to)
            files = [f for f in files if as_utc(f.created_at) <= date_to]
        return files

    # Folders

    def folders(self) -> list[str]:
        return sorted({f.folder for f in self._files.values() if f.folder})

    def move_files_to_folder(
        self, media_ids: Iterable[str], folder: str | None
    ) -> list[MediaFile]:
        """Move files into ``folder`` (None for the root); all ids are checked first."""
        media_ids = list(dict.fromkeys(media_ids))
        for media_id in media_ids:
            self._require(media_id)
        now = self._clock()
        moved = [
            self._files[media_id].model_copy(update={"folder": folder, "updated_at": now})
            for media_id in media_ids
        ]
        self._commit(changed=moved)
        logger.info("Media files moved", count=len(moved), folder=folder)
        return moved

    def delete_folder(self, folder: str) -> int:
        """Delete every file in ``folder`` and return how many were removed."""
        doomed = [f.id for f in self.files_by_folder(folder)]
        if doomed:
            self._commit(removed=doomed)
        logger.info("Media folder deleted", folder=folder, removed=len(doomed))
        return len(doomed)

    def media_stats(self) -> MediaStats:
        files = self.list_files()
        by_type: dict[str, int] = {}
        by_folder: dict[str, int] = {}
        week_ago = as_utc(self._clock()) - timedelta(days=7)
        recent = 0

        for media_file in files:
            kind = file_type_of(media_file.mime_type)
            by_type[kind] = by_type.get(kind, 0) + 1
            folder = media_file.folder or ROOT_FOLDER
            by_folder[folder] = by_folder.get(folder, 0) + 1
            if as_utc(media_file.created_at) > week_ago:
                recent += 1

        total_size = self.total_size()
        return MediaStats(
            total=len(files),
            by_type=by_type,
            by_folder=by_folder,
            total_size=total_size,
            average_size=total_size / len(files) if files else 0.0,
            recent_count=recent,
        )

    # Bulk replacement

    def replace_all(self, media_files: Iterable[MediaFile]) -> None:
        new_files = {f.id: f for f in media_files}
        with OperationLogger(logger, "replace_media"):
            self._state.save(new_files.values())
        self._files = new_files
        logger.info("Media files replaced", media_files=len(new_files))
