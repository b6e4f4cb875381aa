"""Content manager: shared registries, export/import and dashboard stats.

The manager owns one instance of each registry over a single key-value
store, so that entry counts and component usage stay consistent across
them.
"""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .config import CMSConfig
from .core.exceptions import BundleError
from .core.logging import OperationLogger, bind_context, clear_context, get_logger
from .core.models import CMSModel, ExportBundle, generate_id, utc_now
from .entries import EntryStats, EntryStore
from .media import HeaderImageDecoder, ImageDecoder, MediaRegistry, MediaStats
from .schema import ComponentStats, ContentTypeStats, SchemaRegistry
from .settings import SettingsRegistry
from .storage import KeyValueStore, create_store
from .validation import BundleValidator, ValidationResult

logger = get_logger(__name__)

# Bundle members that map to a registry collection
BUNDLE_COLLECTIONS = ("components", "contentTypes", "entries", "mediaFiles", "settings")


class DashboardStats(CMSModel):
    """Aggregated counts across every registry."""

    components: ComponentStats
    content_types: ContentTypeStats
    entries: EntryStats
    media: MediaStats
    locales: int = 0
    api_tokens: int = 0
    webhooks: int = 0


class ContentManager:
    """Entry point that wires the registries over one store.

    Args:
        store: Key-value store shared by every registry
        config: CMS configuration; read from the environment when omitted
        clock: Returns the current time
        image_decoder: Reads image dimensions during media ingestion
        id_factory: Returns fresh record ids
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: CMSConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        image_decoder: ImageDecoder | None = None,
        id_factory: Callable[[], str] = generate_id,
    ):
        self.store = store
        self.config = config or CMSConfig()
        self._clock = clock

        self.schema = SchemaRegistry(store, clock=clock, id_factory=id_factory)
        self.entries = EntryStore(
            store,
            self.schema,
            clock=clock,
            id_factory=id_factory,
            default_locale=self.config.default_locale,
            recent_limit=self.config.recent_limit,
        )
        self.media = MediaRegistry(
            store,
            self.config,
            clock=clock,
            id_factory=id_factory,
            image_decoder=image_decoder or HeaderImageDecoder(),
        )
        self.settings = SettingsRegistry(
            store, self.config, clock=clock, id_factory=id_factory
        )
        self.bundle_validator = BundleValidator([self.config.export_version])

    @classmethod
    def from_config(cls, config: CMSConfig | None = None) -> "ContentManager":
        """Build a manager over the store selected by ``config``."""
        config = config or CMSConfig()
        return cls(create_store(config), config)

    def reload(self) -> None:
        """Re-read every registry from the store."""
        self.schema.reload()
        self.entries.reload()
        self.media.reload()
        self.settings.reload()

    # Export / import

    def export_bundle(self) -> ExportBundle:
        """Snapshot every collection into a bundle."""
        bundle = ExportBundle(
            content_types=self.schema.list_content_types(),
            components=self.schema.list_components(),
            entries=self.entries.list_entries(),
            media_files=self.media.list_files(),
            settings=self.settings.settings,
            version=self.config.export_version,
            exported_at=self._clock(),
        )
        logger.info(
            "Bundle exported",
            components=len(bundle.components),
            content_types=len(bundle.content_types),
            entries=len(bundle.entries),
            media_files=len(bundle.media_files),
        )
        return bundle

    def validate_bundle(self, bundle: ExportBundle | Mapping[str, Any]) -> ValidationResult:
        return self.bundle_validator.validate(bundle)

    def import_bundle(self, bundle: ExportBundle | Mapping[str, Any]) -> ExportBundle:
        """Replace every collection present in ``bundle``.

        Records are restored as given, without schema or entry validation;
        use ``validate_bundle`` first to check a bundle of unknown origin.
        A mapping may omit collections, which are then left untouched.

        Raises:
            BundleError: If the version is unsupported or the bundle does not decode
        """
        if isinstance(bundle, ExportBundle):
            present = set(BUNDLE_COLLECTIONS)
            decoded = bundle
        else:
            if not isinstance(bundle, Mapping):
                raise BundleError(
                    f"Bundle must be a mapping, got {type(bundle).__name__}"
                )
            present = {key for key in BUNDLE_COLLECTIONS if key in bundle}
            self._check_version(bundle.get("version"))
            try:
                decoded = ExportBundle.model_validate(bundle)
            except PydanticValidationError as e:
                raise BundleError(f"Bundle does not decode: {e}", e) from e

        self._check_version(decoded.version)

        bind_context(operation_id=generate_id()[:8])
        try:
            with OperationLogger(logger, "import_bundle") as operation:
                if "components" in present or "contentTypes" in present:
                    self.schema.replace_all(
                        decoded.components
                        if "components" in present
                        else self.schema.list_components(),
                        decoded.content_types
                        if "contentTypes" in present
                        else self.schema.list_content_types(),
                    )
                if "entries" in present:
                    self.entries.replace_all(decoded.entries)
                    operation.log_progress("Entries restored", count=len(decoded.entries))
                if "mediaFiles" in present:
                    self.media.replace_all(decoded.media_files)
                    operation.log_progress(
                        "Media restored", count=len(decoded.media_files)
                    )
                if "settings" in present:
                    self.settings.replace_settings(decoded.settings)
            logger.info("Bundle imported", collections=sorted(present))
        finally:
            clear_context()
        return decoded

    def _check_version(self, version: Any) -> None:
        supported = self.bundle_validator.supported_versions
        if version not in supported:
            raise BundleError(
                f"Unsupported bundle version {version!r}; supported: "
                f"{', '.join(sorted(supported))}"
            )

    # Dashboard

    def dashboard_stats(self) -> DashboardStats:
        return DashboardStats(
            components=self.schema.component_stats(),
            content_types=self.schema.content_type_stats(),
            entries=self.entries.entry_stats(),
            media=self.media.media_stats(),
            locales=len(self.settings.settings.locales),
            api_tokens=len(self.settings.api_tokens()),
            webhooks=len(self.settings.webhooks()),
        )
