"""Offline validation of export bundles.

Unlike the registries, which reject the first problem of a single write,
the bundle validator walks the whole bundle and reports every problem it
finds. Checks run in layers:

1. Structure: the bundle is a mapping with a supported version and list
   collections. Failures here stop validation.
2. Records: every component, content type, entry and media file decodes.
3. Schema: unique names and api ids, valid field definitions, resolvable
   component references and an acyclic component graph.
4. Content: entries point at known content types and their data passes
   the content type's field rules.
5. Counts: stored usage and entry counts match recomputed values
   (warnings only).
"""

from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import CMSError, EntryValidationError
from ..core.logging import get_logger
from ..core.models import (
    BUNDLE_FORMAT_VERSION,
    Component,
    ContentType,
    Entry,
    ExportBundle,
    MediaFile,
    Settings,
    parse_field_definition,
    referenced_component_id,
)
from ..entries.validation import EntryDataValidator
from ..schema.field_validation import validate_field_definition
from ..schema.registry import is_valid_api_id
from .errors import ValidationError, ValidationResult, ValidationWarning

logger = get_logger(__name__)

COLLECTION_KEYS = ("components", "contentTypes", "entries", "mediaFiles")


def _pydantic_problems(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'record'}: {item['msg']}"
        for item in error.errors()
    )


class BundleValidator:
    """Validate export bundles before they are imported.

    Args:
        supported_versions: Extra accepted ``version`` values, usually the
            configured export version; the built-in format version is
            always accepted
    """

    def __init__(self, supported_versions: Iterable[str] = ()):
        self.supported_versions = frozenset({BUNDLE_FORMAT_VERSION, *supported_versions})

    def validate(self, bundle: ExportBundle | Mapping[str, Any]) -> ValidationResult:
        """Validate a bundle model or its raw camelCase mapping.

        Returns:
            ValidationResult holding every error and warning found; ``bundle``
            is set to the decoded ExportBundle when the result is valid
        """
        if isinstance(bundle, ExportBundle):
            raw: Any = bundle.model_dump(mode="json", by_alias=True)
        else:
            raw = bundle

        result = ValidationResult()

        # Layer 1: structure
        self._check_structure(raw, result)
        if not result.is_valid:
            return result

        # Layer 2: records
        components = self._decode_owners(raw.get("components", []), Component, result)
        content_types = self._decode_owners(
            raw.get("contentTypes", []), ContentType, result
        )
        entries = self._decode_records(raw.get("entries", []), Entry, "entry", result)
        media_files = self._decode_records(
            raw.get("mediaFiles", []), MediaFile, "media", result
        )
        settings = self._decode_settings(raw.get("settings"), result)

        # Layer 3: schema
        component_table = {c.id: c for c in components}
        self._check_unique_names(components, content_types, result)
        for owner in (*components, *content_types):
            self._check_fields(owner, component_table, result)

        # Layer 4: content
        type_table = {t.id: t for t in content_types}
        validator = EntryDataValidator(component_table.get)
        for entry in entries:
            self._check_entry(entry, type_table, validator, result)

        # Layer 5: counts
        self._check_counts(components, content_types, entries, result)

        if result.is_valid:
            result.bundle = ExportBundle(
                components=components,
                content_types=content_types,
                entries=entries,
                media_files=media_files,
                settings=settings or Settings(),
                version=raw["version"],
                **({"exported_at": raw["exportedAt"]} if raw.get("exportedAt") else {}),
            )

        logger.debug(
            "Bundle validated",
            valid=result.is_valid,
            errors=result.error_count,
            warnings=result.warning_count,
        )
        return result

    def _check_structure(self, raw: Any, result: ValidationResult) -> None:
        if not isinstance(raw, Mapping):
            result.add_error(
                ValidationError(
                    type="invalid_bundle",
                    message=f"Bundle must be a mapping, got {type(raw).__name__}",
                )
            )
            return

        version = raw.get("version")
        if version is None:
            result.add_error(
                ValidationError(
                    type="missing_version", message="Bundle has no version", field="version"
                )
            )
        elif version not in self.supported_versions:
            result.add_error(
                ValidationError(
                    type="unsupported_version",
                    message=f"Unsupported bundle version {version!r}; supported: "
                    f"{', '.join(sorted(self.supported_versions))}",
                    field="version",
                )
            )

        for key in COLLECTION_KEYS:
            if key in raw and not isinstance(raw[key], list):
                result.add_error(
                    ValidationError(
                        type="invalid_collection",
                        message=f"'{key}' must be a list",
                        field=key,
                    )
                )

    def _decode_owners(
        self,
        items: list[Any],
        model: type[Component] | type[ContentType],
        result: ValidationResult,
    ) -> list[Any]:
        """Decode components or content types, parsing each field separately.

        Decoded owners hold only the fields that parsed.
        """
        kind = "component" if model is Component else "content-type"
        decoded = []
        for index, item in enumerate(items):
            label = f"{kind}[{index}]"
            if not isinstance(item, Mapping):
                result.add_error(
                    ValidationError(
                        type="invalid_record", message="Record must be a mapping", record=label
                    )
                )
                continue

            raw_fields = item.get("fields") or []
            label = f"{kind}:{item.get('name', index)}"
            fields = []
            for position, raw_field in enumerate(raw_fields):
                try:
                    fields.append(parse_field_definition(raw_field))
                except CMSError as e:
                    result.add_error(
                        ValidationError(
                            type=e.code,
                            message=e.message,
                            record=label,
                            field=f"fields[{position}]",
                        )
                    )

            try:
                owner = model.model_validate({**item, "fields": []})
            except PydanticValidationError as e:
                result.add_error(
                    ValidationError(
                        type="invalid_record",
                        message=_pydantic_problems(e),
                        record=label,
                    )
                )
                continue
            decoded.append(owner.model_copy(update={"fields": fields}))
        return decoded

    def _decode_records(
        self, items: list[Any], model: type, kind: str, result: ValidationResult
    ) -> list[Any]:
        decoded = []
        for index, item in enumerate(items):
            try:
                decoded.append(model.model_validate(item))
            except PydanticValidationError as e:
                record_id = item.get("id", index) if isinstance(item, Mapping) else index
                result.add_error(
                    ValidationError(
                        type="invalid_record",
                        message=_pydantic_problems(e),
                        record=f"{kind}:{record_id}",
                    )
                )
        return decoded

    def _decode_settings(self, raw: Any, result: ValidationResult) -> Settings | None:
        if raw is None:
            return None
        try:
            return Settings.model_validate(raw)
        except PydanticValidationError as e:
            result.add_error(
                ValidationError(
                    type="invalid_record",
                    message=_pydantic_problems(e),
                    record="settings",
                )
            )
            return None

    def _check_unique_names(
        self,
        components: list[Component],
        content_types: list[ContentType],
        result: ValidationResult,
    ) -> None:
        names = Counter(c.name for c in components)
        for name, count in names.items():
            if count > 1:
                result.add_error(
                    ValidationError(
                        type="duplicate_name",
                        message=f"Component name '{name}' is used {count} times",
                        record=f"component:{name}",
                    )
                )

        api_ids = Counter(t.api_id for t in content_types)
        for api_id, count in api_ids.items():
            if count > 1:
                result.add_error(
                    ValidationError(
                        type="duplicate_name",
                        message=f"API id '{api_id}' is used {count} times",
                        record=f"content-type:{api_id}",
                    )
                )

        for content_type in content_types:
            if not is_valid_api_id(content_type.api_id):
                result.add_error(
                    ValidationError(
                        type="invalid_api_id",
                        message=f"API id '{content_type.api_id}' is not a valid slug",
                        record=f"content-type:{content_type.name}",
                        field="apiId",
                    )
                )

    def _check_fields(
        self,
        owner: Component | ContentType,
        components: Mapping[str, Component],
        result: ValidationResult,
    ) -> None:
        kind = "component" if isinstance(owner, Component) else "content-type"
        names = [field.name for field in owner.fields]
        for name, count in Counter(names).items():
            if count > 1:
                result.add_error(
                    ValidationError(
                        type="duplicate_name",
                        message=f"Field name '{name}' is used {count} times",
                        record=f"{kind}:{owner.name}",
                        field=name,
                    )
                )
        for position, field in enumerate(owner.fields):
            siblings = names[:position] + names[position + 1 :]
            try:
                validate_field_definition(field, owner.id, siblings, components)
            except CMSError as e:
                result.add_error(
                    ValidationError(
                        type=e.code,
                        message=e.message,
                        record=f"{kind}:{owner.name}",
                        field=field.name,
                    )
                )

    def _check_entry(
        self,
        entry: Entry,
        content_types: Mapping[str, ContentType],
        validator: EntryDataValidator,
        result: ValidationResult,
    ) -> None:
        content_type = content_types.get(entry.content_type_id)
        if content_type is None:
            result.add_error(
                ValidationError(
                    type="content_type_not_found",
                    message=f"Entry references unknown content type "
                    f"'{entry.content_type_id}'",
                    record=f"entry:{entry.id}",
                    field="contentTypeId",
                )
            )
            return

        try:
            validator.validate(content_type.fields, entry.data)
        except EntryValidationError as e:
            result.add_error(
                ValidationError(
                    type=e.code,
                    message=e.message,
                    record=f"entry:{entry.id}",
                    field=e.field,
                )
            )

    def _check_counts(
        self,
        components: list[Component],
        content_types: list[ContentType],
        entries: list[Entry],
        result: ValidationResult,
    ) -> None:
        usage: Counter[str] = Counter()
        owners: defaultdict[str, set[str]] = defaultdict(set)
        for owner in (*components, *content_types):
            for field in owner.fields:
                ref = referenced_component_id(field)
                if ref:
                    usage[ref] += 1
                    owners[ref].add(owner.id)

        for component in components:
            if component.usage_count != usage[component.id]:
                result.add_warning(
                    ValidationWarning(
                        type="usage_count_mismatch",
                        message=f"Stored usage count {component.usage_count} differs "
                        f"from recomputed {usage[component.id]}",
                        record=f"component:{component.name}",
                        field="usageCount",
                    )
                )
            if set(component.used_in) != owners[component.id]:
                result.add_warning(
                    ValidationWarning(
                        type="used_in_mismatch",
                        message="Stored owner list differs from the fields referencing "
                        "this component",
                        record=f"component:{component.name}",
                        field="usedIn",
                    )
                )

        entry_counts = Counter(entry.content_type_id for entry in entries)
        for content_type in content_types:
            if content_type.entry_count != entry_counts[content_type.id]:
                result.add_warning(
                    ValidationWarning(
                        type="entry_count_mismatch",
                        message=f"Stored entry count {content_type.entry_count} "
                        f"differs from recomputed {entry_counts[content_type.id]}",
                        record=f"content-type:{content_type.api_id}",
                        field="entryCount",
                    )
                )
