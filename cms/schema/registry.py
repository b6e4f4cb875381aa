"""Schema registry for components and content types.

Owns both tables, their field lists and the component usage bookkeeping
(``usage_count`` / ``used_in``). Every operation validates completely, builds
the new records as copies, persists every affected key and only then swaps
the in-memory tables, so a failure at any step leaves observable state as it
was.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import (
    BundleError,
    ComponentNotFoundError,
    ContentTypeNotFoundError,
    DuplicateNameError,
    FieldNotFoundError,
    InUseError,
    InvalidApiIdError,
    InvalidUpdateError,
    NotFoundError,
)
from ..core.logging import OperationLogger, get_logger
from ..core.models import (
    BUNDLE_FORMAT_VERSION,
    FIELD_DEFINITION_MODELS,
    BaseFieldDefinition,
    CMSModel,
    Component,
    ContentType,
    ContentTypeKind,
    generate_id,
    referenced_component_id,
    to_attribute_names,
    utc_now,
)
from ..storage import KeyValueStore, PersistedCollection, StorageKey
from .field_validation import field_name_of, validate_field_definition

logger = get_logger(__name__)

API_ID_PATTERN = re.compile(r"^[a-z]$|^[a-z][a-z0-9-]*[a-z0-9]$")

COMPONENT_UPDATABLE = frozenset(
    {
        "name",
        "display_name",
        "description",
        "category",
        "icon",
        "is_repeatable",
        "min_instances",
        "max_instances",
        "default_instances",
    }
)
CONTENT_TYPE_UPDATABLE = frozenset(
    {
        "name",
        "display_name",
        "description",
        "kind",
        "api_id",
        "draft_and_publish",
        "i18n",
    }
)

Owner = Component | ContentType


def slugify_api_id(display_name: str) -> str:
    """Derive an API id: lowercase, non-alphanumerics to ``-``, collapsed, trimmed."""
    slug = re.sub(r"[^a-z0-9]", "-", display_name.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def is_valid_api_id(api_id: str) -> bool:
    return bool(API_ID_PATTERN.match(api_id))


class ComponentStats(CMSModel):
    total: int = 0
    repeatable: int = 0
    single_use: int = 0
    total_fields: int = 0
    average_fields_per_component: float = 0.0
    most_used: Component | None = None
    categories: dict[str, int] = Field(default_factory=dict)


class ContentTypeStats(CMSModel):
    total: int = 0
    single_types: int = 0
    collection_types: int = 0
    total_fields: int = 0
    average_fields_per_type: float = 0.0


class SchemaRegistry:
    """Components, content types and the references between them.

    Args:
        store: Key-value store persisting the ``components`` and
            ``content-types`` keys
        clock: Returns the current time for ``created_at``/``updated_at``
        id_factory: Returns a fresh record id
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_id,
    ):
        self._clock = clock
        self._new_id = id_factory
        self._component_state = PersistedCollection(
            store, StorageKey.COMPONENTS, Component
        )
        self._content_type_state = PersistedCollection(
            store, StorageKey.CONTENT_TYPES, ContentType
        )
        self._components: dict[str, Component] = {}
        self._content_types: dict[str, ContentType] = {}
        self.reload()

    def reload(self) -> None:
        """Re-read both tables from the store."""
        self._components = {c.id: c for c in self._component_state.load()}
        self._content_types = {t.id: t for t in self._content_type_state.load()}
        logger.debug(
            "Schema registry loaded",
            components=len(self._components),
            content_types=len(self._content_types),
        )

    def subscribe_components(
        self, listener: Callable[[list[Component]], None]
    ) -> Callable[[], None]:
        return self._component_state.subscribe(listener)

    def subscribe_content_types(
        self, listener: Callable[[list[ContentType]], None]
    ) -> Callable[[], None]:
        return self._content_type_state.subscribe(listener)

    # Internal helpers

    def _commit(
        self,
        components: Mapping[str, Component] | None = None,
        content_types: Mapping[str, ContentType] | None = None,
        removed_components: Iterable[str] = (),
        removed_content_types: Iterable[str] = (),
    ) -> None:
        removed_components = list(removed_components)
        removed_content_types = list(removed_content_types)
        touch_components = bool(components) or bool(removed_components)
        touch_types = bool(content_types) or bool(removed_content_types)

        new_components = dict(self._components)
        new_components.update(components or {})
        for component_id in removed_components:
            new_components.pop(component_id, None)

        new_types = dict(self._content_types)
        new_types.update(content_types or {})
        for content_type_id in removed_content_types:
            new_types.pop(content_type_id, None)

        with OperationLogger(logger, "commit_schema"):
            if touch_components:
                self._component_state.save(new_components.values())
            if touch_types:
                self._content_type_state.save(new_types.values())

        self._components = new_components
        self._content_types = new_types

    def _require_component(self, component_id: str) -> Component:
        component = self._components.get(component_id)
        if component is None:
            raise ComponentNotFoundError(f"Component not found: {component_id}")
        return component

    def _require_content_type(self, content_type_id: str) -> ContentType:
        content_type = self._content_types.get(content_type_id)
        if content_type is None:
            raise ContentTypeNotFoundError(
                f"Content type not found: {content_type_id}"
            )
        return content_type

    def get_owner(self, owner_id: str) -> Owner:
        """Resolve a component or content type id.

        Raises:
            NotFoundError: If the id names neither
        """
        owner = self._components.get(owner_id) or self._content_types.get(owner_id)
        if owner is None:
            raise NotFoundError(f"No component or content type with id {owner_id}")
        return owner

    @staticmethod
    def _stage(
        owner: Owner,
        components: dict[str, Component],
        content_types: dict[str, ContentType],
    ) -> None:
        if isinstance(owner, Component):
            components[owner.id] = owner
        else:
            content_types[owner.id] = owner

    def _stage_usage(
        self,
        pending: dict[str, Component],
        component_id: str,
        owner_id: str,
        delta: int,
        still_referenced: bool = False,
    ) -> None:
        component = pending.get(component_id) or self._components.get(component_id)
        if component is None:
            logger.warning(
                "Usage change for unknown component",
                component_id=component_id,
                owner_id=owner_id,
            )
            return

        used_in = list(component.used_in)
        if delta > 0:
            if owner_id not in used_in:
                used_in.append(owner_id)
        elif not still_referenced and owner_id in used_in:
            used_in.remove(owner_id)

        pending[component_id] = component.model_copy(
            update={
                "usage_count": max(0, component.usage_count + delta),
                "used_in": used_in,
            }
        )

    def _release_usages(self, owner: Owner, pending: dict[str, Component]) -> None:
        for field in owner.fields:
            ref = referenced_component_id(field)
            if ref and ref != owner.id:
                self._stage_usage(pending, ref, owner.id, -1)

    # Components

    def create_component(
        self,
        name: str,
        display_name: str,
        category: str,
        description: str | None = None,
        icon: str | None = None,
        is_repeatable: bool = False,
        min_instances: int | None = None,
        max_instances: int | None = None,
        default_instances: int | None = None,
    ) -> Component:
        """Create a component with no fields.

        Raises:
            DuplicateNameError: If another component already uses ``name``
        """
        if self.get_component_by_name(name) is not None:
            raise DuplicateNameError(f"Component name already exists: {name}")

        now = self._clock()
        component = Component(
            id=self._new_id(),
            name=name,
            display_name=display_name,
            category=category,
            description=description,
            icon=icon,
            is_repeatable=is_repeatable,
            min_instances=min_instances,
            max_instances=max_instances,
            default_instances=default_instances,
            fields=[],
            created_at=now,
            updated_at=now,
        )
        self._commit(components={component.id: component})
        logger.info("Component created", component_id=component.id, name=name)
        return component

    def update_component(
        self, component_id: str, updates: Mapping[str, Any]
    ) -> Component:
        """Apply metadata updates (snake_case or camelCase keys).

        Raises:
            ComponentNotFoundError: If the component does not exist
            InvalidUpdateError: If a key is not updatable or a value is invalid
            DuplicateNameError: If a rename collides with another component
        """
        component = self._require_component(component_id)
        changes = to_attribute_names(updates, Component)

        unknown = set(changes) - COMPONENT_UPDATABLE
        if unknown:
            raise InvalidUpdateError(
                f"Cannot update component attributes: {', '.join(sorted(unknown))}"
            )

        new_name = changes.get("name")
        if new_name is not None:
            existing = self.get_component_by_name(new_name)
            if existing is not None and existing.id != component_id:
                raise DuplicateNameError(f"Component name already exists: {new_name}")

        try:
            updated = Component.model_validate(
                {**component.model_dump(), **changes, "updated_at": self._clock()}
            )
        except PydanticValidationError as e:
            raise InvalidUpdateError(f"Invalid component update: {e}", e) from e

        self._commit(components={updated.id: updated})
        logger.info(
            "Component updated", component_id=component_id, changed=sorted(changes)
        )
        return updated

    def delete_component(self, component_id: str) -> None:
        """Delete an unreferenced component.

        Usages held by the component's own component fields are released.

        Raises:
            ComponentNotFoundError: If the component does not exist
            InUseError: If any field still references the component
        """
        component = self._require_component(component_id)
        if component.usage_count > 0:
            raise InUseError(
                f"Cannot delete component that is in use: {component.name} "
                f"(used {component.usage_count} times)"
            )

        pending: dict[str, Component] = {}
        self._release_usages(component, pending)
        pending.pop(component_id, None)
        self._commit(components=pending, removed_components=[component_id])
        logger.info("Component deleted", component_id=component_id)

    def get_component(self, component_id: str) -> Component | None:
        return self._components.get(component_id)

    def get_component_by_name(self, name: str) -> Component | None:
        for component in self._components.values():
            if component.name == name:
                return component
        return None

    def list_components(self) -> list[Component]:
        return list(self._components.values())

    def components_by_category(self, category: str) -> list[Component]:
        return [c for c in self._components.values() if c.category == category]

    def repeatable_components(self) -> list[Component]:
        return [c for c in self._components.values() if c.is_repeatable]

    def single_use_components(self) -> list[Component]:
        return [c for c in self._components.values() if not c.is_repeatable]

    def search_components(self, query: str) -> list[Component]:
        """Case-insensitive substring match on name, display name, description and category."""
        needle = query.lower()
        return [
            c
            for c in self._components.values()
            if needle in c.name.lower()
            or needle in c.display_name.lower()
            or needle in (c.description or "").lower()
            or needle in c.category.lower()
        ]

    def categories(self) -> list[str]:
        return sorted({c.category for c in self._components.values()})

    def component_stats(self) -> ComponentStats:
        components = self.list_components()
        if not components:
            return ComponentStats()

        total_fields = sum(len(c.fields) for c in components)
        most_used: Component | None = None
        for component in components:
            if component.usage_count > (most_used.usage_count if most_used else 0):
                most_used = component

        categories: dict[str, int] = {}
        for component in components:
            categories[component.category] = categories.get(component.category, 0) + 1

        return ComponentStats(
            total=len(components),
            repeatable=len(self.repeatable_components()),
            single_use=len(self.single_use_components()),
            total_fields=total_fields,
            average_fields_per_component=total_fields / len(components),
            most_used=most_used,
            categories=categories,
        )

    def export_component(
        self, component_id: str, version: str = BUNDLE_FORMAT_VERSION
    ) -> dict[str, Any]:
        """Serialize one component with export metadata."""
        component = self._require_component(component_id)
        return {
            **component.to_storage(),
            "exportedAt": self._clock().isoformat(),
            "version": version,
        }

    def import_component(self, data: Mapping[str, Any]) -> Component:
        """Create a component from exported metadata.

        Only metadata is imported; fields must be re-added so their
        references are validated against this registry.

        Raises:
            BundleError: If name, display name or category is missing
            DuplicateNameError: If the name is already taken
        """
        values = to_attribute_names(data, Component)
        if not values.get("name") or not values.get("display_name") or not values.get(
            "category"
        ):
            raise BundleError(
                "Invalid component data: name, displayName and category are required"
            )

        return self.create_component(
            name=values["name"],
            display_name=values["display_name"],
            category=values["category"],
            description=values.get("description"),
            icon=values.get("icon"),
            is_repeatable=bool(values.get("is_repeatable", False)),
            min_instances=values.get("min_instances"),
            max_instances=values.get("max_instances"),
            default_instances=values.get("default_instances"),
        )

    # Content types

    def create_content_type(
        self,
        name: str,
        display_name: str,
        kind: ContentTypeKind | str = ContentTypeKind.COLLECTION,
        api_id: str | None = None,
        description: str | None = None,
        draft_and_publish: bool = True,
        i18n: bool = False,
    ) -> ContentType:
        """Create a content type with no fields.

        ``api_id`` is derived from ``display_name`` when not given.

        Raises:
            InvalidApiIdError: If the API id is not a lowercase slug
            DuplicateNameError: If another content type uses the API id
        """
        api_id = api_id or slugify_api_id(display_name)
        self._check_api_id(api_id)

        now = self._clock()
        content_type = ContentType(
            id=self._new_id(),
            name=name,
            display_name=display_name,
            description=description,
            kind=ContentTypeKind(kind),
            api_id=api_id,
            draft_and_publish=draft_and_publish,
            i18n=i18n,
            fields=[],
            created_at=now,
            updated_at=now,
        )
        self._commit(content_types={content_type.id: content_type})
        logger.info(
            "Content type created", content_type_id=content_type.id, api_id=api_id
        )
        return content_type

    def _check_api_id(self, api_id: str, exclude_id: str | None = None) -> None:
        if not is_valid_api_id(api_id):
            raise InvalidApiIdError(
                f"API ID must contain only lowercase letters, numbers, and hyphens: "
                f"{api_id!r}"
            )
        existing = self.get_content_type_by_api_id(api_id)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateNameError(f"API ID already exists: {api_id}")

    def update_content_type(
        self, content_type_id: str, updates: Mapping[str, Any]
    ) -> ContentType:
        """Apply metadata updates (snake_case or camelCase keys).

        Raises:
            ContentTypeNotFoundError: If the content type does not exist
            InvalidUpdateError: If a key is not updatable or a value is invalid
            InvalidApiIdError: If a new API id is not a slug
            DuplicateNameError: If a new API id collides
        """
        content_type = self._require_content_type(content_type_id)
        changes = to_attribute_names(updates, ContentType)

        unknown = set(changes) - CONTENT_TYPE_UPDATABLE
        if unknown:
            raise InvalidUpdateError(
                f"Cannot update content type attributes: {', '.join(sorted(unknown))}"
            )
        if "api_id" in changes:
            self._check_api_id(changes["api_id"], exclude_id=content_type_id)

        try:
            updated = ContentType.model_validate(
                {**content_type.model_dump(), **changes, "updated_at": self._clock()}
            )
        except PydanticValidationError as e:
            raise InvalidUpdateError(f"Invalid content type update: {e}", e) from e

        self._commit(content_types={updated.id: updated})
        logger.info(
            "Content type updated",
            content_type_id=content_type_id,
            changed=sorted(changes),
        )
        return updated

    def delete_content_type(self, content_type_id: str) -> None:
        """Delete a content type that has no entries.

        Raises:
            ContentTypeNotFoundError: If the content type does not exist
            InUseError: If the content type still has entries
        """
        content_type = self._require_content_type(content_type_id)
        if content_type.entry_count > 0:
            raise InUseError(
                f"Cannot delete content type that has entries: {content_type.api_id} "
                f"({content_type.entry_count} entries)"
            )

        pending: dict[str, Component] = {}
        self._release_usages(content_type, pending)
        self._commit(components=pending, removed_content_types=[content_type_id])
        logger.info("Content type deleted", content_type_id=content_type_id)

    def get_content_type(self, content_type_id: str) -> ContentType | None:
        return self._content_types.get(content_type_id)

    def get_content_type_by_api_id(self, api_id: str) -> ContentType | None:
        for content_type in self._content_types.values():
            if content_type.api_id == api_id:
                return content_type
        return None

    def list_content_types(self) -> list[ContentType]:
        return list(self._content_types.values())

    def single_types(self) -> list[ContentType]:
        return [
            t for t in self._content_types.values() if t.kind == ContentTypeKind.SINGLE
        ]

    def collection_types(self) -> list[ContentType]:
        return [
            t
            for t in self._content_types.values()
            if t.kind == ContentTypeKind.COLLECTION
        ]

    def content_type_stats(self) -> ContentTypeStats:
        content_types = self.list_content_types()
        if not content_types:
            return ContentTypeStats()
        total_fields = sum(len(t.fields) for t in content_types)
        return ContentTypeStats(
            total=len(content_types),
            single_types=len(self.single_types()),
            collection_types=len(self.collection_types()),
            total_fields=total_fields,
            average_fields_per_type=total_fields / len(content_types),
        )

    def adjust_entry_count(self, content_type_id: str, delta: int) -> ContentType:
        """Shift a content type's entry count, clamped at zero.

        Raises:
            ContentTypeNotFoundError: If the content type does not exist
        """
        content_type = self._require_content_type(content_type_id)
        updated = content_type.model_copy(
            update={"entry_count": max(0, content_type.entry_count + delta)}
        )
        self._commit(content_types={updated.id: updated})
        return updated

    # Fields

    def add_field(self, owner_id: str, field: Any) -> Any:
        """Append a validated field definition to a component or content type.

        Component fields also count as a usage of their target component.

        Raises:
            NotFoundError: If the owner does not exist
            DuplicateNameError: If the owner already has a field of that name
            InvalidFieldDefinitionError: If the definition is invalid
            ComponentNotFoundError: If a referenced component does not exist
            CircularDependencyError: If the reference would close a cycle
        """
        owner = self.get_owner(owner_id)
        name = field_name_of(field)
        if any(existing.name == name for existing in owner.fields):
            raise DuplicateNameError(f"Field name already exists on {owner_id}: {name}")

        definition = validate_field_definition(
            field, owner.id, [f.name for f in owner.fields], self._components
        )

        new_owner = owner.model_copy(
            update={"fields": [*owner.fields, definition], "updated_at": self._clock()}
        )
        pending_components: dict[str, Component] = {}
        pending_types: dict[str, ContentType] = {}
        self._stage(new_owner, pending_components, pending_types)

        ref = referenced_component_id(definition)
        if ref:
            self._stage_usage(pending_components, ref, owner.id, +1)

        self._commit(components=pending_components, content_types=pending_types)
        logger.info(
            "Field added", owner_id=owner.id, field=definition.name, type=definition.type
        )
        return definition

    def update_field(
        self, owner_id: str, field_name: str, updates: Mapping[str, Any]
    ) -> Any:
        """Merge ``updates`` into an existing field and re-validate it.

        When the type changes only the members common to every field type
        are carried over. Usage moves with a changed component reference.

        Raises:
            NotFoundError: If the owner does not exist
            FieldNotFoundError: If the owner has no such field
            DuplicateNameError: If a rename collides with a sibling
            InvalidFieldDefinitionError: If the merged definition is invalid
        """
        owner = self.get_owner(owner_id)
        existing = next((f for f in owner.fields if f.name == field_name), None)
        if existing is None:
            raise FieldNotFoundError(f"Field not found on {owner_id}: {field_name}")

        changes = to_attribute_names(updates, *FIELD_DEFINITION_MODELS)
        base = existing.model_dump()
        if "type" in changes and changes["type"] != existing.type:
            common = set(BaseFieldDefinition.model_fields)
            base = {key: value for key, value in base.items() if key in common}
        merged = {**base, **changes}

        siblings = [f.name for f in owner.fields if f.name != field_name]
        if merged.get("name") in siblings:
            raise DuplicateNameError(
                f"Field name already exists on {owner_id}: {merged['name']}"
            )

        definition = validate_field_definition(
            merged, owner.id, siblings, self._components
        )

        new_fields = [definition if f.name == field_name else f for f in owner.fields]
        new_owner = owner.model_copy(
            update={"fields": new_fields, "updated_at": self._clock()}
        )
        pending_components: dict[str, Component] = {}
        pending_types: dict[str, ContentType] = {}
        self._stage(new_owner, pending_components, pending_types)

        old_ref = referenced_component_id(existing)
        new_ref = referenced_component_id(definition)
        if old_ref != new_ref:
            if old_ref:
                still = any(referenced_component_id(f) == old_ref for f in new_fields)
                self._stage_usage(pending_components, old_ref, owner.id, -1, still)
            if new_ref:
                self._stage_usage(pending_components, new_ref, owner.id, +1)

        self._commit(components=pending_components, content_types=pending_types)
        logger.info(
            "Field updated",
            owner_id=owner.id,
            field=field_name,
            new_name=definition.name,
        )
        return definition

    def remove_field(self, owner_id: str, field_name: str) -> None:
        """Remove a field, releasing the component usage it held.

        The owner leaves the target's ``used_in`` only once none of its
        remaining fields reference that component.

        Raises:
            NotFoundError: If the owner does not exist
            FieldNotFoundError: If the owner has no such field
        """
        owner = self.get_owner(owner_id)
        existing = next((f for f in owner.fields if f.name == field_name), None)
        if existing is None:
            raise FieldNotFoundError(f"Field not found on {owner_id}: {field_name}")

        new_fields = [f for f in owner.fields if f.name != field_name]
        new_owner = owner.model_copy(
            update={"fields": new_fields, "updated_at": self._clock()}
        )
        pending_components: dict[str, Component] = {}
        pending_types: dict[str, ContentType] = {}
        self._stage(new_owner, pending_components, pending_types)

        ref = referenced_component_id(existing)
        if ref:
            still = any(referenced_component_id(f) == ref for f in new_fields)
            self._stage_usage(pending_components, ref, owner.id, -1, still)

        self._commit(components=pending_components, content_types=pending_types)
        logger.info("Field removed", owner_id=owner.id, field=field_name)

    def reorder_fields(self, owner_id: str, ordered_names: Iterable[str]) -> Owner:
        """Re-sequence an owner's fields.

        Named fields come first in the given order. Names the owner does not
        have are ignored. Fields left unnamed keep their relative order after
        the named ones, so no field is ever lost.

        Raises:
            NotFoundError: If the owner does not exist
        """
        owner = self.get_owner(owner_id)
        by_name = {f.name: f for f in owner.fields}

        reordered = []
        placed: set[str] = set()
        for name in ordered_names:
            if name not in by_name:
                logger.debug("Ignoring unknown field in reorder", owner_id=owner_id, field=name)
                continue
            if name in placed:
                continue
            reordered.append(by_name[name])
            placed.add(name)
        reordered.extend(f for f in owner.fields if f.name not in placed)

        new_owner = owner.model_copy(
            update={"fields": reordered, "updated_at": self._clock()}
        )
        pending_components: dict[str, Component] = {}
        pending_types: dict[str, ContentType] = {}
        self._stage(new_owner, pending_components, pending_types)
        self._commit(components=pending_components, content_types=pending_types)
        logger.info(
            "Fields reordered", owner_id=owner.id, order=[f.name for f in reordered]
        )
        return new_owner

    # Usage tracking

    def usage_count(self, component_id: str) -> int:
        component = self._components.get(component_id)
        return component.usage_count if component else 0

    def used_in(self, component_id: str) -> set[str]:
        component = self._components.get(component_id)
        return set(component.used_in) if component else set()

    def content_types_using(self, component_id: str) -> list[ContentType]:
        """Content types referencing the component; unresolvable ids are dropped."""
        component = self._components.get(component_id)
        if component is None:
            return []
        return [
            self._content_types[owner_id]
            for owner_id in component.used_in
            if owner_id in self._content_types
        ]

    # Bulk replacement

    def replace_all(
        self, components: Iterable[Component], content_types: Iterable[ContentType]
    ) -> None:
        """Replace both tables wholesale without structural validation."""
        new_components = {c.id: c for c in components}
        new_types = {t.id: t for t in content_types}
        with OperationLogger(logger, "replace_schema"):
            self._component_state.save(new_components.values())
            self._content_type_state.save(new_types.values())
        self._components = new_components
        self._content_types = new_types
        logger.info(
            "Schema replaced",
            components=len(new_components),
            content_types=len(new_types),
        )
