"""Field definition validation and component cycle detection.

Validation runs in a fixed order and raises on the first problem. Every check
completes before the registry mutates anything, so a rejected definition
leaves the owner and all components untouched.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from ..core.exceptions import (
    CircularDependencyError,
    ComponentNotFoundError,
    InvalidFieldDefinitionError,
    UnknownFieldTypeError,
)
from ..core.field_types import is_known_field_type, required_shape_for
from ..core.models import (
    BaseFieldDefinition,
    Component,
    ComponentFieldDefinition,
    DynamicZoneFieldDefinition,
    EnumerationFieldDefinition,
    NumberFieldDefinition,
    PasswordFieldDefinition,
    RelationFieldDefinition,
    TextFieldDefinition,
    UidFieldDefinition,
    parse_field_definition,
    referenced_component_id,
)

IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")


def _raw_member(raw: Any, name: str) -> Any:
    if isinstance(raw, BaseFieldDefinition):
        return getattr(raw, name, None)
    if isinstance(raw, dict):
        return raw.get(name)
    return None


def field_name_of(raw: Any) -> Any:
    """Name member of a raw mapping or model, without validating it."""
    return _raw_member(raw, "name")


def validate_field_name(name: Any) -> None:
    """Raise InvalidFieldDefinitionError unless ``name`` is a usable identifier."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidFieldDefinitionError("Field name is required")
    if not IDENTIFIER_PATTERN.match(name):
        raise InvalidFieldDefinitionError(
            f"Field name '{name}' must start with a letter and contain only "
            "letters, numbers, and underscores"
        )


def component_reaches(
    start_id: str, target_id: str, components: Mapping[str, Component]
) -> bool:
    """Return True if ``target_id`` is reachable from ``start_id``.

    Walks component and repeatable-component references depth-first with an
    explicit stack. The visited set guarantees termination even when the
    stored graph already contains a cycle.
    """
    stack = [start_id]
    visited: set[str] = set()

    while stack:
        current = stack.pop()
        if current == target_id:
            return True
        if current in visited:
            continue
        visited.add(current)

        component = components.get(current)
        if component is None:
            continue
        for field in component.fields:
            ref = referenced_component_id(field)
            if ref and ref not in visited:
                stack.append(ref)

    return False


def would_create_cycle(
    owner_id: str, component_id: str, components: Mapping[str, Component]
) -> bool:
    """Whether pointing ``owner_id`` at ``component_id`` closes a cycle."""
    if component_id == owner_id:
        return True
    return component_reaches(component_id, owner_id, components)


def _check_bounds(field: Any, low: str, high: str) -> None:
    low_value = getattr(field, low)
    high_value = getattr(field, high)
    if low_value is not None and high_value is not None and low_value > high_value:
        raise InvalidFieldDefinitionError(
            f"Field '{field.name}': {low} ({low_value}) exceeds {high} ({high_value})"
        )


def validate_field_definition(
    raw: Any,
    owner_id: str,
    sibling_names: Iterable[str],
    components: Mapping[str, Component],
) -> Any:
    """Validate a field definition for placement on ``owner_id``.

    Args:
        raw: Field definition model or raw mapping
        owner_id: Id of the component or content type receiving the field
        sibling_names: Names of the owner's other fields (excluding this one)
        components: Component table used to resolve and walk references

    Returns:
        The parsed field definition

    Raises:
        InvalidFieldDefinitionError: Bad name, missing type-specific member
        UnknownFieldTypeError: Type absent or not in the catalog
        ComponentNotFoundError: Referenced component does not exist
        CircularDependencyError: Component reference would close a cycle
    """
    # 1. name
    validate_field_name(_raw_member(raw, "name"))

    # 2. type
    field_type = _raw_member(raw, "type")
    if not field_type:
        raise UnknownFieldTypeError("Field type is required")
    if not is_known_field_type(field_type):
        raise UnknownFieldTypeError(f"Unknown field type '{field_type}'")

    field = parse_field_definition(raw)
    shape = required_shape_for(field.type)

    # 3. component references
    if shape.requires_component and isinstance(field, ComponentFieldDefinition):
        if not field.component_id:
            raise InvalidFieldDefinitionError(
                f"Field '{field.name}': component ID is required"
            )
        if field.component_id not in components:
            raise ComponentNotFoundError(
                f"Component not found: {field.component_id}"
            )
        if would_create_cycle(owner_id, field.component_id, components):
            raise CircularDependencyError(
                f"Circular dependency detected: field '{field.name}' on "
                f"{owner_id} references component {field.component_id}"
            )

    # 4. dynamic zones
    if shape.requires_allowed_components and isinstance(field, DynamicZoneFieldDefinition):
        if not field.allowed_components:
            raise InvalidFieldDefinitionError(
                f"Field '{field.name}': allowed components are required for "
                "dynamic zones"
            )
        for component_id in field.allowed_components:
            if component_id not in components:
                raise ComponentNotFoundError(f"Component not found: {component_id}")

    # 5. enumerations
    if shape.requires_enumeration_values and isinstance(field, EnumerationFieldDefinition):
        if not field.enumeration_values:
            raise InvalidFieldDefinitionError(
                f"Field '{field.name}': enumeration values are required"
            )

    # 6. relations
    if shape.requires_relation and isinstance(field, RelationFieldDefinition):
        if not field.relation_target:
            raise InvalidFieldDefinitionError(
                f"Field '{field.name}': relation target is required"
            )
        if field.relation_type is None:
            raise InvalidFieldDefinitionError(
                f"Field '{field.name}': relation type is required"
            )

    # 7. uid
    if shape.requires_uid_target and isinstance(field, UidFieldDefinition):
        if not field.uid_target:
            raise InvalidFieldDefinitionError(
                f"Field '{field.name}': UID target field is required"
            )
        if field.uid_target == field.name or field.uid_target not in set(
            sibling_names
        ):
            raise InvalidFieldDefinitionError(
                f"Field '{field.name}': UID target '{field.uid_target}' must name "
                "another field on the same owner"
            )

    # Range members must be ordered
    if isinstance(field, TextFieldDefinition | PasswordFieldDefinition):
        _check_bounds(field, "min_length", "max_length")
    if isinstance(field, NumberFieldDefinition):
        _check_bounds(field, "min", "max")
    if isinstance(field, ComponentFieldDefinition | DynamicZoneFieldDefinition):
        _check_bounds(field, "min_components", "max_components")
    if isinstance(field, TextFieldDefinition) and field.pattern:
        try:
            re.compile(field.pattern)
        except re.error as e:
            raise InvalidFieldDefinitionError(
                f"Field '{field.name}': invalid pattern {field.pattern!r}: {e}", e
            ) from e

    return field
