"""Entry data validation against a content type's field list.

Validation is fail-fast: fields are checked in schema order and the first
failure raises an ``EntryValidationError`` subclass naming the offending
field. Nested component data is validated recursively against the
component's own fields; the reported field is a dotted path such as
``seo.metaTitle`` or ``blocks[1].heading``.
"""

import json
import math
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import date, datetime, time
from typing import Any

from ..core.exceptions import (
    FieldTypeMismatchError,
    OutOfRangeError,
    PatternMismatchError,
    RequiredFieldError,
)
from ..core.logging import get_logger
from ..core.models import (
    BooleanFieldDefinition,
    Component,
    ComponentFieldDefinition,
    DateFieldDefinition,
    DynamicZoneFieldDefinition,
    EmailFieldDefinition,
    EnumerationFieldDefinition,
    FieldType,
    JsonFieldDefinition,
    NumberFieldDefinition,
    PasswordFieldDefinition,
    RichTextFieldDefinition,
    TextFieldDefinition,
    UidFieldDefinition,
)

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_empty(value: Any) -> bool:
    """Missing, None and the empty string all count as no value."""
    return value is None or (isinstance(value, str) and value == "")


class EntryDataValidator:
    """Validate entry data mappings.

    Args:
        resolve_component: Looks up a component by id for nested validation;
            returns None when the component no longer exists
    """

    def __init__(self, resolve_component: Callable[[str], Component | None]):
        self._resolve_component = resolve_component

    def validate(self, fields: Iterable[Any], data: Mapping[str, Any]) -> None:
        """Validate ``data`` against ``fields``.

        Raises:
            RequiredFieldError: A required field is empty or missing
            FieldTypeMismatchError: A value has the wrong kind
            OutOfRangeError: A value violates a length, range, count or membership bound
            PatternMismatchError: A text value does not match its pattern
        """
        self._validate_fields(fields, data, prefix="", trail=())

    def _validate_fields(
        self,
        fields: Iterable[Any],
        data: Mapping[str, Any],
        prefix: str,
        trail: tuple[str, ...],
    ) -> None:
        for field in fields:
            path = f"{prefix}{field.name}"
            value = data.get(field.name)

            if is_empty(value):
                if field.required:
                    raise RequiredFieldError(path, f"Field '{path}' is required")
                continue

            self._validate_value(field, value, path, trail)

    def _validate_value(
        self, field: Any, value: Any, path: str, trail: tuple[str, ...]
    ) -> None:
        if isinstance(field, TextFieldDefinition):
            self._check_string(value, path)
            self._check_length(value, path, field.min_length, field.max_length)
            if field.pattern and not re.search(field.pattern, value):
                raise PatternMismatchError(
                    path, f"Field '{path}' does not match required pattern"
                )

        elif isinstance(field, RichTextFieldDefinition):
            self._check_string(value, path)
            self._check_length(value, path, None, field.max_length)

        elif isinstance(field, PasswordFieldDefinition):
            self._check_string(value, path)
            self._check_length(value, path, field.min_length, field.max_length)

        elif isinstance(field, NumberFieldDefinition):
            if (
                isinstance(value, bool)
                or not isinstance(value, int | float)
                or (isinstance(value, float) and math.isnan(value))
            ):
                raise FieldTypeMismatchError(path, f"Field '{path}' must be a number")
            if field.min is not None and value < field.min:
                raise OutOfRangeError(
                    path, f"Field '{path}' is below minimum value of {field.min:g}"
                )
            if field.max is not None and value > field.max:
                raise OutOfRangeError(
                    path, f"Field '{path}' exceeds maximum value of {field.max:g}"
                )

        elif isinstance(field, EmailFieldDefinition):
            if not isinstance(value, str) or not EMAIL_PATTERN.match(value):
                raise PatternMismatchError(
                    path, f"Field '{path}' must be a valid email address"
                )

        elif isinstance(field, BooleanFieldDefinition):
            if not isinstance(value, bool):
                raise FieldTypeMismatchError(path, f"Field '{path}' must be a boolean")

        elif isinstance(field, DateFieldDefinition):
            accepted: tuple[type, ...] = (
                (time, str) if field.type == FieldType.TIME.value else (date, str)
            )
            if not isinstance(value, accepted):
                kind = "time" if field.type == FieldType.TIME.value else "date"
                raise FieldTypeMismatchError(path, f"Field '{path}' must be a {kind}")

        elif isinstance(field, EnumerationFieldDefinition):
            if value not in field.enumeration_values:
                raise OutOfRangeError(
                    path,
                    f"Field '{path}' must be one of: "
                    f"{', '.join(field.enumeration_values)}",
                )

        elif isinstance(field, JsonFieldDefinition):
            try:
                json.dumps(value, default=_json_default)
            except (TypeError, ValueError) as e:
                raise FieldTypeMismatchError(
                    path, f"Field '{path}' must be valid JSON", e
                ) from e

        elif isinstance(field, UidFieldDefinition):
            self._check_string(value, path)

        elif isinstance(field, ComponentFieldDefinition):
            if field.type == FieldType.COMPONENT.value:
                self._validate_component(field.component_id, value, path, trail)
            else:
                items = self._check_list(value, path)
                self._check_count(items, path, field.min_components, field.max_components)
                for index, item in enumerate(items):
                    self._validate_component(
                        field.component_id, item, f"{path}[{index}]", trail
                    )

        elif isinstance(field, DynamicZoneFieldDefinition):
            items = self._check_list(value, path)
            self._check_count(items, path, field.min_components, field.max_components)
            for index, block in enumerate(items):
                self._validate_block(field, block, f"{path}[{index}]", trail)

        # media and relation values are not structurally checked

    def _validate_component(
        self,
        component_id: str | None,
        value: Any,
        path: str,
        trail: tuple[str, ...],
    ) -> None:
        if not isinstance(value, Mapping):
            raise FieldTypeMismatchError(path, f"Field '{path}' must be an object")
        if not component_id or component_id in trail:
            return
        component = self._resolve_component(component_id)
        if component is None:
            logger.warning(
                "Skipping nested validation for missing component",
                component_id=component_id,
                field=path,
            )
            return
        self._validate_fields(
            component.fields, value, prefix=f"{path}.", trail=(*trail, component_id)
        )

    def _validate_block(
        self,
        field: DynamicZoneFieldDefinition,
        block: Any,
        path: str,
        trail: tuple[str, ...],
    ) -> None:
        if not isinstance(block, Mapping):
            raise FieldTypeMismatchError(path, f"Field '{path}' must be an object")
        component_id = block.get("componentId", block.get("component_id"))
        if component_id not in field.allowed_components:
            raise OutOfRangeError(
                path,
                f"Field '{path}' uses component {component_id!r} which is not "
                "allowed in this dynamic zone",
            )
        self._validate_component(component_id, block.get("data", {}), path, trail)

    @staticmethod
    def _check_string(value: Any, path: str) -> None:
        if not isinstance(value, str):
            raise FieldTypeMismatchError(path, f"Field '{path}' must be a string")

    @staticmethod
    def _check_length(
        value: str, path: str, min_length: int | None, max_length: int | None
    ) -> None:
        if max_length is not None and len(value) > max_length:
            raise OutOfRangeError(
                path, f"Field '{path}' exceeds maximum length of {max_length}"
            )
        if min_length is not None and len(value) < min_length:
            raise OutOfRangeError(
                path, f"Field '{path}' is below minimum length of {min_length}"
            )

    @staticmethod
    def _check_list(value: Any, path: str) -> Sequence[Any]:
        if not isinstance(value, list | tuple):
            raise FieldTypeMismatchError(path, f"Field '{path}' must be a list")
        return value

    @staticmethod
    def _check_count(
        items: Sequence[Any], path: str, minimum: int | None, maximum: int | None
    ) -> None:
        if minimum is not None and len(items) < minimum:
            raise OutOfRangeError(
                path, f"Field '{path}' needs at least {minimum} components"
            )
        if maximum is not None and len(items) > maximum:
            raise OutOfRangeError(
                path, f"Field '{path}' allows at most {maximum} components"
            )


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
