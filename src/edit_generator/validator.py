"""Schema and value validation for parsed operations.

Invalid entries are filtered out and reported; a bad property or a bad
operation never fails the whole batch.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from . import property_codec
from .errors import InvalidPropertyValue, MalformedOperation
from .models import OPERATION_TYPES, Rejection, TypedProperty, ValidationReport
from .property_codec import PropertyType

logger = logging.getLogger(__name__)

LINE_REQUIRED_ACTIONS = frozenset({"replace", "insert", "delete"})
CONTENT_REQUIRED_ACTIONS = frozenset({"replace", "insert", "append"})
SCRIPT_EDIT_ACTIONS = LINE_REQUIRED_ACTIONS | CONTENT_REQUIRED_ACTIONS


def clean_property(value: Any) -> TypedProperty | bool | int | float | str:
    """Normalize one property value, raising InvalidPropertyValue when unusable.

    Typed values are decoded and re-encoded in canonical wire form; plain
    scalars pass through untouched.
    """
    if isinstance(value, TypedProperty):
        value = value.model_dump(mode="json")

    if isinstance(value, dict):
        tag = value.get("type")
        if not isinstance(tag, str) or not tag.strip() or value.get("value") is None:
            raise InvalidPropertyValue("typed property needs 'type' and 'value'")
        # The tag is kept as sent; only the value is normalized.
        ptype = property_codec.resolve_type(tag) or PropertyType.STRING
        return TypedProperty(type=tag.strip(), value=property_codec.encode(ptype, value["value"]))

    if isinstance(value, (bool, int, float, str)):
        return value

    raise InvalidPropertyValue(f"unsupported property value of type {type(value).__name__}")


def _check_path(op: dict[str, Any]) -> None:
    path = op.get("path")
    if not isinstance(path, list) or not path:
        raise MalformedOperation("path must be a non-empty list of names")
    if not all(isinstance(part, str) and part for part in path):
        raise MalformedOperation("path entries must be non-empty strings")


def _check_edits(op: dict[str, Any]) -> None:
    edits = op.get("edits", op.get("modifications"))
    if not isinstance(edits, list) or not edits:
        raise MalformedOperation("edit_script requires a non-empty edits list")

    for index, edit in enumerate(edits):
        if not isinstance(edit, dict):
            raise MalformedOperation(f"edit {index} must be an object")
        action = edit.get("action")
        if action not in SCRIPT_EDIT_ACTIONS:
            raise MalformedOperation(f"edit {index} has unknown action {action!r}")
        line_number = edit.get("lineNumber", edit.get("line_number"))
        if action in LINE_REQUIRED_ACTIONS:
            if isinstance(line_number, bool) or not isinstance(line_number, int) or line_number < 1:
                raise MalformedOperation(f"edit {index}: '{action}' requires a lineNumber >= 1")
        content = edit.get("content", edit.get("newContent"))
        if action in CONTENT_REQUIRED_ACTIONS and not isinstance(content, str):
            raise MalformedOperation(f"edit {index}: '{action}' requires content")


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


class OperationValidator:
    """Filters a raw operation list into accepted and rejected entries."""

    def __init__(self) -> None:
        self.warnings: list[str] = []

    def _clean_properties(self, index: int, properties: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for name, value in properties.items():
            try:
                cleaned[name] = clean_property(value)
            except InvalidPropertyValue as exc:
                message = f"Operation {index}: dropped property '{name}': {exc.message}"
                logger.warning(message)
                self.warnings.append(message)
        return cleaned

    def _validate_one(self, index: int, op: Any) -> BaseModel:
        if isinstance(op, BaseModel):
            op = op.model_dump(mode="json", by_alias=True)
        if not isinstance(op, dict):
            raise MalformedOperation("operation must be an object")

        op_type = op.get("type")
        model = OPERATION_TYPES.get(op_type) if isinstance(op_type, str) else None
        if model is None:
            raise MalformedOperation("unknown operation type")

        _check_path(op)
        candidate = dict(op)

        if op_type == "modify_instance":
            properties = op.get("properties")
            if not isinstance(properties, dict) or not properties:
                raise MalformedOperation("modify_instance requires a properties object")
            candidate["properties"] = self._clean_properties(index, properties)
            if not candidate["properties"]:
                raise MalformedOperation("no valid properties")
        elif op_type == "edit_script":
            _check_edits(op)
        elif op_type == "create_instance":
            properties = op.get("properties") or {}
            if not isinstance(properties, dict):
                raise MalformedOperation("create_instance properties must be an object")
            candidate["properties"] = self._clean_properties(index, properties)

        try:
            return model.model_validate(candidate)
        except ValidationError as exc:
            raise MalformedOperation(_first_error(exc)) from None

    def validate(self, operations: Iterable[Any]) -> ValidationReport:
        accepted: list[BaseModel] = []
        rejected: list[Rejection] = []
        for index, op in enumerate(operations):
            try:
                accepted.append(self._validate_one(index, op))
            except MalformedOperation as exc:
                logger.warning("Rejected operation %d: %s", index, exc.message)
                rejected.append(Rejection(index=index, reason=exc.message))
        return ValidationReport(accepted=accepted, rejected=rejected, warnings=list(self.warnings))


def validate_operations(operations: Iterable[Any]) -> ValidationReport:
    """Validate ``operations``; accepted entries keep their input order."""
    if isinstance(operations, (str, bytes, dict)) or operations is None:
        return ValidationReport(rejected=[Rejection(index=0, reason="operations must be a list")])
    return OperationValidator().validate(operations)
