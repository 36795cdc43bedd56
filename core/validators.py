"""
Shared validation helpers for Knowledger services.
"""

from __future__ import annotations

import json
from typing import Optional, Sequence

from core.config import MAX_METADATA_BYTES
from core.errors import ValidationIssue


def validate_required_text(value: str, field: str, max_len: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_limit(value: int, field: str, max_value: int) -> None:
    if value <= 0 or value > max_value:
        raise ValidationIssue(f"{field} must be between 1 and {max_value}", field=field, error_type="out_of_range")


def validate_offset(value: int, field: str = "offset") -> None:
    if value < 0:
        raise ValidationIssue(f"{field} must be zero or greater", field=field, error_type="out_of_range")


def validate_threshold(value: float, field: str) -> None:
    if value < 0.0 or value > 1.0:
        raise ValidationIssue(f"{field} must be between 0.0 and 1.0", field=field, error_type="out_of_range")


def validate_string_list(
    values: Optional[Sequence[str]],
    field: str,
    max_items: int,
    max_item_length: int,
) -> None:
    if values is None:
        return
    if isinstance(values, str) or not isinstance(values, (list, tuple)):
        raise ValidationIssue(f"{field} must be a list of strings", field=field, error_type="invalid_type")
    if len(values) > max_items:
        raise ValidationIssue(f"{field} exceeds max items {max_items}", field=field, error_type="max_items")
    for item in values:
        if not isinstance(item, str):
            raise ValidationIssue(f"{field} must contain only strings", field=field, error_type="invalid_type")
        if len(item) > max_item_length:
            raise ValidationIssue(
                f"{field} item exceeds max length {max_item_length}",
                field=field,
                error_type="max_length",
            )


def validate_metadata(metadata: Optional[dict], field: str) -> None:
    if metadata is None:
        return
    if not isinstance(metadata, dict):
        raise ValidationIssue(f"{field} must be an object", field=field, error_type="invalid_type")
    try:
        size = len(json.dumps(metadata))
    except (TypeError, ValueError) as exc:
        raise ValidationIssue(f"{field} must be JSON-serializable", field=field, error_type="invalid_type") from exc
    if size > MAX_METADATA_BYTES:
        raise ValidationIssue(
            f"{field} exceeds max size {MAX_METADATA_BYTES} bytes",
            field=field,
            error_type="max_bytes",
        )


def validate_embedding_text(text: str) -> None:
    if not isinstance(text, str) or not text.strip():
        raise ValidationIssue("Text cannot be empty", field="text", error_type="required")


def validate_record_list(values: Optional[Sequence[dict]], field: str, max_items: int) -> None:
    if values is None:
        return
    if not isinstance(values, (list, tuple)):
        raise ValidationIssue(f"{field} must be a list", field=field, error_type="invalid_type")
    if len(values) > max_items:
        raise ValidationIssue(f"{field} exceeds max items {max_items}", field=field, error_type="max_items")
    if any(not isinstance(item, dict) for item in values):
        raise ValidationIssue(f"{field} must contain only objects", field=field, error_type="invalid_type")
