"""
Request shapes for knowledge entries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError

from core.errors import ValidationIssue


class Reference(BaseModel):
    uri: str
    title: str
    attributed_to: Optional[str] = None
    type: Literal["citation", "testimony"] = "citation"
    statement: Optional[str] = None


class Trait(BaseModel):
    key: str
    value: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    parent_id: Optional[str] = None


class KnowledgeCreate(BaseModel):
    title: str
    content: str
    tags: Optional[list[str]] = None
    project_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    refs: Optional[list[Reference]] = None
    traits: Optional[list[Trait]] = None
    time_start: Optional[datetime] = None
    time_end: Optional[datetime] = None


class KnowledgeUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[list[str]] = None
    project_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    refs: Optional[list[Reference]] = None
    traits: Optional[list[Trait]] = None
    time_start: Optional[datetime] = None
    time_end: Optional[datetime] = None


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(model_cls: type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` into ``model_cls``, raising ValidationIssue on failure."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise ValidationIssue(
            f"{field}: {first.get('msg', 'invalid value')}",
            field=field,
            error_type=first.get("type", "invalid"),
            data={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


def dump_records(items: Optional[list[BaseModel]]) -> Optional[list[dict]]:
    if items is None:
        return None
    return [item.model_dump(exclude_none=True) for item in items]


__all__ = [
    "Reference",
    "Trait",
    "KnowledgeCreate",
    "KnowledgeUpdate",
    "parse_model",
    "dump_records",
]
