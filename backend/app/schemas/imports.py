"""Pydantic schemas for import previews and results."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImportRowError(CamelModel):
    row: int | None
    message: str
    raw: dict[str, Any] = Field(default_factory=dict)


class ImportResponse(CamelModel):
    success: bool
    success_count: int
    error_count: int
    errors: list[ImportRowError]
    message: str
    cancelled: bool = False


class FieldInfo(CamelModel):
    key: str
    label: str
    required: bool
    kind: str


class PreviewRow(CamelModel):
    row: int
    raw: dict[str, str]
    values: dict[str, Any]


class PreviewResponse(CamelModel):
    target: str
    headers: list[str]
    fields: list[FieldInfo]
    mapping: dict[str, str | None]
    missing_required: list[str]
    rows: list[PreviewRow]
    total_rows: int
    skipped_rows: int


class RestoreResponse(CamelModel):
    success: bool
    version: str
    export_date: str | None = None
    results: dict[str, ImportResponse]
    message: str
