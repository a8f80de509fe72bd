"""Export serializer: typed records → CSV or JSON bytes.

CSV output uses FieldSpec labels as headers so an exported file maps
straight back onto the same target on import. JSON output is always the
backup envelope, so a single-entity JSON export can be restored too.
"""
import csv
import io
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from app.imports.fields import FieldSpec
from app.imports.tokenizer import DEFAULT_DELIMITER, DEFAULT_QUOTE

CSV = "csv"
JSON = "json"
FORMATS = (CSV, JSON)

FORMAT_VERSION = "1.0"

_MEDIA_TYPES = {
    CSV: "text/csv",
    JSON: "application/json",
}


def format_value(value: Any) -> str:
    """Cell text for one typed value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_record(record: Mapping[str, Any], specs: Sequence[FieldSpec]) -> dict[str, Any]:
    row = {spec.key: record.get(spec.key) for spec in specs}
    # Nested collections (order items) travel with their parent.
    for key, value in record.items():
        if key not in row and isinstance(value, list):
            row[key] = value
    return row


def build_backup_envelope(
    sections: Mapping[str, Iterable[Mapping[str, Any]]],
    exported_at: datetime | None = None,
    version: str = FORMAT_VERSION,
) -> dict[str, Any]:
    exported_at = exported_at or datetime.now(timezone.utc)
    return {
        "version": version,
        "exportDate": exported_at.isoformat(),
        "data": {name: [dict(r) for r in rows] for name, rows in sections.items()},
    }


def dump_json(payload: Any) -> bytes:
    return json.dumps(payload, default=_json_default, indent=2).encode("utf-8")


def serialize(
    records: Iterable[Mapping[str, Any]],
    specs: Sequence[FieldSpec],
    fmt: str,
    template: bool = False,
    exported_at: datetime | None = None,
    *,
    entity: str = "records",
    delimiter: str = DEFAULT_DELIMITER,
) -> bytes:
    """Render `records` as CSV or as a one-section JSON envelope.

    A template export ignores `records`: CSV gets the header row only,
    JSON an envelope whose section is empty.
    """
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    rows = [] if template else list(records)

    if fmt == JSON:
        envelope = build_backup_envelope(
            {entity: [_json_record(r, specs) for r in rows]}, exported_at,
        )
        return dump_json(envelope)

    # Minimal quoting: only cells holding the delimiter, a quote or a line break.
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter, quotechar=DEFAULT_QUOTE, lineterminator="\r\n")
    writer.writerow([s.label for s in specs])
    for record in rows:
        writer.writerow([format_value(record.get(s.key)) for s in specs])
    return buf.getvalue().encode("utf-8")


def export_filename(
    entity: str | None, fmt: str, today: date | None = None, product: str = "bakehouse",
) -> str:
    """bakehouse-export-orders-2025-05-19.csv"""
    today = today or date.today()
    return f"{product}-export-{entity or 'all'}-{today.isoformat()}.{fmt}"


def media_type(fmt: str) -> str:
    return _MEDIA_TYPES[fmt]
