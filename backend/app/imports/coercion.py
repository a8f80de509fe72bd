"""Value coercion: raw cell text → typed value.

Every coercer is total. Bad input degrades to the field's default instead
of failing the row; rows that end up unusable are rejected later by the
store, where the user gets a per-row error message.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

from app.imports.fields import FieldKind, FieldSpec, ImportTarget
from app.imports.mapping import ColumnMapping
from app.imports.tokenizer import RawRow

logger = logging.getLogger(__name__)

_NON_CURRENCY = re.compile(r"[^0-9.]")
_NON_DIGIT = re.compile(r"\D")
_LEADING_DIGITS = re.compile(r"^(\d+)")

DEFAULT_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
)

TRUE_WORDS = frozenset({"true", "yes", "y", "1", "paid", "complete", "completed"})


# ─── Per-kind coercers ───

def coerce_currency(raw: str | None, default: Decimal = Decimal("0")) -> Decimal:
    """'$14.10' → Decimal('14.10'); '54.5 $00,4.' → Decimal('54.5004')."""
    cleaned = _NON_CURRENCY.sub("", raw or "")
    parts = cleaned.split(".")
    if len(parts) > 2:
        cleaned = f"{parts[0]}.{parts[1]}"
    if not cleaned.strip("."):
        return default
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return default


def coerce_integer(raw: str | None, default: int = 1) -> int:
    """'15 ($0.29)' → 15; 'approx. 24' → 24; '' → default."""
    text = (raw or "").strip()
    match = _LEADING_DIGITS.match(text)
    if match:
        return int(match.group(1))
    digits = _NON_DIGIT.sub("", text)
    return int(digits) if digits else default


def coerce_date(
    raw: str | None,
    formats: Sequence[str] = DEFAULT_DATE_FORMATS,
    fallback_to_today: bool = False,
) -> date | None:
    """Parse with the source's date formats; no date rather than today on failure."""
    text = (raw or "").strip()
    if text:
        candidates = [text]
        # "2025-05-19 14:00" / "2025-05-19T14:00:00" carry a time we do not keep
        head = re.split(r"[ T]\d{1,2}:\d{2}", text, maxsplit=1)[0].strip()
        if head and head != text:
            candidates.append(head)
        for candidate in candidates:
            for fmt in formats or DEFAULT_DATE_FORMATS:
                try:
                    return datetime.strptime(candidate, fmt).date()
                except ValueError:
                    continue
        logger.debug("Unparseable date %r", text)
    return date.today() if fallback_to_today else None


def coerce_text(raw: str | None, nullable: bool = False) -> str | None:
    """Trim, drop one pair of enclosing quotes, unescape embedded quotes.

    Runs on cells the tokenizer has already unquoted, so text is unescaped
    twice: a stored `a""b` comes back as `a"b` and a value wrapped in its
    own quotes (`"Sparkle"`) loses them on re-import.
    """
    if raw is None:
        return None if nullable else ""
    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        text = text[1:-1]
    text = text.replace('""', '"').replace('\\"', '"')
    if not text and nullable:
        return None
    return text


def coerce_boolean(raw: str | None, default: bool = False) -> bool:
    text = (raw or "").strip().lower()
    if not text:
        return default
    return text in TRUE_WORDS


def coerce(raw: str | None, kind: FieldKind | str, default: Any = None) -> Any:
    """Dispatch on kind. Never raises for any input string."""
    kind = FieldKind(kind)
    if kind is FieldKind.currency:
        return coerce_currency(raw, Decimal("0") if default is None else default)
    if kind is FieldKind.integer:
        return coerce_integer(raw, 1 if default is None else default)
    if kind is FieldKind.date:
        return coerce_date(raw) or default
    if kind is FieldKind.boolean:
        return coerce_boolean(raw, bool(default))
    value = coerce_text(raw)
    return default if not value and default is not None else value


def coerce_field(raw: str | None, spec: FieldSpec) -> Any:
    """Coerce one cell using the field's kind, default and date formats."""
    if spec.kind is FieldKind.date:
        return coerce_date(raw, spec.date_formats, spec.fallback_to_today)
    if spec.kind is FieldKind.text:
        value = coerce_text(raw, nullable=spec.nullable)
        if not value and spec.default_value not in (None, ""):
            return spec.default_value
        return value
    return coerce(raw, spec.kind, spec.default_value)


# ─── Records ───

@dataclass(frozen=True)
class TypedRecord:
    """One row after coercion, ready for a storage batch."""

    row_number: int
    values: Mapping[str, Any]
    raw: Mapping[str, str] = field(default_factory=dict)
    children: tuple["TypedRecord", ...] = ()

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)


def make_record(
    row_number: int,
    values: dict[str, Any],
    raw: Mapping[str, str],
    children: Sequence[TypedRecord] = (),
    finalize: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
) -> TypedRecord:
    if finalize is not None:
        values = finalize(values)
    return TypedRecord(
        row_number=row_number,
        values=MappingProxyType(values),
        raw=MappingProxyType(dict(raw)),
        children=tuple(children),
    )


def build_record(row: RawRow, mapping: ColumnMapping, target: ImportTarget) -> TypedRecord:
    """Coerce every mapped column of `row`; unmapped fields take their default."""
    values: dict[str, Any] = {}
    for spec in target.fields:
        if mapping.is_mapped(spec.key):
            values[spec.key] = coerce_field(row.get(mapping.source_for(spec.key)), spec)
        elif spec.fallback_to_today:
            values[spec.key] = coerce_date(None, fallback_to_today=True)
        else:
            values[spec.key] = spec.default_value
    return make_record(row.line, values, row.values, finalize=target.finalize)


def build_records(
    rows: Sequence[RawRow], mapping: ColumnMapping, target: ImportTarget,
) -> list[TypedRecord]:
    return [build_record(row, mapping, target) for row in rows]
