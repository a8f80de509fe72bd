"""Delimited-text tokenizer.

Turns an uploaded CSV into a header plus RawRows without interpreting any
value. Quote handling inside a record follows the toggle rule used by the
spreadsheet exports we receive: a quote flips the "inside quotes" state,
except a doubled quote inside an open quote, which is a literal quote.
Line breaks only end a record when they are outside a quoted field, so
multi-line notes survive an export/import round trip.
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Sequence

from app.imports.errors import MalformedInputError

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = ","
DEFAULT_QUOTE = '"'
MAX_HEADER_LOOKAHEAD = 5

# One tuple per required header; any alternative in the tuple satisfies it.
HeaderHint = Sequence[Sequence[str]]


# ─── Result types ───

@dataclass(frozen=True)
class RawRow:
    """One input record keyed by header, never modified after tokenizing."""

    line: int
    values: Mapping[str, str]

    def get(self, column: str | None, default: str = "") -> str:
        if not column:
            return default
        return self.values.get(column, default)

    def as_dict(self) -> dict[str, str]:
        return dict(self.values)


@dataclass(frozen=True)
class RowIssue:
    """A data row that was skipped because its shape did not match the header."""

    line: int
    raw_line: str
    message: str


@dataclass
class TokenizedTable:
    headers: tuple[str, ...]
    rows: list[RawRow]
    header_line: int = 1
    issues: list[RowIssue] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)


# ─── Scanning ───

def split_records(
    text: str,
    delimiter: str = DEFAULT_DELIMITER,
    quote: str = DEFAULT_QUOTE,
) -> Iterator[tuple[int, str]]:
    """Yield (starting line number, record text) pairs.

    A quote opens a quoted field only at the start of a field; a stray
    inch mark in the middle of a value must not swallow the rest of the file.
    """
    buf: list[str] = []
    inside = False
    at_field_start = True
    line = 1
    start_line = 1
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if inside:
            if ch == quote:
                if i + 1 < n and text[i + 1] == quote:
                    buf.append(quote + quote)
                    i += 2
                    continue
                inside = False
            elif ch == "\n":
                line += 1
            buf.append(ch)
        elif ch == "\r" or ch == "\n":
            yield start_line, "".join(buf)
            buf = []
            at_field_start = True
            if ch == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            line += 1
            start_line = line
        else:
            if ch == quote and at_field_start:
                inside = True
            at_field_start = ch == delimiter
            buf.append(ch)
        i += 1

    if buf:
        yield start_line, "".join(buf)


def split_fields(
    record: str,
    delimiter: str = DEFAULT_DELIMITER,
    quote: str = DEFAULT_QUOTE,
) -> list[str]:
    """Split one record into raw field values."""
    fields: list[str] = []
    buf: list[str] = []
    inside = False
    i = 0
    n = len(record)

    while i < n:
        ch = record[i]
        if ch == quote:
            if inside and i + 1 < n and record[i + 1] == quote:
                buf.append(quote)
                i += 2
                continue
            inside = not inside
        elif ch == delimiter and not inside:
            fields.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
        i += 1

    fields.append("".join(buf))
    return fields


# ─── Header handling ───

def _normalise_headers(raw_headers: list[str]) -> tuple[str, ...]:
    """Trim header names; give blank or repeated names a unique label."""
    seen: dict[str, int] = {}
    headers: list[str] = []
    for position, raw in enumerate(raw_headers, start=1):
        name = raw.strip() or f"Column {position}"
        count = seen.get(name, 0) + 1
        seen[name] = count
        headers.append(name if count == 1 else f"{name}_{count}")
    return tuple(headers)


def _matches_hint(fields: list[str], hint: HeaderHint) -> bool:
    lowered = [f.strip().lower() for f in fields]
    for alternatives in hint:
        if not any(alt.lower() in value for alt in alternatives for value in lowered):
            return False
    return True


def locate_header(
    records: list[tuple[int, list[str]]],
    hint: HeaderHint | None,
    lookahead: int = MAX_HEADER_LOOKAHEAD,
) -> int:
    """Index of the header record among the first `lookahead` records.

    Some exports put a title and a date range above the real header. When
    no record in the window carries every hinted name the first record is
    used.
    """
    if not hint:
        return 0
    window = min(lookahead, MAX_HEADER_LOOKAHEAD, len(records))
    for index in range(window):
        if _matches_hint(records[index][1], hint):
            return index
    return 0


# ─── Entry point ───

def tokenize(
    text: str,
    *,
    delimiter: str = DEFAULT_DELIMITER,
    quote: str = DEFAULT_QUOTE,
    strict: bool = True,
    header_hint: HeaderHint | None = None,
    lookahead: int = MAX_HEADER_LOOKAHEAD,
) -> TokenizedTable:
    """Parse delimited text into headers and RawRows.

    Raises MalformedInputError when nothing but blank lines remain, when
    there is a header but no data, or (strict) when a data row has a
    different number of fields than the header. With strict=False such
    rows are skipped and reported in `TokenizedTable.issues`.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    records: list[tuple[int, list[str]]] = []
    raw_lines: dict[int, str] = {}
    for line, record in split_records(text, delimiter, quote):
        if not record.strip():
            continue
        fields = split_fields(record, delimiter, quote)
        if all(not value.strip() for value in fields):
            continue
        records.append((line, fields))
        raw_lines[line] = record

    if not records:
        raise MalformedInputError("The file is empty or contains only blank lines")

    header_index = locate_header(records, header_hint, lookahead)
    header_line, header_fields = records[header_index]
    headers = _normalise_headers(header_fields)
    data = records[header_index + 1:]

    if header_index:
        logger.info("Skipped %d metadata line(s) above the header", header_index)

    if not data:
        raise MalformedInputError("The file has a header but no data rows", line=header_line)

    rows: list[RawRow] = []
    issues: list[RowIssue] = []
    for line, fields in data:
        if len(fields) != len(headers):
            message = f"Row has {len(fields)} fields, header has {len(headers)}"
            if strict:
                raise MalformedInputError(f"Line {line}: {message}", line=line)
            issues.append(RowIssue(line=line, raw_line=raw_lines[line], message=message))
            continue
        rows.append(RawRow(line=line, values=MappingProxyType(dict(zip(headers, fields)))))

    if not rows:
        raise MalformedInputError("No data row matches the header layout", line=header_line)

    if issues:
        logger.warning("Tokenizer skipped %d malformed row(s)", len(issues))

    return TokenizedTable(headers=headers, rows=rows, header_line=header_line, issues=issues)
