"""Restore from a full JSON backup envelope.

Each entity section goes through the same FieldSpec coercion and batch
orchestrator as a CSV import. Orders carry their line items as children so
the order store can write both in one all-or-nothing unit.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from app.imports.coercion import TypedRecord, coerce_field, make_record
from app.imports.errors import MalformedInputError
from app.imports.fields import ImportTarget, get_target
from app.imports.orchestrator import DEFAULT_BATCH_SIZE, BatchStore, ImportOutcome, run_import

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS = frozenset({"1.0"})

# Parents before children: quotes and orders look up contacts, and
# standalone order items attach to orders by number.
RESTORE_ORDER = (
    "contacts", "recipes", "ingredients", "expenses", "quotes", "orders", "order_items",
)


@dataclass
class BackupEnvelope:
    version: str
    exported_at: str | None
    sections: dict[str, list[Any]] = field(default_factory=dict)


def parse_backup(text: str) -> BackupEnvelope:
    """Validate the envelope shape; raises MalformedInputError."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"Backup is not valid JSON: {exc.msg}", line=exc.lineno) from exc

    if not isinstance(payload, dict):
        raise MalformedInputError("Backup must be a JSON object")
    version = str(payload.get("version", ""))
    if version not in SUPPORTED_VERSIONS:
        raise MalformedInputError(f"Unsupported backup version: {version or 'missing'}")
    data = payload.get("data")
    if not isinstance(data, dict):
        raise MalformedInputError("Backup has no data section")

    sections: dict[str, list[Any]] = {}
    for name, entries in data.items():
        if not isinstance(entries, list):
            raise MalformedInputError(f"Section '{name}' must be a list")
        sections[name] = entries
    return BackupEnvelope(version=version, exported_at=payload.get("exportDate"), sections=sections)


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def record_from_entry(
    entry: Mapping[str, Any],
    target: ImportTarget,
    row_number: int,
    children: list[TypedRecord] | None = None,
) -> TypedRecord:
    values = {spec.key: coerce_field(_as_text(entry.get(spec.key)), spec) for spec in target.fields}
    raw = {k: _as_text(v) or "" for k, v in entry.items() if not isinstance(v, (list, dict))}
    return make_record(row_number, values, raw, children or (), finalize=target.finalize)


def _order_record(entry: Mapping[str, Any], row_number: int) -> TypedRecord:
    items_target = get_target("order_items")
    items = entry.get("items") or []
    children = [
        record_from_entry({**item, "order_number": entry.get("order_number")}, items_target, row_number)
        for item in items
        if isinstance(item, dict)
    ]
    return record_from_entry(entry, get_target("orders"), row_number, children)


async def restore_section(
    name: str,
    entries: list[Any],
    store: BatchStore,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ImportOutcome:
    target = get_target(name)
    outcome = ImportOutcome()
    records: list[TypedRecord] = []
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            outcome.total += 1
            outcome.processed += 1
            outcome.add_error(position, {"entry": _as_text(entry) or ""}, "Entry is not an object")
            continue
        if name == "orders":
            records.append(_order_record(entry, position))
        else:
            records.append(record_from_entry(entry, target, position))
    return await run_import(records, store, batch_size, outcome=outcome)


async def restore_backup(
    envelope: BackupEnvelope,
    stores: Mapping[str, BatchStore],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> dict[str, ImportOutcome]:
    """Restore every known section in dependency order."""
    unknown = sorted(set(envelope.sections) - set(RESTORE_ORDER))
    if unknown:
        logger.info("Backup sections ignored on restore: %s", ", ".join(unknown))

    outcomes: dict[str, ImportOutcome] = {}
    for name in RESTORE_ORDER:
        entries = envelope.sections.get(name)
        if not entries:
            continue
        store = stores.get(name)
        if store is None:
            logger.warning("No store configured for backup section %s", name)
            continue
        outcomes[name] = await restore_section(name, entries, store, batch_size)
    return outcomes
