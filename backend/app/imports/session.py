"""One import session: parse → map → preview → commit.

The session owns its RawRows, ColumnMapping and ImportOutcome; nothing is
shared between sessions. The required-field gate runs before any record
is built, so a refused commit never reaches storage.
"""
import logging
from typing import Any, Callable, Mapping

from app.imports.coercion import build_record, build_records
from app.imports.fields import ImportTarget
from app.imports.mapping import ColumnMapping, propose_mapping
from app.imports.orchestrator import (
    DEFAULT_BATCH_SIZE,
    BatchStore,
    ImportOutcome,
    ProgressCallback,
    run_import,
)
from app.imports.tokenizer import MAX_HEADER_LOOKAHEAD, TokenizedTable, tokenize

logger = logging.getLogger(__name__)


class ImportSession:
    def __init__(
        self,
        target: ImportTarget,
        text: str,
        *,
        strict: bool = False,
        lookahead: int = MAX_HEADER_LOOKAHEAD,
    ):
        self.target = target
        self.table: TokenizedTable = tokenize(
            text, strict=strict, header_hint=target.header_hint, lookahead=lookahead,
        )
        self.mapping: ColumnMapping = propose_mapping(self.table.headers, target.fields)
        self.committed = False
        logger.info(
            "Import session for %s: %d rows, %d skipped, mapped %s",
            target.name,
            self.table.total_rows,
            len(self.table.issues),
            sorted(k for k in self.mapping.columns if self.mapping.is_mapped(k)),
        )

    @property
    def headers(self) -> tuple[str, ...]:
        return self.table.headers

    @property
    def total_rows(self) -> int:
        return self.table.total_rows

    def override(self, key: str, column: str | None) -> None:
        self.mapping.assign(key, column)

    def apply_overrides(self, overrides: Mapping[str, str | None]) -> None:
        self.mapping.apply_overrides(overrides)

    def preview(self, limit: int = 5) -> list[dict[str, Any]]:
        """Raw and coerced values of the first `limit` rows."""
        rows = []
        for row in self.table.rows[:limit]:
            record = build_record(row, self.mapping, self.target)
            rows.append({"row": row.line, "raw": row.as_dict(), "values": dict(record.values)})
        return rows

    async def commit(
        self,
        store: BatchStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        *,
        progress: ProgressCallback | None = None,
        should_continue: Callable[[], bool] | None = None,
    ) -> ImportOutcome:
        """Validate the mapping, coerce every row and run the batches.

        Raises MissingRequiredFieldError before touching `store`.
        """
        self.mapping.validate()
        if self.committed:
            raise RuntimeError("Import session already committed")
        self.committed = True

        outcome = ImportOutcome()
        for issue in self.table.issues:
            outcome.total += 1
            outcome.processed += 1
            outcome.add_error(issue.line, {"line": issue.raw_line}, issue.message)

        records = build_records(self.table.rows, self.mapping, self.target)
        return await run_import(
            records,
            store,
            batch_size,
            progress=progress,
            should_continue=should_continue,
            outcome=outcome,
        )
