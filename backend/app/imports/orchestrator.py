"""Batch import orchestrator.

Sends TypedRecords to a storage collaborator in fixed-size batches, one
batch in flight at a time, and folds every batch outcome into a single
ImportOutcome. A batch that fails as a whole (transport or database error)
is terminal for its rows: each of them gets a synthetic row error and the
remaining batches still run. No retries happen here.
"""
import enum
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence

from app.imports.coercion import TypedRecord
from app.imports.errors import BatchStateError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5

ProgressCallback = Callable[[int, int], Awaitable[None] | None]


# ─── Storage contract ───

@dataclass
class BatchErrorDetail:
    position: int  # zero-based index into the submitted batch
    error: str


@dataclass
class BatchResult:
    inserted: int
    errors: int
    error_details: list[BatchErrorDetail] = field(default_factory=list)


class BatchStore(Protocol):
    async def submit_batch(self, records: Sequence[TypedRecord]) -> BatchResult:
        """Persist records; raise only when the whole call failed."""
        ...


# ─── Batch state machine ───

class BatchStatus(str, enum.Enum):
    pending = "pending"
    in_flight = "in_flight"
    committed = "committed"
    failed = "failed"


_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.pending: frozenset({BatchStatus.in_flight}),
    BatchStatus.in_flight: frozenset({BatchStatus.committed, BatchStatus.failed}),
    BatchStatus.committed: frozenset(),
    BatchStatus.failed: frozenset(),
}


@dataclass
class Batch:
    index: int
    records: list[TypedRecord]
    status: BatchStatus = BatchStatus.pending
    result: BatchResult | None = None
    failure: str | None = None

    def advance(self, status: BatchStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise BatchStateError(
                f"Batch {self.index}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status

    @property
    def is_terminal(self) -> bool:
        return self.status in (BatchStatus.committed, BatchStatus.failed)


def make_batches(records: Sequence[TypedRecord], batch_size: int) -> list[Batch]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [
        Batch(index=i // batch_size, records=list(records[i:i + batch_size]))
        for i in range(0, len(records), batch_size)
    ]


# ─── Outcome ───

@dataclass
class RowError:
    row_number: int | None
    raw_row: Mapping[str, Any]
    message: str


@dataclass
class ImportOutcome:
    total: int = 0
    inserted_count: int = 0
    error_count: int = 0
    processed: int = 0
    cancelled: bool = False
    errors: list[RowError] = field(default_factory=list)
    batches: list[Batch] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.inserted_count > 0 or (self.total > 0 and self.error_count == 0)

    @property
    def summary(self) -> str:
        text = f"{self.inserted_count} imported, {self.error_count} failed"
        if self.cancelled:
            text += f" (cancelled after {self.processed} of {self.total} rows)"
        return text

    def add_error(self, row_number: int | None, raw_row: Mapping[str, Any], message: str) -> None:
        self.errors.append(RowError(row_number=row_number, raw_row=dict(raw_row), message=message))
        self.error_count += 1

    def merge_batch(self, batch: Batch) -> None:
        """Fold a terminal batch into the running totals."""
        if not batch.is_terminal:
            raise BatchStateError(f"Batch {batch.index} is still {batch.status.value}")

        if batch.status is BatchStatus.failed:
            for record in batch.records:
                self.add_error(record.row_number, record.raw, batch.failure or "Batch failed")
        else:
            result = batch.result or BatchResult(inserted=0, errors=0)
            self.inserted_count += result.inserted
            for detail in result.error_details:
                if 0 <= detail.position < len(batch.records):
                    record = batch.records[detail.position]
                    self.errors.append(RowError(record.row_number, dict(record.raw), detail.error))
                else:
                    self.errors.append(RowError(None, {}, detail.error))
            self.error_count += max(result.errors, len(result.error_details))
        self.processed += len(batch.records)
        self.batches.append(batch)


# ─── Driver ───

async def _notify(progress: ProgressCallback | None, processed: int, total: int) -> None:
    if progress is None:
        return
    ret = progress(processed, total)
    if inspect.isawaitable(ret):
        await ret


async def submit(batch: Batch, store: BatchStore) -> Batch:
    """Drive one batch from pending to a terminal state."""
    batch.advance(BatchStatus.in_flight)
    try:
        batch.result = await store.submit_batch(batch.records)
    except Exception as exc:
        batch.failure = str(exc) or exc.__class__.__name__
        batch.advance(BatchStatus.failed)
        logger.warning(
            "Import batch %d failed (%d rows): %s", batch.index, len(batch.records), batch.failure,
        )
        return batch
    batch.advance(BatchStatus.committed)
    return batch


async def run_import(
    records: Sequence[TypedRecord],
    store: BatchStore,
    batch_size: int = DEFAULT_BATCH_SIZE,
    *,
    progress: ProgressCallback | None = None,
    should_continue: Callable[[], bool] | None = None,
    outcome: ImportOutcome | None = None,
) -> ImportOutcome:
    """Submit `records` batch by batch and return the aggregated outcome.

    Args:
        records: Coerced rows in file order; order is preserved in storage.
        store: Storage collaborator; one call per batch.
        batch_size: Rows per storage call.
        progress: Called with (processed, total) after each batch is merged.
        should_continue: Checked before each batch; False stops the import
            after the batch already in flight.
        outcome: Pre-seeded outcome (e.g. rows the tokenizer already rejected).
    """
    batches = make_batches(records, batch_size)
    outcome = outcome or ImportOutcome()
    outcome.total += len(records)

    logger.info("Importing %d rows in %d batch(es) of %d", len(records), len(batches), batch_size)

    for batch in batches:
        if should_continue is not None and not should_continue():
            outcome.cancelled = True
            logger.info("Import cancelled before batch %d", batch.index)
            break
        await submit(batch, store)
        outcome.merge_batch(batch)
        await _notify(progress, outcome.processed, outcome.total)

    logger.info(
        "Import finished: %d inserted, %d errors, %d/%d processed",
        outcome.inserted_count, outcome.error_count, outcome.processed, outcome.total,
    )
    return outcome
