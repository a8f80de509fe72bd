"""Tests for the batch import orchestrator.

Storage is a small in-memory fake so every batch outcome (clean, partial
rejection, transport failure) can be scripted per call.
"""
import pytest

from app.imports.coercion import make_record
from app.imports.errors import BatchStateError
from app.imports.orchestrator import (
    Batch,
    BatchErrorDetail,
    BatchResult,
    BatchStatus,
    ImportOutcome,
    make_batches,
    run_import,
)


# ─── Helpers ──────────────────────────────────────────────────────────────────

class FakeStore:
    """Records every submitted batch; `script` maps call index → behaviour."""

    def __init__(self, script: dict | None = None):
        self.calls: list[list] = []
        self.script = script or {}

    async def submit_batch(self, records):
        index = len(self.calls)
        self.calls.append(list(records))
        behaviour = self.script.get(index)
        if isinstance(behaviour, Exception):
            raise behaviour
        if isinstance(behaviour, BatchResult):
            return behaviour
        return BatchResult(inserted=len(records), errors=0)


def _make_records(count: int):
    return [
        make_record(i + 2, {"name": f"Cake {i + 1}"}, {"Name": f"Cake {i + 1}"})
        for i in range(count)
    ]


# ─── Tests ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_clean_import_inserts_everything():
    """10 rows, batch size 5 → two calls, 10 inserted, no errors."""
    store = FakeStore()
    outcome = await run_import(_make_records(10), store, batch_size=5)

    assert [len(c) for c in store.calls] == [5, 5]
    assert outcome.inserted_count == 10
    assert outcome.error_count == 0
    assert outcome.success is True
    assert outcome.summary == "10 imported, 0 failed"


@pytest.mark.asyncio
async def test_order_is_preserved_across_batches():
    """Records reach storage in input order."""
    store = FakeStore()
    records = _make_records(7)
    await run_import(records, store, batch_size=3)
    flattened = [r for call in store.calls for r in call]
    assert flattened == records


@pytest.mark.asyncio
async def test_transport_failure_isolated_to_its_batch():
    """Batch 2 of 3 fails → batches 1 and 3 commit, one error per row of batch 2."""
    store = FakeStore({1: ConnectionError("connection reset")})
    outcome = await run_import(_make_records(15), store, batch_size=5)

    assert len(store.calls) == 3
    assert outcome.inserted_count == 10
    assert outcome.error_count == 5
    assert [e.row_number for e in outcome.errors] == [7, 8, 9, 10, 11]
    assert all(e.message == "connection reset" for e in outcome.errors)
    assert [b.status for b in outcome.batches] == [
        BatchStatus.committed, BatchStatus.failed, BatchStatus.committed,
    ]


@pytest.mark.asyncio
async def test_storage_rejection_maps_to_source_row():
    """Row 3 of a 5-row batch rejected → 4 inserted, error carries row 3's raw values."""
    store = FakeStore({
        0: BatchResult(
            inserted=4,
            errors=1,
            error_details=[BatchErrorDetail(position=2, error="name is required")],
        ),
    })
    records = _make_records(5)
    outcome = await run_import(records, store, batch_size=5)

    assert outcome.inserted_count == 4
    assert outcome.error_count == 1
    error = outcome.errors[0]
    assert error.row_number == records[2].row_number
    assert error.raw_row == {"Name": "Cake 3"}
    assert error.message == "name is required"


@pytest.mark.asyncio
async def test_error_count_without_details_is_kept():
    """A store that only reports a count still counts as failed rows."""
    store = FakeStore({0: BatchResult(inserted=3, errors=2)})
    outcome = await run_import(_make_records(5), store, batch_size=5)
    assert outcome.error_count == 2
    assert outcome.errors == []


@pytest.mark.asyncio
async def test_progress_is_monotonic_and_ends_at_total():
    """Progress is reported after each batch, including failed ones."""
    seen: list[tuple[int, int]] = []
    store = FakeStore({1: RuntimeError("boom")})

    await run_import(_make_records(12), store, batch_size=5, progress=lambda p, t: seen.append((p, t)))

    assert seen == [(5, 12), (10, 12), (12, 12)]


@pytest.mark.asyncio
async def test_async_progress_callback_is_awaited():
    """Coroutine callbacks are awaited like plain ones are called."""
    seen: list[int] = []

    async def progress(processed, total):
        seen.append(processed)

    await run_import(_make_records(6), FakeStore(), batch_size=5, progress=progress)
    assert seen == [5, 6]


@pytest.mark.asyncio
async def test_cancellation_stops_before_next_batch():
    """should_continue() returning False leaves later batches unsubmitted."""
    store = FakeStore()
    checks = iter([True, False])
    outcome = await run_import(
        _make_records(15), store, batch_size=5, should_continue=lambda: next(checks),
    )

    assert len(store.calls) == 1
    assert outcome.cancelled is True
    assert outcome.processed == 5
    assert outcome.total == 15
    assert "cancelled" in outcome.summary


@pytest.mark.asyncio
async def test_empty_input_submits_nothing():
    """No records → no calls and an unsuccessful outcome."""
    store = FakeStore()
    outcome = await run_import([], store)
    assert store.calls == []
    assert outcome.success is False


def test_batch_size_must_be_positive():
    """A zero batch size is a caller error."""
    with pytest.raises(ValueError):
        make_batches(_make_records(3), 0)


def test_batch_state_machine_rejects_illegal_moves():
    """pending → committed skips in_flight and is refused."""
    batch = Batch(index=0, records=[])
    with pytest.raises(BatchStateError):
        batch.advance(BatchStatus.committed)
    batch.advance(BatchStatus.in_flight)
    batch.advance(BatchStatus.failed)
    with pytest.raises(BatchStateError):
        batch.advance(BatchStatus.in_flight)


def test_merge_refuses_non_terminal_batch():
    """Only finished batches can be folded into the outcome."""
    with pytest.raises(BatchStateError):
        ImportOutcome().merge_batch(Batch(index=0, records=[]))
