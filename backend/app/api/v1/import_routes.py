"""Import endpoints: preview, per-target import, and full backup restore."""
import json
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import get_current_owner_id
from app.core.limiter import limiter
from app.db.session import get_session
from app.imports.errors import DataImportError, MalformedInputError, MissingRequiredFieldError
from app.imports.fields import ImportTarget, get_target
from app.imports.orchestrator import ImportOutcome
from app.imports.restore import parse_backup, restore_backup
from app.imports.session import ImportSession
from app.schemas.imports import (
    FieldInfo,
    ImportResponse,
    ImportRowError,
    PreviewResponse,
    PreviewRow,
    RestoreResponse,
)
from app.services import audit as audit_svc
from app.services.import_store import build_store, build_stores

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Helpers ───

def _target_or_404(name: str) -> ImportTarget:
    try:
        return get_target(name)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown import target '{name}'")


async def _read_upload(file: UploadFile) -> str:
    content = await file.read()
    if len(content) > settings.IMPORT_MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.IMPORT_MAX_UPLOAD_BYTES} bytes",
        )
    return content.decode("utf-8", errors="replace")


def _parse_mapping(mapping: str | None) -> dict[str, str | None]:
    if not mapping:
        return {}
    try:
        overrides = json.loads(mapping)
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="mapping must be a JSON object")
    if not isinstance(overrides, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="mapping must be a JSON object")
    return overrides


def _open_session(target: ImportTarget, text: str) -> ImportSession:
    try:
        return ImportSession(
            target,
            text,
            strict=settings.IMPORT_STRICT_ROWS,
            lookahead=settings.IMPORT_HEADER_LOOKAHEAD,
        )
    except MalformedInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _apply_mapping(session: ImportSession, mapping: str | None) -> None:
    """Apply the user's manual column choices on top of the proposed mapping."""
    try:
        session.apply_overrides(_parse_mapping(mapping))
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Unknown field {exc}")
    except DataImportError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


def _to_response(outcome: ImportOutcome) -> ImportResponse:
    return ImportResponse(
        success=outcome.success,
        success_count=outcome.inserted_count,
        error_count=outcome.error_count,
        errors=[
            ImportRowError(row=e.row_number, message=e.message, raw=dict(e.raw_row))
            for e in outcome.errors
        ],
        message=outcome.summary,
        cancelled=outcome.cancelled,
    )


# ─── POST /import/backup ───

@router.post("/backup", response_model=RestoreResponse, summary="Restore a full JSON backup")
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def restore_from_backup(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_session)],
    owner_id: Annotated[uuid.UUID, Depends(get_current_owner_id)],
    file: UploadFile = File(...),
    batch_size: int | None = Form(default=None, ge=1),
):
    text = await _read_upload(file)
    try:
        envelope = parse_backup(text)
    except MalformedInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    outcomes = await restore_backup(
        envelope, build_stores(db, owner_id), batch_size or settings.IMPORT_BATCH_SIZE,
    )
    results = {name: _to_response(o) for name, o in outcomes.items()}
    inserted = sum(o.inserted_count for o in outcomes.values())
    failed = sum(o.error_count for o in outcomes.values())

    await audit_svc.log_async(
        db,
        action="backup.restored",
        entity_type="backup",
        actor_id=owner_id,
        after={name: {"inserted": o.inserted_count, "errors": o.error_count} for name, o in outcomes.items()},
        ip_address=get_remote_address(request),
    )
    await db.commit()

    logger.info("Backup restored for %s: %d inserted, %d failed", owner_id, inserted, failed)
    return RestoreResponse(
        success=inserted > 0 or (bool(outcomes) and failed == 0),
        version=envelope.version,
        export_date=envelope.exported_at,
        results=results,
        message=f"{inserted} imported, {failed} failed",
    )


# ─── POST /import/{target}/preview ───

@router.post("/{target}/preview", response_model=PreviewResponse, summary="Parse an upload and propose a column mapping")
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def preview_import(
    request: Request,
    target: str,
    owner_id: Annotated[uuid.UUID, Depends(get_current_owner_id)],
    file: UploadFile = File(...),
    mapping: str | None = Form(default=None),
):
    spec = _target_or_404(target)
    session = _open_session(spec, await _read_upload(file))
    _apply_mapping(session, mapping)

    return PreviewResponse(
        target=spec.name,
        headers=list(session.headers),
        fields=[
            FieldInfo(key=f.key, label=f.label, required=f.required, kind=f.kind.value)
            for f in spec.fields
        ],
        mapping=session.mapping.as_dict(),
        missing_required=[f.label for f in session.mapping.missing_required()],
        rows=[PreviewRow(**row) for row in session.preview(settings.IMPORT_PREVIEW_ROWS)],
        total_rows=session.total_rows,
        skipped_rows=len(session.table.issues),
    )


# ─── POST /import/{target} ───

@router.post("/{target}", response_model=ImportResponse, summary="Import an uploaded file into a target")
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def run_target_import(
    request: Request,
    target: str,
    db: Annotated[AsyncSession, Depends(get_session)],
    owner_id: Annotated[uuid.UUID, Depends(get_current_owner_id)],
    file: UploadFile = File(...),
    mapping: str | None = Form(default=None),
    batch_size: int | None = Form(default=None, ge=1),
):
    spec = _target_or_404(target)
    session = _open_session(spec, await _read_upload(file))
    _apply_mapping(session, mapping)
    try:
        outcome = await session.commit(
            build_store(db, spec.name, owner_id), batch_size or settings.IMPORT_BATCH_SIZE,
        )
    except MissingRequiredFieldError as exc:
        logger.info("Import of %s refused: %s", spec.name, exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    await audit_svc.log_async(
        db,
        action="import.completed",
        entity_type=spec.name,
        actor_id=owner_id,
        after={
            "file": file.filename,
            "total": outcome.total,
            "inserted": outcome.inserted_count,
            "errors": outcome.error_count,
        },
        ip_address=get_remote_address(request),
    )
    await db.commit()

    return _to_response(outcome)
