"""Export endpoints: per-entity CSV/JSON downloads and the full JSON backup."""
import logging
import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import get_current_owner_id
from app.db.session import get_session
from app.exports.serializer import (
    FORMATS,
    JSON,
    build_backup_envelope,
    dump_json,
    export_filename,
    media_type,
    serialize,
)
from app.imports.fields import get_target
from app.services.export_source import fetch_records, gather_backup

logger = logging.getLogger(__name__)

router = APIRouter()


def _download(body: bytes, fmt: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type=media_type(fmt),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ─── GET /export ───

@router.get("", summary="Download a full JSON backup")
async def export_backup(
    db: Annotated[AsyncSession, Depends(get_session)],
    owner_id: Annotated[uuid.UUID, Depends(get_current_owner_id)],
):
    sections = await gather_backup(db, owner_id)
    envelope = build_backup_envelope(sections, version=settings.EXPORT_FORMAT_VERSION)
    filename = export_filename(None, JSON, date.today(), settings.EXPORT_PRODUCT_SLUG)
    return _download(dump_json(envelope), JSON, filename)


# ─── GET /export/{entity} ───

@router.get("/{entity}", summary="Download one entity as CSV or JSON, or an empty template")
async def export_entity(
    entity: str,
    db: Annotated[AsyncSession, Depends(get_session)],
    owner_id: Annotated[uuid.UUID, Depends(get_current_owner_id)],
    format: str = Query(default="csv"),
    template: bool = Query(default=False),
):
    if format not in FORMATS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"format must be one of: {', '.join(FORMATS)}",
        )
    try:
        target = get_target(entity)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown entity '{entity}'")

    records = [] if template else await fetch_records(db, entity, owner_id)
    body = serialize(records, target.fields, format, template=template, entity=entity)

    name = f"template_{entity}" if template else entity
    filename = export_filename(name, format, date.today(), settings.EXPORT_PRODUCT_SLUG)
    logger.info("Export %s (%s) for %s: %d rows", entity, format, owner_id, len(records))
    return _download(body, format, filename)
