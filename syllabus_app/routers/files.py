from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from syllabus_app.config import settings
from syllabus_app.core.router_guard import get_session_user, require_auth_user
from syllabus_app.db import get_db
from syllabus_app.route_logging import EndpointNameRoute
from syllabus_app.services.access_service import AccessEvaluator, get_course_context
from syllabus_app.services.file_storage_service import FileStorageError, save_draft_file, stream_file
from syllabus_app.services.syllabus_service import SYLLABUS_COMPONENT, SYLLABUS_FILEAREA, SyllabusManager


router = APIRouter(tags=['Files'], route_class=EndpointNameRoute)
logger = logging.getLogger(__name__)


@router.post('/api/files/draft')
async def upload_draft_file(
    request: Request,
    file: UploadFile = File(...),
    draft_item_id: int | None = Form(default=None),
    db: Session = Depends(get_db),
):
    user = require_auth_user(request)
    content = await file.read()
    max_bytes = int(settings.max_upload_bytes or 0)
    if max_bytes > 0 and len(content) > max_bytes:
        raise HTTPException(status_code=413, detail='File exceeds the maximum upload size')
    try:
        row = save_draft_file(
            db,
            user_id=user['user_id'],
            filename=file.filename or '',
            content=content,
            mimetype=file.content_type if file.content_type not in (None, '', 'application/octet-stream') else None,
            draft_item_id=draft_item_id,
        )
    except FileStorageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        'draft_item_id': row.item_id,
        'filename': row.filename,
        'filesize': row.filesize,
        'mimetype': row.mimetype,
    }


@router.get('/pluginfile/{context_id}/{component}/{area}/{item_id}/{filename}')
def download_syllabus_file(
    context_id: int,
    component: str,
    area: str,
    item_id: int,
    filename: str,
    request: Request,
    db: Session = Depends(get_db),
):
    if component != SYLLABUS_COMPONENT or area != SYLLABUS_FILEAREA:
        raise HTTPException(status_code=404, detail='File not found')

    syllabus = SyllabusManager.instance(db, item_id)
    if syllabus is None:
        raise HTTPException(status_code=404, detail='File not found')
    course_context = get_course_context(db, syllabus.course_id)
    stored_file = syllabus.stored_file
    if (
        course_context is None
        or course_context.id != context_id
        or stored_file is None
        or stored_file.filename != filename
    ):
        raise HTTPException(status_code=404, detail='File not found')

    access = AccessEvaluator(db, get_session_user(request))
    if not syllabus.can_view(access):
        raise HTTPException(status_code=403, detail='Forbidden')

    try:
        payload = stream_file(stored_file)
    except FileStorageError as exc:
        logger.warning('syllabus_file_unreadable syllabus_id=%s error=%s', syllabus.id, exc)
        raise HTTPException(status_code=404, detail='File not found') from exc

    disposition = 'inline' if syllabus.is_preview else 'attachment'
    headers = {
        'Content-Disposition': f"{disposition}; filename*=UTF-8''{quote(payload.filename)}",
        'Content-Length': str(payload.file_size),
    }
    return StreamingResponse(payload.chunks, media_type=payload.mime_type, headers=headers)
