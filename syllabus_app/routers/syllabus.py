from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from syllabus_app.core.router_guard import get_session_user
from syllabus_app.db import get_db
from syllabus_app.models import SyllabusKind
from syllabus_app.route_logging import EndpointNameRoute
from syllabus_app.schemas import SyllabusConvertRequest, SyllabusSaveData, SyllabusSaveRequest
from syllabus_app.services.access_service import AccessEvaluator
from syllabus_app.services.course_service import get_course
from syllabus_app.services.event_service import build_event_bus
from syllabus_app.services.file_storage_service import FileStorageError
from syllabus_app.services.syllabus_service import (
    Syllabus,
    SyllabusConvertError,
    SyllabusError,
    SyllabusManager,
    SyllabusMismatchError,
    SyllabusNotFoundError,
    SyllabusStorageError,
)


router = APIRouter(prefix='/api/courses/{course_id}/syllabi', tags=['Syllabus'], route_class=EndpointNameRoute)
logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    SyllabusNotFoundError: 404,
    SyllabusMismatchError: 403,
    SyllabusConvertError: 409,
    SyllabusStorageError: 500,
}


def _http_error(exc: SyllabusError | FileStorageError) -> HTTPException:
    if isinstance(exc, FileStorageError):
        return HTTPException(status_code=400, detail=str(exc))
    status_code = _ERROR_STATUS.get(type(exc), 400)
    return HTTPException(status_code=status_code, detail=str(exc) or 'Syllabus error')


def get_manager(course_id: int, request: Request, db: Session = Depends(get_db)) -> SyllabusManager:
    course = get_course(db, course_id)
    if course is None:
        raise HTTPException(status_code=404, detail='Course not found')
    access = AccessEvaluator(db, get_session_user(request))
    return SyllabusManager(db, course, access, build_event_bus(db))


def _require_manage(manager: SyllabusManager) -> None:
    if not manager.can_manage():
        raise HTTPException(status_code=403, detail='Forbidden')


def _load_for_course(manager: SyllabusManager, syllabus_id: int) -> Syllabus:
    syllabus = SyllabusManager.instance(manager.db, syllabus_id)
    if syllabus is None or syllabus.course_id != manager.course_id:
        raise HTTPException(status_code=404, detail='Syllabus not found')
    return syllabus


@router.get('')
def list_syllabi(manager: SyllabusManager = Depends(get_manager)):
    syllabi = manager.get_syllabi()
    visible = {}
    for kind in (SyllabusKind.PUBLIC, SyllabusKind.PRIVATE):
        syllabus = syllabi[kind]
        visible[kind.value] = syllabus.to_dict() if syllabus and syllabus.can_view(manager.access) else None
    return {
        'course_id': manager.course_id,
        'can_manage': manager.can_manage(),
        'has_syllabus': manager.has_syllabus(),
        'syllabi': visible,
    }


@router.get('/navigation')
def navigation_entry(
    editing: bool = Query(default=False),
    manager: SyllabusManager = Depends(get_manager),
):
    return {'node': manager.navigation_entry(editing)}


@router.get('/filemanager-config')
def filemanager_config(manager: SyllabusManager = Depends(get_manager)):
    _require_manage(manager)
    return manager.filemanager_config()


@router.post('')
def save_syllabus(payload: SyllabusSaveRequest, manager: SyllabusManager = Depends(get_manager)):
    _require_manage(manager)
    data = SyllabusSaveData(course_id=manager.course_id, **payload.model_dump())
    try:
        record_id = manager.save(data)
    except (SyllabusError, FileStorageError) as exc:
        raise _http_error(exc) from exc
    return {
        'ok': True,
        'id': record_id,
        'syllabus': Syllabus.load(manager.db, record_id).to_dict(),
    }


@router.get('/{syllabus_id}')
def get_syllabus(syllabus_id: int, manager: SyllabusManager = Depends(get_manager)):
    syllabus = _load_for_course(manager, syllabus_id)
    if not syllabus.can_view(manager.access):
        raise HTTPException(status_code=403, detail='Forbidden')
    return syllabus.to_dict()


@router.delete('/{syllabus_id}')
def delete_syllabus(syllabus_id: int, manager: SyllabusManager = Depends(get_manager)):
    _require_manage(manager)
    syllabus = _load_for_course(manager, syllabus_id)
    try:
        manager.delete(syllabus)
    except SyllabusError as exc:
        raise _http_error(exc) from exc
    return {'ok': True, 'id': syllabus_id}


@router.post('/{syllabus_id}/convert')
def convert_syllabus(
    syllabus_id: int,
    payload: SyllabusConvertRequest,
    manager: SyllabusManager = Depends(get_manager),
):
    _require_manage(manager)
    syllabus = _load_for_course(manager, syllabus_id)
    try:
        converted = manager.convert(syllabus, SyllabusKind(payload.target))
    except SyllabusError as exc:
        raise _http_error(exc) from exc
    return {'ok': True, 'syllabus': converted.to_dict()}
