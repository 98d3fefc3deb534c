from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from syllabus_app.core.router_guard import get_session_user
from syllabus_app.db import get_db
from syllabus_app.models import SyllabusKind
from syllabus_app.route_logging import EndpointNameRoute
from syllabus_app.services.access_service import AccessEvaluator
from syllabus_app.services.course_service import get_course
from syllabus_app.services.event_service import build_event_bus
from syllabus_app.services.syllabus_service import SyllabusManager


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / 'ui' / 'templates'))
router = APIRouter(prefix='/ui/syllabus', tags=['UI Syllabus'], route_class=EndpointNameRoute)


@router.get('/{course_id}')
def syllabus_page(
    course_id: int,
    request: Request,
    editing: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    course = get_course(db, course_id)
    if course is None:
        raise HTTPException(status_code=404, detail='Course not found')
    access = AccessEvaluator(db, get_session_user(request))
    manager = SyllabusManager(db, course, access, build_event_bus(db))

    syllabi = manager.get_syllabi()
    # Private before public.
    visible = [
        syllabi[kind]
        for kind in (SyllabusKind.PRIVATE, SyllabusKind.PUBLIC)
        if syllabi[kind] is not None and syllabi[kind].can_view(access)
    ]
    can_manage = manager.can_manage()
    if not visible and not can_manage:
        raise HTTPException(status_code=403, detail='Forbidden')

    return templates.TemplateResponse(
        request,
        'syllabus.html',
        {
            'course': course,
            'syllabi': visible,
            'can_manage': can_manage,
            'editing': editing and can_manage,
            'navigation': manager.navigation_entry(editing),
        },
    )
