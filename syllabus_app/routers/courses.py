from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from syllabus_app.core.router_guard import require_auth_user, require_role
from syllabus_app.db import get_db
from syllabus_app.models import Role
from syllabus_app.route_logging import EndpointNameRoute
from syllabus_app.schemas import CourseCreateRequest, EnrollmentRequest
from syllabus_app.services.course_service import create_course, delete_course, enroll_user, get_course, serialize_course
from syllabus_app.services.event_service import build_event_bus


router = APIRouter(prefix='/api/courses', tags=['Courses'], route_class=EndpointNameRoute)


def _require_admin(request: Request) -> dict:
    user = require_auth_user(request)
    require_role(user, {Role.ADMIN.value})
    return user


@router.post('')
def create_course_endpoint(
    payload: CourseCreateRequest,
    _: dict = Depends(_require_admin),
    db: Session = Depends(get_db),
):
    course = create_course(db, name=payload.name, short_name=payload.short_name, max_bytes=payload.max_bytes)
    return serialize_course(course)


@router.get('/{course_id}')
def get_course_endpoint(course_id: int, db: Session = Depends(get_db)):
    course = get_course(db, course_id)
    if course is None:
        raise HTTPException(status_code=404, detail='Course not found')
    return serialize_course(course)


@router.post('/{course_id}/enrollments')
def enroll_user_endpoint(
    course_id: int,
    payload: EnrollmentRequest,
    _: dict = Depends(_require_admin),
    db: Session = Depends(get_db),
):
    try:
        row = enroll_user(db, course_id=course_id, user_id=payload.user_id, role=payload.role)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {'ok': True, 'course_id': row.course_id, 'user_id': row.user_id, 'role': row.role}


@router.delete('/{course_id}')
def delete_course_endpoint(
    course_id: int,
    _: dict = Depends(_require_admin),
    db: Session = Depends(get_db),
):
    if not delete_course(db, course_id, build_event_bus(db)):
        raise HTTPException(status_code=404, detail='Course not found')
    return {'ok': True, 'id': course_id}
