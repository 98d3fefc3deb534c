from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from syllabus_app.core.event_bus import EventBus
from syllabus_app.models import AccessContext, AuthUser, ContextLevel, Course, CourseEnrollment, Role
from syllabus_app.services.access_service import get_course_context


EVENT_COURSE_DELETED = 'course_deleted'

logger = logging.getLogger(__name__)


def create_course(db: Session, *, name: str, short_name: str = '', max_bytes: int = 0) -> Course:
    course = Course(name=(name or '').strip(), short_name=(short_name or '').strip(), max_bytes=int(max_bytes or 0))
    db.add(course)
    db.flush()
    db.add(AccessContext(level=ContextLevel.COURSE.value, instance_id=course.id))
    db.commit()
    db.refresh(course)
    logger.info('course_created course_id=%s', course.id)
    return course


def get_course(db: Session, course_id: int) -> Course | None:
    return db.query(Course).filter(Course.id == int(course_id)).first()


def enroll_user(db: Session, *, course_id: int, user_id: int, role: str = Role.STUDENT.value) -> CourseEnrollment:
    if get_course(db, course_id) is None:
        raise ValueError('Course not found')
    if db.query(AuthUser.id).filter(AuthUser.id == int(user_id)).first() is None:
        raise ValueError('User not found')

    row = (
        db.query(CourseEnrollment)
        .filter(CourseEnrollment.course_id == int(course_id), CourseEnrollment.user_id == int(user_id))
        .first()
    )
    if row is None:
        row = CourseEnrollment(course_id=int(course_id), user_id=int(user_id))
        db.add(row)
    row.role = role
    row.active = True
    db.commit()
    db.refresh(row)
    return row


def delete_course(db: Session, course_id: int, events: EventBus) -> bool:
    course = get_course(db, course_id)
    if course is None:
        return False

    context = get_course_context(db, course.id)
    context_id = context.id if context else None
    if context is not None:
        db.delete(context)
    db.delete(course)
    db.commit()
    logger.info('course_deleted course_id=%s context_id=%s', course_id, context_id)

    events.emit(EVENT_COURSE_DELETED, {'course_id': int(course_id), 'context_id': context_id})
    return True


def serialize_course(course: Course) -> dict:
    return {
        'id': course.id,
        'name': course.name,
        'short_name': course.short_name,
        'max_bytes': course.max_bytes,
        'created_at': course.created_at.isoformat() if course.created_at else None,
    }
