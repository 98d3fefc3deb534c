from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from syllabus_app.core.event_bus import EventBus
from syllabus_app.services.course_service import EVENT_COURSE_DELETED
from syllabus_app.services.syllabus_service import delete_course_syllabi


logger = logging.getLogger('syllabus_app.events')


def log_event(data: dict) -> None:
    logger.info(
        'event name=%s course_id=%s syllabus_id=%s access_type=%s',
        data.get('event_name'),
        data.get('course_id'),
        data.get('id'),
        data.get('access_type'),
    )


def build_event_bus(db: Session) -> EventBus:
    events = EventBus()
    events.subscribe('*', log_event)
    events.subscribe(EVENT_COURSE_DELETED, lambda data: delete_course_syllabi(db, data, events))
    return events
