from __future__ import annotations

from sqlalchemy.orm import Session

from syllabus_app.models import AccessContext, ContextLevel, CourseEnrollment, Role


MANAGE_SYLLABUS = 'local/syllabus:managesyllabus'

ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    Role.TEACHER.value: frozenset({MANAGE_SYLLABUS}),
    Role.STUDENT.value: frozenset(),
}


def get_course_context(db: Session, course_id: int) -> AccessContext | None:
    return (
        db.query(AccessContext)
        .filter(
            AccessContext.level == ContextLevel.COURSE.value,
            AccessContext.instance_id == int(course_id),
        )
        .first()
    )


def get_or_create_user_context(db: Session, user_id: int) -> AccessContext:
    row = (
        db.query(AccessContext)
        .filter(
            AccessContext.level == ContextLevel.USER.value,
            AccessContext.instance_id == int(user_id),
        )
        .first()
    )
    if row:
        return row
    row = AccessContext(level=ContextLevel.USER.value, instance_id=int(user_id))
    db.add(row)
    db.flush()
    return row


def get_context(db: Session, context_id: int) -> AccessContext | None:
    return db.query(AccessContext).filter(AccessContext.id == int(context_id)).first()


class AccessEvaluator:
    """Answers permission questions for one principal within one request.

    ``user`` is the session dict produced by ``validate_session_token`` or
    ``None`` for an anonymous visitor.
    """

    def __init__(self, db: Session, user: dict | None) -> None:
        self._db = db
        self._user = user or {}

    @property
    def user_id(self) -> int:
        return int(self._user.get('user_id') or 0)

    @property
    def role(self) -> str:
        return str(self._user.get('role') or '').strip().lower()

    def is_authenticated(self) -> bool:
        return self.user_id > 0

    def is_guest(self) -> bool:
        return self.role == Role.GUEST.value

    def is_admin(self) -> bool:
        return self.is_authenticated() and self.role == Role.ADMIN.value

    def _enrollment(self, context: AccessContext | None) -> CourseEnrollment | None:
        if context is None or context.level != ContextLevel.COURSE.value:
            return None
        if not self.is_authenticated() or self.is_guest():
            return None
        return (
            self._db.query(CourseEnrollment)
            .filter(
                CourseEnrollment.course_id == context.instance_id,
                CourseEnrollment.user_id == self.user_id,
                CourseEnrollment.active.is_(True),
            )
            .first()
        )

    def is_enrolled(self, context: AccessContext | None) -> bool:
        return self._enrollment(context) is not None

    def has_capability(self, capability: str, context: AccessContext | None) -> bool:
        if context is None:
            return False
        if self.is_admin():
            return True
        enrollment = self._enrollment(context)
        if enrollment is None:
            return False
        return capability in ROLE_CAPABILITIES.get(enrollment.role, frozenset())
