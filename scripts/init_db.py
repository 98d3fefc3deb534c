from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from syllabus_app.config import settings
from syllabus_app.db import Base, SessionLocal, engine
from syllabus_app.models import AuthUser, Course, Role
from syllabus_app.services.auth_service import create_user, issue_session_token
from syllabus_app.services.course_service import create_course, enroll_user


SAMPLE_USERS = (
    ('admin@example.com', Role.ADMIN.value),
    ('teacher@example.com', Role.TEACHER.value),
    ('student@example.com', Role.STUDENT.value),
    ('guest@example.com', Role.GUEST.value),
)


Base.metadata.create_all(bind=engine)
Path(settings.file_storage_dir).mkdir(parents=True, exist_ok=True)

db = SessionLocal()
try:
    if not db.query(Course).first():
        course = create_course(db, name='Introduction to Biology', short_name='BIO101')
        users = {}
        for email, role in SAMPLE_USERS:
            users[role] = db.query(AuthUser).filter(AuthUser.email == email).first() or create_user(db, email=email, role=role)
        enroll_user(db, course_id=course.id, user_id=users[Role.TEACHER.value].id, role=Role.TEACHER.value)
        enroll_user(db, course_id=course.id, user_id=users[Role.STUDENT.value].id, role=Role.STUDENT.value)

    for user in db.query(AuthUser).order_by(AuthUser.id.asc()).all():
        print(f"{user.role:<8} {user.email:<24} {issue_session_token(user)['token']}")
finally:
    db.close()

print('DB initialized with sample data.')
