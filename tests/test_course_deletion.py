import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from syllabus_app.config import settings
from syllabus_app.core.event_bus import EventBus
from syllabus_app.db import Base
from syllabus_app.models import (
    AccessContext,
    AuthUser,
    Course,
    CourseEnrollment,
    StoredFile,
    Syllabus as SyllabusRow,
    SyllabusAccessType,
)
from syllabus_app.schemas import SyllabusSaveData
from syllabus_app.services.access_service import AccessEvaluator, get_course_context
from syllabus_app.services.course_service import EVENT_COURSE_DELETED, create_course, delete_course
from syllabus_app.services.event_service import build_event_bus
from syllabus_app.services.file_storage_service import save_draft_file
from syllabus_app.services.syllabus_service import EVENT_SYLLABUS_DELETED, SyllabusManager


class CourseDeletionTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_course_deletion.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)
        cls._orig_storage_dir = settings.file_storage_dir
        settings.file_storage_dir = str(Path(cls._tmpdir.name) / 'filedir')

    @classmethod
    def tearDownClass(cls):
        settings.file_storage_dir = cls._orig_storage_dir
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        for table in (StoredFile, SyllabusRow, CourseEnrollment, AccessContext, Course, AuthUser):
            self.db.query(table).delete()
        self.db.commit()

        self.teacher = AuthUser(email='teacher@example.com', role='teacher')
        self.db.add(self.teacher)
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def _course_with_syllabi(self, name):
        course = create_course(self.db, name=name)
        self.db.add(CourseEnrollment(course_id=course.id, user_id=self.teacher.id, role='teacher'))
        self.db.commit()
        access = AccessEvaluator(self.db, {'user_id': self.teacher.id, 'role': 'teacher'})
        manager = SyllabusManager(self.db, course, access, EventBus())
        draft = save_draft_file(self.db, user_id=self.teacher.id, filename=f'{name}.pdf', content=name.encode('utf-8'))
        manager.save(
            SyllabusSaveData(
                course_id=course.id,
                display_name='Private syllabus',
                access_type=SyllabusAccessType.PRIVATE,
                draft_item_id=draft.item_id,
            )
        )
        manager.save(
            SyllabusSaveData(
                course_id=course.id,
                display_name='Public syllabus',
                access_type=SyllabusAccessType.PUBLIC,
                url='https://example.com/public',
            )
        )
        return course

    def test_deleting_course_removes_syllabi_and_files(self):
        course = self._course_with_syllabi('Algebra')
        kept = self._course_with_syllabi('Geometry')
        course_id = course.id
        context_id = get_course_context(self.db, course_id).id

        seen = []
        events = build_event_bus(self.db)
        events.subscribe('*', seen.append)

        self.assertTrue(delete_course(self.db, course_id, events))

        self.assertIsNone(get_course_context(self.db, course_id))
        self.assertEqual(self.db.query(SyllabusRow).filter(SyllabusRow.course_id == course_id).count(), 0)
        self.assertEqual(self.db.query(StoredFile).filter(StoredFile.context_id == context_id).count(), 0)
        self.assertEqual(self.db.query(SyllabusRow).filter(SyllabusRow.course_id == kept.id).count(), 2)

        deleted = [event for event in seen if event['event_name'] == EVENT_SYLLABUS_DELETED]
        self.assertEqual(len(deleted), 2)
        self.assertEqual({event['course_id'] for event in deleted}, {course_id})
        self.assertEqual(
            sorted(event['access_type'] for event in deleted),
            [SyllabusAccessType.PUBLIC, SyllabusAccessType.PRIVATE],
        )
        self.assertIn(EVENT_COURSE_DELETED, [event['event_name'] for event in seen])

    def test_deleting_missing_course_is_noop(self):
        seen = []
        events = build_event_bus(self.db)
        events.subscribe('*', seen.append)

        self.assertFalse(delete_course(self.db, 424242, events))
        self.assertEqual(seen, [])


if __name__ == '__main__':
    unittest.main()
