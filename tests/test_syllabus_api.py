import tempfile
import unittest
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from syllabus_app.config import settings
from syllabus_app.db import Base, get_db
from syllabus_app.models import AccessContext, AuthUser, Course, CourseEnrollment, StoredFile, Syllabus as SyllabusRow
from syllabus_app.routers import courses as courses_router
from syllabus_app.routers import files as files_router
from syllabus_app.routers import syllabus as syllabus_router
from syllabus_app.routers import syllabus_ui as syllabus_ui_router
from syllabus_app.services.auth_service import issue_session_token


PDF_BYTES = b'%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n'


class SyllabusApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_syllabus_api.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)
        cls._orig_storage_dir = settings.file_storage_dir
        settings.file_storage_dir = str(Path(cls._tmpdir.name) / 'filedir')

        app = FastAPI()
        app.include_router(courses_router.router)
        app.include_router(syllabus_router.router)
        app.include_router(files_router.router)
        app.include_router(syllabus_ui_router.router)

        def override_get_db():
            db = cls._session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        settings.file_storage_dir = cls._orig_storage_dir
        cls.client.close()
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        db = self._session_factory()
        try:
            for table in (StoredFile, SyllabusRow, CourseEnrollment, AccessContext, Course, AuthUser):
                db.query(table).delete()
            db.commit()

            users = {
                'admin': AuthUser(email='admin@example.com', role='admin'),
                'teacher': AuthUser(email='teacher@example.com', role='teacher'),
                'student': AuthUser(email='student@example.com', role='student'),
                'outsider': AuthUser(email='outsider@example.com', role='student'),
            }
            db.add_all(users.values())
            db.commit()
            self.user_ids = {name: user.id for name, user in users.items()}
            self.tokens = {name: issue_session_token(user)['token'] for name, user in users.items()}
        finally:
            db.close()

        response = self.client.post(
            '/api/courses',
            json={'name': 'Chemistry 101', 'short_name': 'CHEM101'},
            headers=self._auth('admin'),
        )
        self.assertEqual(response.status_code, 200)
        self.course_id = response.json()['id']
        for name in ('teacher', 'student'):
            response = self.client.post(
                f'/api/courses/{self.course_id}/enrollments',
                json={'user_id': self.user_ids[name], 'role': name},
                headers=self._auth('admin'),
            )
            self.assertEqual(response.status_code, 200)

    def _auth(self, name):
        return {'Authorization': f'Bearer {self.tokens[name]}'}

    def _base(self):
        return f'/api/courses/{self.course_id}/syllabi'

    def _upload(self, filename='outline.pdf', content=PDF_BYTES):
        response = self.client.post(
            '/api/files/draft',
            files={'file': (filename, content, 'application/pdf')},
            headers=self._auth('teacher'),
        )
        self.assertEqual(response.status_code, 200)
        return response.json()['draft_item_id']

    def _save(self, **payload):
        return self.client.post(self._base(), json=payload, headers=self._auth('teacher'))

    def test_private_file_syllabus_flow(self):
        draft_item_id = self._upload()
        response = self._save(display_name='Course outline', access_type=3, draft_item_id=draft_item_id)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        syllabus_id = body['id']
        self.assertEqual(body['syllabus']['kind'], 'private')
        self.assertEqual(body['syllabus']['filename'], 'outline.pdf')
        self.assertEqual(body['syllabus']['mimetype'], 'application/pdf')

        listing = self.client.get(self._base(), headers=self._auth('student')).json()
        self.assertTrue(listing['has_syllabus'])
        self.assertFalse(listing['can_manage'])
        self.assertEqual(listing['syllabi']['private']['id'], syllabus_id)
        self.assertIsNone(listing['syllabi']['public'])

        anonymous = self.client.get(self._base()).json()
        self.assertIsNone(anonymous['syllabi']['private'])

        download_path = body['syllabus']['file_url'][len(settings.app_base_url.rstrip('/')):]
        response = self.client.get(download_path, headers=self._auth('student'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, PDF_BYTES)
        self.assertTrue(response.headers['content-disposition'].startswith('attachment'))

        self.assertEqual(self.client.get(download_path, headers=self._auth('outsider')).status_code, 403)
        self.assertEqual(self.client.get(download_path).status_code, 403)
        self.assertEqual(
            self.client.get(f'{self._base()}/{syllabus_id}', headers=self._auth('outsider')).status_code,
            403,
        )

    def test_download_url_encodes_special_filename(self):
        draft_item_id = self._upload(filename='week#1 notes.pdf')
        body = self._save(display_name='Week one', access_type=1, draft_item_id=draft_item_id).json()

        file_url = body['syllabus']['file_url']
        self.assertTrue(file_url.endswith('/week%231%20notes.pdf'))
        self.assertIn(f'href="{file_url}"', body['syllabus']['download_link'])

        response = self.client.get(file_url[len(settings.app_base_url.rstrip('/')):])
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, PDF_BYTES)

    def test_preview_file_is_served_inline(self):
        draft_item_id = self._upload()
        body = self._save(display_name='Outline', access_type=1, is_preview=True, draft_item_id=draft_item_id).json()

        download_path = body['syllabus']['file_url'][len(settings.app_base_url.rstrip('/')):]
        response = self.client.get(download_path)

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers['content-disposition'].startswith('inline'))

    def test_only_managers_can_save(self):
        response = self.client.post(
            self._base(),
            json={'display_name': 'Mine', 'access_type': 1, 'url': 'https://example.com'},
            headers=self._auth('student'),
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.client.get(f'{self._base()}/filemanager-config', headers=self._auth('student')).status_code, 403)

        config = self.client.get(f'{self._base()}/filemanager-config', headers=self._auth('teacher')).json()
        self.assertEqual(config['maxfiles'], 1)
        self.assertFalse(config['subdirs'])

    def test_convert_is_blocked_when_both_kinds_exist(self):
        public_id = self._save(display_name='Overview', access_type=1, url='https://example.com/a').json()['id']
        self._save(display_name='Full', access_type=3, url='https://example.com/b')

        response = self.client.post(
            f'{self._base()}/{public_id}/convert',
            json={'target': 'private'},
            headers=self._auth('teacher'),
        )

        self.assertEqual(response.status_code, 409)

    def test_convert_switches_kind(self):
        public_id = self._save(display_name='Overview', access_type=2, url='https://example.com/a').json()['id']

        response = self.client.post(
            f'{self._base()}/{public_id}/convert',
            json={'target': 'private'},
            headers=self._auth('teacher'),
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['syllabus']['kind'], 'private')
        listing = self.client.get(self._base(), headers=self._auth('teacher')).json()
        self.assertIsNone(listing['syllabi']['public'])
        self.assertEqual(listing['syllabi']['private']['id'], public_id)

    def test_update_with_entry_from_other_course_is_rejected(self):
        other = self.client.post('/api/courses', json={'name': 'Physics'}, headers=self._auth('admin')).json()
        self.client.post(
            f"/api/courses/{other['id']}/enrollments",
            json={'user_id': self.user_ids['teacher'], 'role': 'teacher'},
            headers=self._auth('admin'),
        )
        foreign_id = self.client.post(
            f"/api/courses/{other['id']}/syllabi",
            json={'display_name': 'Physics', 'access_type': 1, 'url': 'https://example.com/p'},
            headers=self._auth('teacher'),
        ).json()['id']

        response = self._save(display_name='Hijack', access_type=1, url='https://x', entry_id=foreign_id)

        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.client.get(f'{self._base()}/{foreign_id}', headers=self._auth('teacher')).status_code, 404)

    def test_navigation_entry(self):
        self.assertEqual(
            self.client.get(f'{self._base()}/navigation', headers=self._auth('student')).json(),
            {'node': None},
        )
        node = self.client.get(
            f'{self._base()}/navigation',
            params={'editing': 'true'},
            headers=self._auth('teacher'),
        ).json()['node']
        self.assertEqual(node['label'], 'Syllabus (needs setup)')

    def test_delete_then_course_removal(self):
        syllabus_id = self._save(display_name='Outline', access_type=3, draft_item_id=self._upload()).json()['id']

        response = self.client.delete(f'{self._base()}/{syllabus_id}', headers=self._auth('teacher'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f'{self._base()}/{syllabus_id}', headers=self._auth('teacher')).status_code, 404)

        self._save(display_name='Again', access_type=1, url='https://example.com')
        self.assertEqual(self.client.delete(f'/api/courses/{self.course_id}', headers=self._auth('teacher')).status_code, 403)
        self.assertEqual(self.client.delete(f'/api/courses/{self.course_id}', headers=self._auth('admin')).status_code, 200)

        self.assertEqual(self.client.get(self._base()).status_code, 404)
        db = self._session_factory()
        try:
            self.assertEqual(db.query(SyllabusRow).count(), 0)
            self.assertEqual(db.query(StoredFile).count(), 0)
        finally:
            db.close()

    def test_syllabus_page_lists_visible_syllabi(self):
        self._save(display_name='<i>Full</i> syllabus', access_type=3, draft_item_id=self._upload())
        self._save(display_name='Overview', access_type=1, url='https://example.com/overview')

        page = self.client.get(f'/ui/syllabus/{self.course_id}', headers=self._auth('student'))
        self.assertEqual(page.status_code, 200)
        self.assertIn('&lt;i&gt;Full&lt;/i&gt; syllabus', page.text)
        self.assertIn('Click to download', page.text)
        self.assertLess(page.text.index('syllabus-private'), page.text.index('syllabus-public'))

        anonymous = self.client.get(f'/ui/syllabus/{self.course_id}')
        self.assertEqual(anonymous.status_code, 200)
        self.assertNotIn('syllabus-private', anonymous.text)
        self.assertIn('Overview', anonymous.text)

    def test_syllabus_page_without_visible_syllabus(self):
        self._save(display_name='Full', access_type=3, url='https://example.com/full')

        self.assertEqual(self.client.get(f'/ui/syllabus/{self.course_id}').status_code, 403)
        page = self.client.get(
            f'/ui/syllabus/{self.course_id}',
            params={'editing': 'true'},
            headers=self._auth('teacher'),
        )
        self.assertEqual(page.status_code, 200)
        self.assertIn('Full', page.text)

    def test_upload_requires_login(self):
        response = self.client.post('/api/files/draft', files={'file': ('a.pdf', PDF_BYTES, 'application/pdf')})
        self.assertEqual(response.status_code, 401)


if __name__ == '__main__':
    unittest.main()
