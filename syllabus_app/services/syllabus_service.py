from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from urllib.parse import quote

from markupsafe import Markup
from sqlalchemy.orm import Session

from syllabus_app.config import settings
from syllabus_app.core.event_bus import EventBus
from syllabus_app.core.time_provider import TimeProvider, default_time_provider, naive_utc
from syllabus_app.models import AccessContext, Course, StoredFile, Syllabus as SyllabusRow, SyllabusAccessType, SyllabusKind
from syllabus_app.schemas import SyllabusSaveData
from syllabus_app.services.access_service import MANAGE_SYLLABUS, AccessEvaluator, get_context, get_course_context
from syllabus_app.services.file_storage_service import commit_draft_area, delete_stored_file, get_area_files


SYLLABUS_COMPONENT = 'local_syllabus'
SYLLABUS_FILEAREA = 'syllabus'

EVENT_SYLLABUS_ADDED = 'syllabus_added'
EVENT_SYLLABUS_UPDATED = 'syllabus_updated'
EVENT_SYLLABUS_DELETED = 'syllabus_deleted'

NEEDS_SETUP_LABEL = 'Syllabus (needs setup)'

ACCESS_TYPE_KINDS: dict[int, SyllabusKind] = {
    SyllabusAccessType.PUBLIC: SyllabusKind.PUBLIC,
    SyllabusAccessType.LOGGED_IN: SyllabusKind.PUBLIC,
    SyllabusAccessType.PRIVATE: SyllabusKind.PRIVATE,
}
PUBLIC_ACCESS_TYPES = (SyllabusAccessType.PUBLIC.value, SyllabusAccessType.LOGGED_IN.value)

logger = logging.getLogger(__name__)


class SyllabusError(ValueError):
    """Base class for syllabus errors surfaced to the caller."""


class SyllabusNotFoundError(SyllabusError):
    """The syllabus id does not exist."""


class SyllabusMismatchError(SyllabusError):
    """The syllabus belongs to a different course."""


class SyllabusConvertError(SyllabusError):
    """The syllabus cannot change kind."""


class SyllabusStorageError(SyllabusError):
    """The record store did not persist the syllabus."""


def syllabus_kind(access_type: int) -> SyllabusKind | None:
    try:
        return ACCESS_TYPE_KINDS.get(SyllabusAccessType(int(access_type)))
    except ValueError:
        return None


@dataclass
class Syllabus:
    """One syllabus row plus its lazily located file."""

    db: Session = field(repr=False, compare=False)
    id: int
    course_id: int
    display_name: str
    access_type: int
    is_preview: bool = False
    url: str = ''
    created_at: datetime | None = None
    updated_at: datetime | None = None
    _stored_file: StoredFile | None = field(default=None, init=False, repr=False, compare=False)
    _file_resolved: bool = field(default=False, init=False, repr=False, compare=False)

    @classmethod
    def from_row(cls, db: Session, row: SyllabusRow) -> 'Syllabus':
        return cls(
            db=db,
            id=row.id,
            course_id=row.course_id,
            display_name=row.display_name,
            access_type=int(row.access_type),
            is_preview=bool(row.is_preview),
            url=row.url or '',
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @classmethod
    def load(cls, db: Session, syllabus_id: int) -> 'Syllabus':
        row = db.query(SyllabusRow).filter(SyllabusRow.id == int(syllabus_id or 0)).first()
        if row is None:
            raise SyllabusNotFoundError(f'Syllabus {syllabus_id} does not exist')
        return cls.from_row(db, row)

    @property
    def kind(self) -> SyllabusKind | None:
        return syllabus_kind(self.access_type)

    @property
    def stored_file(self) -> StoredFile | None:
        if not self._file_resolved:
            self._stored_file = self._locate_file()
            self._file_resolved = True
        return self._stored_file

    def _locate_file(self) -> StoredFile | None:
        if not self.id or not self.course_id:
            return None
        context = get_course_context(self.db, self.course_id)
        files = []
        if context is not None:
            files = get_area_files(self.db, context.id, SYLLABUS_COMPONENT, SYLLABUS_FILEAREA, self.id)

        if not files:
            if not self.url:
                logger.warning('syllabus_file_missing syllabus_id=%s course_id=%s', self.id, self.course_id)
            return None
        if len(files) > 1:
            logger.warning('syllabus_multiple_files syllabus_id=%s count=%s', self.id, len(files))
        return files[0]

    def access_context(self) -> AccessContext | None:
        stored_file = self.stored_file
        if stored_file is not None:
            return get_context(self.db, stored_file.context_id)
        return get_course_context(self.db, self.course_id)

    def can_view(self, access: AccessEvaluator) -> bool:
        policy = _VIEW_POLICIES.get(self.kind)
        if policy is None:
            return False
        return policy(self, access)

    def file_url(self) -> str:
        stored_file = self.stored_file
        if stored_file is None:
            return ''
        base_url = settings.app_base_url.rstrip('/')
        return (
            f'{base_url}/pluginfile/{stored_file.context_id}/{SYLLABUS_COMPONENT}/{SYLLABUS_FILEAREA}'
            f'{stored_file.filepath}{stored_file.item_id}/{quote(stored_file.filename)}'
        )

    def download_link(self) -> str:
        full_url = self.file_url()
        if not full_url:
            return ''
        label = f'Click to download {self.display_name}'
        return Markup('<a href="{}">{}</a>').format(full_url, label)

    def mimetype(self) -> str:
        stored_file = self.stored_file
        if stored_file is None:
            return ''
        return stored_file.mimetype or ''

    def to_dict(self) -> dict:
        stored_file = self.stored_file
        return {
            'id': self.id,
            'course_id': self.course_id,
            'display_name': self.display_name,
            'access_type': self.access_type,
            'kind': self.kind.value if self.kind else None,
            'is_preview': self.is_preview,
            'url': self.url,
            'file_url': self.file_url(),
            'filename': stored_file.filename if stored_file else '',
            'mimetype': self.mimetype(),
            'download_link': self.download_link(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


def _private_can_view(syllabus: Syllabus, access: AccessEvaluator) -> bool:
    context = syllabus.access_context()
    return access.is_enrolled(context) or access.has_capability(MANAGE_SYLLABUS, context)


def _public_can_view(syllabus: Syllabus, access: AccessEvaluator) -> bool:
    if syllabus.access_type == SyllabusAccessType.PUBLIC:
        return True
    if syllabus.access_type == SyllabusAccessType.LOGGED_IN:
        return access.is_authenticated() and not access.is_guest()
    return False


_VIEW_POLICIES: dict[SyllabusKind, Callable[[Syllabus, AccessEvaluator], bool]] = {
    SyllabusKind.PUBLIC: _public_can_view,
    SyllabusKind.PRIVATE: _private_can_view,
}


def max_upload_bytes(course_max_bytes: int) -> int:
    site_limit = int(settings.max_upload_bytes or 0)
    course_limit = int(course_max_bytes or 0)
    limits = [limit for limit in (site_limit, course_limit) if limit > 0]
    return min(limits) if limits else 0


class SyllabusManager:
    """Per-course entry point for reading and changing syllabi."""

    def __init__(
        self,
        db: Session,
        course: Course,
        access: AccessEvaluator,
        events: EventBus,
        *,
        time_provider: TimeProvider = default_time_provider,
    ) -> None:
        self.db = db
        self.course_id = int(course.id)
        self.access = access
        self.events = events
        self._time_provider = time_provider
        self._filemanager_config = {
            'subdirs': False,
            'maxbytes': max_upload_bytes(course.max_bytes),
            'maxfiles': 1,
            'accepted_types': ['*'],
        }

    def _now(self) -> datetime:
        return naive_utc(self._time_provider.now())

    def _course_context(self) -> AccessContext | None:
        return get_course_context(self.db, self.course_id)

    def can_manage(self) -> bool:
        return self.access.has_capability(MANAGE_SYLLABUS, self._course_context())

    def filemanager_config(self) -> dict:
        return dict(self._filemanager_config)

    def get_syllabi(self) -> dict[SyllabusKind, Syllabus | None]:
        result: dict[SyllabusKind, Syllabus | None] = {
            SyllabusKind.PUBLIC: None,
            SyllabusKind.PRIVATE: None,
        }
        rows = (
            self.db.query(SyllabusRow)
            .filter(SyllabusRow.course_id == self.course_id)
            .order_by(SyllabusRow.id.asc())
            .all()
        )
        for row in rows:
            kind = syllabus_kind(row.access_type)
            if kind is not None:
                result[kind] = Syllabus.from_row(self.db, row)
        return result

    def has_syllabus(self) -> bool:
        return (
            self.db.query(SyllabusRow.id)
            .filter(SyllabusRow.course_id == self.course_id)
            .first()
            is not None
        )

    @staticmethod
    def has_public_syllabus(db: Session, course_id: int) -> int | None:
        row = (
            db.query(SyllabusRow.id)
            .filter(
                SyllabusRow.course_id == int(course_id),
                SyllabusRow.access_type.in_(PUBLIC_ACCESS_TYPES),
            )
            .order_by(SyllabusRow.id.asc())
            .first()
        )
        return int(row.id) if row else None

    @staticmethod
    def has_private_syllabus(db: Session, course_id: int) -> int | None:
        row = (
            db.query(SyllabusRow.id)
            .filter(
                SyllabusRow.course_id == int(course_id),
                SyllabusRow.access_type == SyllabusAccessType.PRIVATE.value,
            )
            .order_by(SyllabusRow.id.asc())
            .first()
        )
        return int(row.id) if row else None

    @staticmethod
    def instance(db: Session, syllabus_id: int) -> Syllabus | None:
        row = db.query(SyllabusRow).filter(SyllabusRow.id == int(syllabus_id or 0)).first()
        if row is None or syllabus_kind(row.access_type) is None:
            return None
        return Syllabus.from_row(db, row)

    def save(self, data: SyllabusSaveData) -> int:
        """Insert or update a syllabus, then attach any pending upload.

        An ``entry_id`` selects the update path and must name a syllabus of
        this course. The draft area, when given, always replaces the files of
        the saved syllabus.
        """
        if int(data.course_id) != self.course_id:
            raise SyllabusMismatchError('Syllabus does not belong to this course')

        now = self._now()
        url = data.url or None
        if data.entry_id is not None:
            row = (
                self.db.query(SyllabusRow)
                .filter(SyllabusRow.id == int(data.entry_id), SyllabusRow.course_id == self.course_id)
                .first()
            )
            if row is None:
                raise SyllabusMismatchError('Syllabus does not belong to this course')
            row.display_name = data.display_name
            row.access_type = int(data.access_type)
            row.is_preview = bool(data.is_preview)
            row.url = url
            row.updated_at = now
            self.db.commit()
            record_id = int(row.id)
            event_name = EVENT_SYLLABUS_UPDATED
        else:
            row = SyllabusRow(
                course_id=self.course_id,
                display_name=data.display_name,
                access_type=int(data.access_type),
                is_preview=bool(data.is_preview),
                url=url,
                created_at=now,
                updated_at=now,
            )
            self.db.add(row)
            self.db.commit()
            if not row.id:
                raise SyllabusStorageError('Could not create syllabus entry')
            record_id = int(row.id)
            event_name = EVENT_SYLLABUS_ADDED

        if data.draft_item_id:
            context = self._course_context()
            if context is None:
                raise SyllabusStorageError(f'Course {self.course_id} has no context for file storage')
            commit_draft_area(
                self.db,
                draft_item_id=int(data.draft_item_id),
                user_id=self.access.user_id,
                context_id=context.id,
                component=SYLLABUS_COMPONENT,
                area=SYLLABUS_FILEAREA,
                item_id=record_id,
                config=self._filemanager_config,
            )

        logger.info(
            'syllabus_saved syllabus_id=%s course_id=%s access_type=%s event=%s',
            record_id,
            self.course_id,
            int(data.access_type),
            event_name,
        )
        self.events.emit(
            event_name,
            {
                'id': record_id,
                'course_id': self.course_id,
                'access_type': int(data.access_type),
            },
        )
        return record_id

    def _assert_owned(self, syllabus: Syllabus | None) -> None:
        if syllabus is None or not syllabus.id:
            raise SyllabusNotFoundError('Syllabus does not exist')
        if int(syllabus.course_id) != self.course_id:
            raise SyllabusMismatchError('Syllabus does not belong to this course')

    def _load_row(self, syllabus: Syllabus) -> SyllabusRow:
        row = self.db.query(SyllabusRow).filter(SyllabusRow.id == syllabus.id).first()
        if row is None:
            raise SyllabusNotFoundError('Syllabus does not exist')
        return row

    def delete(self, syllabus: Syllabus | None) -> None:
        self._assert_owned(syllabus)
        row = self._load_row(syllabus)

        # URL-only syllabi have no file.
        stored_file = syllabus.stored_file
        if stored_file is not None:
            delete_stored_file(self.db, stored_file)
        access_type = int(row.access_type)
        self.db.delete(row)
        self.db.commit()

        logger.info('syllabus_deleted syllabus_id=%s course_id=%s', syllabus.id, self.course_id)
        self.events.emit(
            EVENT_SYLLABUS_DELETED,
            {
                'course_id': self.course_id,
                'access_type': access_type,
            },
        )

    def convert(self, syllabus: Syllabus | None, target: SyllabusKind | SyllabusAccessType | int | str) -> Syllabus:
        self._assert_owned(syllabus)
        row = self._load_row(syllabus)
        old_access_type = int(row.access_type)
        new_access_type = _resolve_target_access_type(target, old_access_type)
        if new_access_type == old_access_type:
            return syllabus

        # Blocks whenever both kinds exist, whichever syllabus is converted.
        if self.has_public_syllabus(self.db, self.course_id) and self.has_private_syllabus(self.db, self.course_id):
            raise SyllabusConvertError('Course already has both a public and a private syllabus')

        row.access_type = new_access_type
        row.updated_at = self._now()
        self.db.commit()

        base = {
            'id': int(row.id),
            'course_id': int(row.course_id),
            'display_name': row.display_name,
            'is_preview': bool(row.is_preview),
            'url': row.url or '',
        }
        logger.info(
            'syllabus_converted syllabus_id=%s course_id=%s from=%s to=%s',
            row.id,
            self.course_id,
            old_access_type,
            new_access_type,
        )
        self.events.emit(EVENT_SYLLABUS_DELETED, {**base, 'access_type': old_access_type})
        self.events.emit(EVENT_SYLLABUS_ADDED, {**base, 'access_type': new_access_type})

        syllabus.access_type = new_access_type
        syllabus.updated_at = row.updated_at
        return syllabus

    def navigation_entry(self, is_editing: bool) -> dict | None:
        label = None
        syllabi = self.get_syllabi()
        private = syllabi[SyllabusKind.PRIVATE]
        public = syllabi[SyllabusKind.PUBLIC]

        if private is not None and private.can_view(self.access):
            label = private.display_name
        elif public is not None and public.can_view(self.access):
            label = public.display_name
        elif self.can_manage() and is_editing:
            label = NEEDS_SETUP_LABEL

        if not label:
            return None
        return {
            'label': label,
            'url': f"{settings.app_base_url.rstrip('/')}/ui/syllabus/{self.course_id}",
        }


def _resolve_target_access_type(target: SyllabusKind | SyllabusAccessType | int | str, current: int) -> int:
    """Map a convert target to an access type.

    A kind that matches the current one keeps the current access type, so a
    logged-in syllabus stays logged-in when asked to become public.
    """
    if isinstance(target, SyllabusKind):
        kind = target
    elif isinstance(target, int):
        try:
            return SyllabusAccessType(target).value
        except ValueError as exc:
            raise SyllabusConvertError(f'Unknown access type {target}') from exc
    else:
        try:
            kind = SyllabusKind(str(target).strip().lower())
        except ValueError as exc:
            raise SyllabusConvertError(f'Unknown syllabus type {target}') from exc
    if kind == syllabus_kind(current):
        return int(current)
    if kind == SyllabusKind.PRIVATE:
        return SyllabusAccessType.PRIVATE.value
    return SyllabusAccessType.PUBLIC.value


def delete_course_syllabi(db: Session, data: dict, events: EventBus) -> int:
    """Remove every syllabus of a deleted course.

    The course and its context row are already gone, so the files are looked
    up by the context id carried in the event.
    """
    course_id = int(data.get('course_id') or 0)
    context_id = int(data.get('context_id') or 0)
    rows = (
        db.query(SyllabusRow)
        .filter(SyllabusRow.course_id == course_id)
        .order_by(SyllabusRow.id.asc())
        .all()
    )
    if not rows:
        return 0

    for row in rows:
        if context_id > 0:
            for stored_file in get_area_files(db, context_id, SYLLABUS_COMPONENT, SYLLABUS_FILEAREA, row.id):
                delete_stored_file(db, stored_file)
        access_type = int(row.access_type)
        db.delete(row)
        db.commit()

        events.emit(
            EVENT_SYLLABUS_DELETED,
            {
                'course_id': course_id,
                'access_type': access_type,
            },
        )
    logger.info('course_syllabi_deleted course_id=%s count=%s', course_id, len(rows))
    return len(rows)
