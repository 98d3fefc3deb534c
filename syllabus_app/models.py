from datetime import datetime
from enum import Enum, IntEnum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from syllabus_app.db import Base


class Role(str, Enum):
    ADMIN = 'admin'
    TEACHER = 'teacher'
    STUDENT = 'student'
    GUEST = 'guest'


class ContextLevel(str, Enum):
    COURSE = 'course'
    USER = 'user'


class SyllabusAccessType(IntEnum):
    PUBLIC = 1
    LOGGED_IN = 2
    PRIVATE = 3


class SyllabusKind(str, Enum):
    PUBLIC = 'public'
    PRIVATE = 'private'


class Course(Base):
    __tablename__ = 'courses'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    short_name: Mapped[str] = mapped_column(String(100), default='', index=True)
    max_bytes: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    enrollments: Mapped[list['CourseEnrollment']] = relationship(
        'CourseEnrollment',
        back_populates='course',
        cascade='all, delete-orphan',
    )


class AccessContext(Base):
    __tablename__ = 'access_contexts'
    __table_args__ = (
        UniqueConstraint('level', 'instance_id', name='uq_access_contexts_level_instance'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    level: Mapped[str] = mapped_column(String(20), index=True)
    instance_id: Mapped[int] = mapped_column(Integer, index=True)


class AuthUser(Base):
    __tablename__ = 'auth_users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    role: Mapped[str] = mapped_column(String(20), default=Role.STUDENT.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    enrollments: Mapped[list['CourseEnrollment']] = relationship('CourseEnrollment', back_populates='user')


class CourseEnrollment(Base):
    __tablename__ = 'course_enrollments'
    __table_args__ = (
        UniqueConstraint('course_id', 'user_id', name='uq_course_enrollments_course_user'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    course_id: Mapped[int] = mapped_column(ForeignKey('courses.id'), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('auth_users.id'), index=True)
    role: Mapped[str] = mapped_column(String(20), default=Role.STUDENT.value, index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    course: Mapped['Course'] = relationship('Course', back_populates='enrollments')
    user: Mapped['AuthUser'] = relationship('AuthUser', back_populates='enrollments')


class Syllabus(Base):
    # course_id is a plain column: rows are removed by the course_deleted
    # handler after the course itself is gone.
    __tablename__ = 'syllabi'
    __table_args__ = (
        Index('ix_syllabi_course_access_type', 'course_id', 'access_type'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    course_id: Mapped[int] = mapped_column(Integer, index=True)
    display_name: Mapped[str] = mapped_column(String(255))
    access_type: Mapped[int] = mapped_column(Integer, default=SyllabusAccessType.PUBLIC.value, index=True)
    is_preview: Mapped[bool] = mapped_column(Boolean, default=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


class StoredFile(Base):
    __tablename__ = 'stored_files'
    __table_args__ = (
        Index('ix_stored_files_area', 'context_id', 'component', 'area', 'item_id'),
        UniqueConstraint(
            'context_id',
            'component',
            'area',
            'item_id',
            'filepath',
            'filename',
            name='uq_stored_files_path',
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    context_id: Mapped[int] = mapped_column(Integer, index=True)
    component: Mapped[str] = mapped_column(String(100))
    area: Mapped[str] = mapped_column(String(50))
    item_id: Mapped[int] = mapped_column(Integer)
    filepath: Mapped[str] = mapped_column(String(255), default='/')
    filename: Mapped[str] = mapped_column(String(255))
    mimetype: Mapped[str] = mapped_column(String(120), default='application/octet-stream')
    filesize: Mapped[int] = mapped_column(Integer, default=0)
    content_hash: Mapped[str] = mapped_column(String(64), index=True)
    author_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
