from typing import Literal

from pydantic import BaseModel, Field

from syllabus_app.models import SyllabusAccessType


class SyllabusSaveRequest(BaseModel):
    display_name: str = Field(min_length=1, max_length=255)
    access_type: SyllabusAccessType
    is_preview: bool = False
    url: str = ''
    entry_id: int | None = None
    draft_item_id: int | None = None


class SyllabusSaveData(SyllabusSaveRequest):
    course_id: int


class SyllabusConvertRequest(BaseModel):
    target: Literal['public', 'private']


class CourseCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    short_name: str = ''
    max_bytes: int = Field(default=0, ge=0)


class EnrollmentRequest(BaseModel):
    user_id: int
    role: Literal['teacher', 'student'] = 'student'
