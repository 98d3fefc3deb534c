from syllabus_app.routers import courses, files, syllabus, syllabus_ui

__all__ = [
    'courses',
    'files',
    'syllabus',
    'syllabus_ui',
]
