import sys
import uuid
from pathlib import Path

import httpx
from alembic.config import Config
from alembic.script import ScriptDirectory
from alembic.runtime.migration import MigrationContext
from sqlalchemy import text

from syllabus_app.config import settings
from syllabus_app.db import SessionLocal, engine
from syllabus_app.models import AccessContext, Course, StoredFile, Syllabus


GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_alembic_head():
    cfg = Config('alembic.ini')
    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')

    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()

    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_required_env():
    required = {
        'DATABASE_URL': settings.database_url,
        'APP_BASE_URL': settings.app_base_url,
        'FILE_STORAGE_DIR': settings.file_storage_dir,
    }
    missing = [key for key, value in required.items() if not str(value).strip()]
    if missing:
        raise RuntimeError(f'Missing env vars: {", ".join(missing)}')
    if settings.auth_secret == 'change-me' and settings.app_env != 'local':
        raise RuntimeError('AUTH_SECRET still has the default value')
    return 'all required vars present'


def check_file_storage_writable():
    root = Path(settings.file_storage_dir)
    root.mkdir(parents=True, exist_ok=True)
    probe = root / f'.healthcheck-{uuid.uuid4().hex}'
    probe.write_bytes(b'probe')
    probe.unlink()
    return str(root.resolve())


def check_syllabus_tables_accessible():
    db = SessionLocal()
    try:
        for model in (Course, AccessContext, Syllabus, StoredFile):
            db.query(model).limit(1).all()
        orphans = (
            db.query(Syllabus.id)
            .outerjoin(Course, Course.id == Syllabus.course_id)
            .filter(Course.id.is_(None))
            .count()
        )
        if orphans:
            raise RuntimeError(f'{orphans} syllabus row(s) point at deleted courses')
        return 'query ok'
    finally:
        db.close()


def check_http_healthz():
    res = httpx.get(f"{settings.app_base_url.rstrip('/')}/healthz", timeout=8)
    if res.status_code != 200:
        raise RuntimeError(f'HTTP {res.status_code} from /healthz')
    return 'healthz ok'


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Alembic migration status at head', check_alembic_head),
        ('Required environment variables present', check_required_env),
        ('File storage writable', check_file_storage_writable),
        ('Syllabus tables accessible', check_syllabus_tables_accessible),
        ('Running app answers /healthz', check_http_healthz),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
