from datetime import datetime, timedelta, timezone

from syllabus_app.config import settings
from syllabus_app.models import AuthUser
from syllabus_app.services.auth_service import clear_session_token, issue_session_token, validate_session_token


def _user(user_id=5, role='teacher'):
    return AuthUser(id=user_id, email='teacher@example.com', role=role)


def test_issued_token_validates_to_principal():
    issued = issue_session_token(_user())

    session = validate_session_token(issued['token'])

    assert session == {'user_id': 5, 'email': 'teacher@example.com', 'role': 'teacher'}


def test_tampered_or_missing_token_is_rejected():
    token = issue_session_token(_user())['token']
    header, payload, signature = token.split('.')

    assert validate_session_token(None) is None
    assert validate_session_token('') is None
    assert validate_session_token('not-a-token') is None
    assert validate_session_token(f'{header}.{payload}x.{signature}') is None


def test_revoked_token_is_rejected():
    token = issue_session_token(_user(user_id=9, role='student'))['token']
    assert validate_session_token(token) is not None

    clear_session_token(token)

    assert validate_session_token(token) is None


class _FixedClock:
    def __init__(self, now):
        self._now = now

    def now(self):
        return self._now


def test_token_expires_after_session_ttl():
    issued_at = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
    issued = issue_session_token(_user(user_id=11), time_provider=_FixedClock(issued_at))
    ttl = timedelta(hours=settings.session_ttl_hours)

    assert issued['expires_at'] == (issued_at + ttl).isoformat()
    assert validate_session_token(issued['token'], time_provider=_FixedClock(issued_at + ttl - timedelta(minutes=1)))
    assert validate_session_token(issued['token'], time_provider=_FixedClock(issued_at + ttl)) is None
