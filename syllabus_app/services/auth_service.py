from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import threading
from datetime import timedelta

from sqlalchemy.orm import Session

from syllabus_app.config import settings
from syllabus_app.core.time_provider import TimeProvider, default_time_provider
from syllabus_app.models import AuthUser, Role


_REVOKED_TOKENS: set[str] = set()
_TOKENS_LOCK = threading.RLock()
logger = logging.getLogger(__name__)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64url_decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode('ascii'))


def _encode_jwt(payload: dict) -> str:
    header = {'alg': 'HS256', 'typ': 'JWT'}
    header_part = _b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))
    payload_part = _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    signature_part = _b64url_encode(signature)
    return f'{header_part}.{payload_part}.{signature_part}'


def _decode_jwt(token: str) -> dict | None:
    try:
        header_part, payload_part, signature_part = token.split('.')
    except ValueError:
        return None

    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    expected_signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    try:
        provided_signature = _b64url_decode(signature_part)
    except ValueError:
        return None
    if not hmac.compare_digest(provided_signature, expected_signature):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_part).decode('utf-8'))
    except (ValueError, json.JSONDecodeError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None
    return payload


def create_user(db: Session, *, email: str, role: str = Role.STUDENT.value) -> AuthUser:
    clean_email = (email or '').strip().lower()
    if not clean_email:
        raise ValueError('Email is required')
    clean_role = (role or '').strip().lower()
    if clean_role not in {item.value for item in Role}:
        raise ValueError(f'Unknown role: {role}')
    user = AuthUser(email=clean_email, role=clean_role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def issue_session_token(user: AuthUser, *, time_provider: TimeProvider = default_time_provider) -> dict:
    now = time_provider.now()
    claims = {
        'sub': user.id,
        'email': user.email,
        'role': user.role,
        'iat': int(now.timestamp()),
    }
    expires_at = None
    if settings.session_ttl_hours > 0:
        expires_at = now + timedelta(hours=settings.session_ttl_hours)
        claims['exp'] = int(expires_at.timestamp())
    token = _encode_jwt(claims)
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.discard(token)
    logger.info('session_token_issued user_id=%s role=%s', user.id, user.role)
    return {
        'token': token,
        'user_id': user.id,
        'email': user.email,
        'role': user.role,
        'expires_at': expires_at.isoformat() if expires_at else None,
    }


def validate_session_token(token: str | None, *, time_provider: TimeProvider = default_time_provider) -> dict | None:
    if not token:
        return None
    with _TOKENS_LOCK:
        if token in _REVOKED_TOKENS:
            return None

    payload = _decode_jwt(token)
    if not payload:
        return None

    expires_at = payload.get('exp')
    if expires_at is not None and int(expires_at) <= int(time_provider.now().timestamp()):
        return None

    role = payload.get('role')
    user_id = payload.get('sub')
    if not role or user_id is None:
        return None

    try:
        clean_user_id = int(user_id)
    except (TypeError, ValueError):
        return None

    return {
        'user_id': clean_user_id,
        'email': payload.get('email') or '',
        'role': role,
    }


def clear_session_token(token: str | None) -> None:
    if not token:
        return
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.add(token)
