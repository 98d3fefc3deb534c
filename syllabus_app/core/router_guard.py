from __future__ import annotations

from typing import Iterable

from fastapi import HTTPException, Request

from syllabus_app.services.auth_service import validate_session_token


def resolve_token(request: Request) -> str | None:
    token = request.cookies.get('auth_session')
    if token:
        return token
    authorization = request.headers.get('authorization', '')
    if authorization.lower().startswith('bearer '):
        return authorization[7:].strip()
    return None


def get_session_user(request: Request) -> dict | None:
    return validate_session_token(resolve_token(request))


def require_auth_user(request: Request) -> dict:
    session = get_session_user(request)
    if not session:
        raise HTTPException(status_code=401, detail='Unauthorized')
    if int(session.get('user_id') or 0) <= 0:
        raise HTTPException(status_code=401, detail='Unauthorized')
    return {
        'user_id': int(session['user_id']),
        'role': str(session.get('role') or '').strip().lower(),
        'email': str(session.get('email') or ''),
    }


def require_role(user: dict, allowed_roles: set[str] | Iterable[str]) -> None:
    normalized = {str(role).strip().lower() for role in allowed_roles}
    if str(user.get('role') or '').strip().lower() not in normalized:
        raise HTTPException(status_code=403, detail='Forbidden')
