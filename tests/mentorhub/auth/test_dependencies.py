import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from mentorhub.auth import jwt_handler
from mentorhub.auth.dependencies import ensure_can_manage_mentor, get_current_user, require_admin
from mentorhub.routes.auth_routes import me


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trips_subject_and_role() -> None:
    token = jwt_handler.create_access_token('student@example.com', role='user')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'student@example.com'
    assert payload['role'] == 'user'


def test_get_current_user_resolves_token_subject(db, make_user) -> None:
    user = make_user('student@example.com', full_name='Student One')

    resolved = get_current_user(credentials=bearer(jwt_handler.create_access_token('Student@Example.com')), db=db)

    assert resolved.id == user.id
    assert me(current_user=resolved) == {
        'id': user.id,
        'email': 'student@example.com',
        'role': 'user',
        'full_name': 'Student One',
        'avatar_url': None,
    }


def test_get_current_user_rejects_garbage_token(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer('not-a-jwt'), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_expired_token(db, make_user) -> None:
    make_user('student@example.com')
    token = jwt_handler.create_access_token('student@example.com', expires_minutes=-5)

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer(token), db=db)

    assert exception_info.value.status_code == 401


def test_get_current_user_rejects_unknown_user(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer(jwt_handler.create_access_token('ghost@example.com')), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'User not found'


def test_require_admin_rejects_regular_users(make_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        require_admin(current_user=make_user('student@example.com'))

    assert exception_info.value.status_code == 403


def test_require_admin_accepts_admins(make_user) -> None:
    admin = make_user('admin@example.com', role='admin')

    assert require_admin(current_user=admin) is admin


def test_admin_can_manage_any_mentor(make_user, make_mentor) -> None:
    mentor = make_mentor()

    ensure_can_manage_mentor(make_user('admin@example.com', role='admin'), mentor)
    ensure_can_manage_mentor(mentor.user, mentor)

    with pytest.raises(HTTPException) as exception_info:
        ensure_can_manage_mentor(make_user('student@example.com'), mentor)

    assert exception_info.value.status_code == 403
