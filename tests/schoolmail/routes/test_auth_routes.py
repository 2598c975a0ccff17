import pytest
from fastapi import HTTPException

from schoolmail.auth import jwt_handler
from schoolmail.auth.passwords import verify_password
from schoolmail.routes.auth_routes import (
    LoginRequest,
    RegisterRequest,
    UserResponse,
    login,
    me,
    register,
)
from schoolmail.models.user import User


def test_register_hashes_password_and_returns_public_profile(db) -> None:
    response = register(
        RegisterRequest(name='Office', email='office@school.test', password='hunter2'),
        db=db,
    )

    stored = db.query(User).filter(User.email == 'office@school.test').one()
    assert response.id == stored.id
    assert response.role == 'admin'
    assert stored.hashed_password != 'hunter2'
    assert verify_password('hunter2', stored.hashed_password)
    assert not verify_password('hunter3', stored.hashed_password)
    assert set(UserResponse.model_validate(response).model_dump()) == {'id', 'name', 'email', 'role'}


def test_register_accepts_role_and_class(db) -> None:
    register(
        RegisterRequest(name='Pupil', email='pupil@school.test', password='pw', role='student', classId=4),
        db=db,
    )

    stored = db.query(User).filter(User.email == 'pupil@school.test').one()
    assert stored.role == 'student'
    assert stored.class_id == 4


@pytest.mark.parametrize(
    'payload',
    [
        {'email': 'a@school.test', 'password': 'pw'},
        {'name': 'A', 'password': 'pw'},
        {'name': 'A', 'email': 'a@school.test'},
        {'name': '', 'email': 'a@school.test', 'password': 'pw'},
    ],
)
def test_register_rejects_missing_fields(db, payload: dict) -> None:
    with pytest.raises(HTTPException) as exception_info:
        register(RegisterRequest(**payload), db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Missing fields'


def test_register_rejects_unknown_role(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        register(RegisterRequest(name='A', email='a@school.test', password='pw', role='teacher'), db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Invalid role'


def test_register_twice_with_same_email_keeps_one_row(db) -> None:
    data = RegisterRequest(name='Office', email='office@school.test', password='pw')
    register(data, db=db)

    with pytest.raises(HTTPException) as exception_info:
        register(data, db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Email already registered'
    assert db.query(User).filter(User.email == 'office@school.test').count() == 1


def test_register_maps_unique_constraint_race_to_duplicate_email(db, make_user, monkeypatch) -> None:
    make_user('office@school.test')

    # Simulate losing the race: the pre-check sees nothing, the insert hits the constraint.
    real_query = db.query

    class _EmptyQuery:
        def filter(self, *_args):
            return self

        def first(self):
            return None

    monkeypatch.setattr(db, 'query', lambda model: _EmptyQuery() if model is User else real_query(model))

    with pytest.raises(HTTPException) as exception_info:
        register(RegisterRequest(name='Other', email='office@school.test', password='pw'), db=db)

    monkeypatch.undo()
    assert exception_info.value.detail == 'Email already registered'
    assert db.query(User).count() == 1


def test_login_returns_token_with_user_claims(db, make_user, settings) -> None:
    user = make_user('parent@school.test', role='parent', password='pw')

    response = login(LoginRequest(email='parent@school.test', password='pw'), db=db, settings=settings)
    claims = jwt_handler.decode_access_token(response.token, settings)

    assert claims == jwt_handler.TokenClaims(id=user.id, email='parent@school.test', role='parent')
    assert response.user.id == user.id
    assert response.user.name == user.name


@pytest.mark.parametrize(
    ('email', 'password'),
    [
        ('parent@school.test', 'wrong'),
        ('nobody@school.test', 'pw'),
        (None, None),
    ],
)
def test_login_failures_share_one_error(db, make_user, settings, email, password) -> None:
    make_user('parent@school.test', role='parent', password='pw')

    with pytest.raises(HTTPException) as exception_info:
        login(LoginRequest(email=email, password=password), db=db, settings=settings)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid credentials'


def test_me_returns_profile_for_token_owner(db, make_user) -> None:
    user = make_user('office@school.test')

    response = me(claims=jwt_handler.TokenClaims(id=user.id, email=user.email, role=user.role), db=db)

    assert response.email == 'office@school.test'


def test_me_returns_404_when_user_was_removed(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        me(claims=jwt_handler.TokenClaims(id=999, email='gone@school.test', role='admin'), db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'User not found'
