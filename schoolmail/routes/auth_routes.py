import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from schoolmail.auth import jwt_handler
from schoolmail.auth.dependencies import get_current_claims, get_settings
from schoolmail.auth.passwords import hash_password, verify_password
from schoolmail.core.config import Settings
from schoolmail.database import get_db
from schoolmail.models.user import DEFAULT_ROLE, USER_ROLES, User

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid credentials'
DUPLICATE_EMAIL = 'Email already registered'


class RegisterRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    role: str | None = None
    classId: int | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    token: str
    user: UserResponse


@router.post('/register', response_model=UserResponse)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    if not data.name or not data.email or not data.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Missing fields')

    role = data.role or DEFAULT_ROLE
    if role not in USER_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid role')

    try:
        if db.query(User).filter(User.email == data.email).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_EMAIL)

        user = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            role=role,
            class_id=data.classId,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        # Lost a race against a concurrent registration for the same email.
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_EMAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Registration failed for %s', data.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Registration failed',
        ) from exc

    logger.info('Registered user %s with role %s', user.email, user.role)
    return user


@router.post('/login', response_model=LoginResponse)
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        user = db.query(User).filter(User.email == data.email).first() if data.email else None
    except SQLAlchemyError as exc:
        logger.exception('Login lookup failed')
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Login failed',
        ) from exc

    if user is None or not verify_password(data.password or '', user.hashed_password):
        logger.info('Failed login attempt for %s', data.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    token = jwt_handler.create_access_token(user.id, user.email, user.role, settings)
    return LoginResponse(token=token, user=UserResponse.model_validate(user))


@router.get('/me', response_model=UserResponse)
def me(
    claims: jwt_handler.TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
):
    try:
        user = db.get(User, claims.id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to fetch user',
        ) from exc

    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')
    return user
