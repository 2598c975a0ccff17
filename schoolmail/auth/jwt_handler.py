from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from schoolmail.core.config import Settings


class AuthError(Exception):
    """Base class for bearer token failures."""


class MissingTokenError(AuthError):
    pass


class InvalidTokenError(AuthError):
    pass


class ExpiredTokenError(AuthError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    id: int
    email: str
    role: str


def create_access_token(
    user_id: int,
    email: str,
    role: str,
    settings: Settings,
    now: datetime | None = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=settings.jwt_expires_minutes)
    payload = {
        "sub": str(user_id),
        "id": user_id,
        "email": email,
        "role": role,
        "iat": issued_at,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str | None, settings: Settings) -> TokenClaims:
    if not token:
        raise MissingTokenError("No token supplied")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "id", "email", "role"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise ExpiredTokenError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError(str(exc)) from exc

    try:
        return TokenClaims(id=int(payload["id"]), email=payload["email"], role=payload["role"])
    except (TypeError, ValueError) as exc:
        raise InvalidTokenError("Malformed token claims") from exc
