import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from schoolmail.auth import jwt_handler
from schoolmail.core.config import Settings

UNAUTHORIZED_DETAIL = "Invalid or expired token"

security = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> jwt_handler.TokenClaims:
    token = credentials.credentials if credentials else None
    try:
        return jwt_handler.decode_access_token(token, settings)
    except jwt_handler.AuthError as exc:
        logger.debug("Rejected bearer token (%s): %s", type(exc).__name__, exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNAUTHORIZED_DETAIL,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
