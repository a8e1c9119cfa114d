"""FastAPI dependencies shared by the routers."""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from kairo.core.tokens import AccessClaims, TokenCodec
from kairo.services.auth_service import AuthService
from kairo.services.errors import UnauthenticatedError
from kairo.services.session_service import SessionService

_bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_session_service() -> SessionService:
    return SessionService()


@lru_cache
def get_auth_service() -> AuthService:
    return AuthService()


def get_token_codec(sessions: SessionService = Depends(get_session_service)) -> TokenCodec:
    return sessions.codec


def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    codec: TokenCodec = Depends(get_token_codec),
) -> AccessClaims:
    """Trust the signed access token; no storage lookup per request."""
    if credentials is None or (credentials.scheme or "").lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return codec.decode_access_token(credentials.credentials)
    except UnauthenticatedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message or "Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def reset_dependencies() -> None:
    """Drop cached services so the next request rebuilds them from current settings."""
    get_session_service.cache_clear()
    get_auth_service.cache_clear()
