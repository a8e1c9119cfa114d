from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from kairo.core.rate_limiter import rate_limit_ip
from kairo.core.tokens import AccessClaims
from kairo.routers.deps import get_auth_service, get_current_claims, get_session_service
from kairo.services.auth_service import (
    EMAIL_MAX_LENGTH,
    NAME_MAX_LENGTH,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    AuthService,
)
from kairo.services.errors import AccountExistsError, RegistrationError, UnauthenticatedError
from kairo.services.session_service import SessionService

router = APIRouter(prefix="/auth", tags=["auth"])


def _normalize_email(value):
    if isinstance(value, str):
        value = value.strip().lower()
        if len(value) > EMAIL_MAX_LENGTH:
            raise ValueError(f"email must be at most {EMAIL_MAX_LENGTH} characters")
    return value


class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)


class RefreshTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    refresh_token: str = Field(alias="refreshToken", min_length=1)


def _no_store(content: dict, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers={"Cache-Control": "no-store"})


def _unauthorized(exc: UnauthenticatedError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=exc.message,
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    request: Request,
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    rate_limit_ip(request, "auth:register", limit=5, window_seconds=60)
    try:
        user = auth_service.register(payload.email, payload.password, payload.name)
    except RegistrationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, exc.message)
    except AccountExistsError as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, exc.message)
    return _no_store(user.to_dict(), status.HTTP_201_CREATED)


@router.post("/login")
def login(
    request: Request,
    payload: LoginRequest,
    sessions: SessionService = Depends(get_session_service),
):
    rate_limit_ip(request, "auth:login", limit=5, window_seconds=60)
    try:
        tokens = sessions.login(payload.email, payload.password)
    except UnauthenticatedError as exc:
        raise _unauthorized(exc)
    return _no_store(tokens.to_dict())


@router.post("/refresh")
def refresh(
    request: Request,
    payload: RefreshTokenRequest,
    sessions: SessionService = Depends(get_session_service),
):
    rate_limit_ip(request, "auth:refresh", limit=10, window_seconds=60)
    try:
        tokens = sessions.refresh(payload.refresh_token)
    except UnauthenticatedError as exc:
        raise _unauthorized(exc)
    return _no_store(tokens.to_dict())


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    payload: RefreshTokenRequest,
    sessions: SessionService = Depends(get_session_service),
):
    sessions.logout(payload.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me")
def me(
    claims: AccessClaims = Depends(get_current_claims),
    sessions: SessionService = Depends(get_session_service),
):
    user = sessions.get_current_user(claims.user_id)
    if user is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")
    return _no_store(user.to_dict())
