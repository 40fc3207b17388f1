"""HTTP route definitions for the identity service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from ..domain.contracts import AuthenticationResult, AuthOutcome
from ..domain.errors import IdentityErrorKind
from ..domain.service import IdentityService
from ..security.tokens import TokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])

bearer_scheme = HTTPBearer(auto_error=False)


class RegisterRequest(BaseModel):
    """Payload accepted when registering a new account."""

    email: str
    password: str


class LoginRequest(BaseModel):
    """Credentials presented by a returning user."""

    email: str
    password: str


class AuthResponse(BaseModel):
    """Bearer token and identity facts returned after register or login."""

    token: str
    user_id: str
    email: str
    expires_at: datetime

    @classmethod
    def from_domain(cls, result: AuthenticationResult) -> "AuthResponse":
        """Build a response model from the workflow result."""
        return cls(
            token=result.token,
            user_id=result.account_id,
            email=result.email,
            expires_at=result.expires_at,
        )


class ClaimsResponse(BaseModel):
    """Verified claims carried by a bearer token."""

    user_id: str
    email: str
    token_id: str
    issuer: str
    audience: str
    expires_at: datetime


_ERROR_STATUS: dict[IdentityErrorKind, tuple[int, str]] = {
    IdentityErrorKind.invalid_format: (status.HTTP_400_BAD_REQUEST, "Invalid email format."),
    IdentityErrorKind.weak_credential: (
        status.HTTP_400_BAD_REQUEST,
        "Password does not meet the length requirements.",
    ),
    IdentityErrorKind.account_exists: (
        status.HTTP_409_CONFLICT,
        "User with this email already exists.",
    ),
    IdentityErrorKind.invalid_credentials: (
        status.HTTP_401_UNAUTHORIZED,
        "Invalid email or password.",
    ),
    IdentityErrorKind.persistence_failure: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error.",
    ),
}


def get_service(request: Request) -> IdentityService:
    """Resolve the `IdentityService` stored on the FastAPI application state."""
    service: IdentityService = request.app.state.identity_service
    return service


def get_token_issuer(request: Request) -> TokenIssuer:
    """Resolve the `TokenIssuer` stored on the FastAPI application state."""
    issuer: TokenIssuer = request.app.state.token_issuer
    return issuer


@router.post("/register", response_model=AuthResponse)
def register(
    payload: RegisterRequest,
    service: IdentityService = Depends(get_service),
) -> AuthResponse:
    """Register an account and return a bearer token for it."""
    return _respond(service.register(payload.email, payload.password))


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_service),
) -> AuthResponse:
    """Authenticate a returning user and return a fresh bearer token."""
    return _respond(service.login(payload.email, payload.password))


@router.get("/me", response_model=ClaimsResponse)
def me(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> ClaimsResponse:
    """Return the claims of a valid bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("missing bearer token")
    try:
        claims: dict[str, Any] = issuer.decode(credentials.credentials)
    except jwt.PyJWTError as exc:
        logger.info("bearer token rejected: %s", exc)
        raise _unauthorized("invalid or expired token") from exc
    return ClaimsResponse(
        user_id=claims["sub"],
        email=claims.get("email", ""),
        token_id=claims["jti"],
        issuer=claims["iss"],
        audience=claims["aud"],
        expires_at=claims["exp"],
    )


def _respond(outcome: AuthOutcome) -> AuthResponse:
    if outcome.result is None:
        raise _http_error_from_kind(outcome.error or IdentityErrorKind.persistence_failure)
    return AuthResponse.from_domain(outcome.result)


def _http_error_from_kind(kind: IdentityErrorKind) -> HTTPException:
    status_code, detail = _ERROR_STATUS[kind]
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return _unauthorized(detail)
    return HTTPException(status_code=status_code, detail=detail)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
