import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..config import Settings
from ..models.person import Role
from .error_handlers import UnauthorizedError, get_error_message
from .jwt import KIND_SESSION, TokenExpired, TokenInvalid, TokenService
from .validation import is_positive_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedIdentity:
    person_id: int
    role: Role


def get_db(request: Request):
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


def identity_from_payload(payload: dict) -> AuthenticatedIdentity:
    """Turn verified session claims into an identity; anything unexpected is an invalid token."""
    if payload.get("kind") != KIND_SESSION:
        raise UnauthorizedError(get_error_message("invalid_token"), code="INVALID_TOKEN")

    person_id = payload.get("personId")
    if not is_positive_int(person_id):
        raise UnauthorizedError(get_error_message("invalid_token"), code="INVALID_TOKEN")

    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise UnauthorizedError(get_error_message("invalid_token"), code="INVALID_TOKEN")

    return AuthenticatedIdentity(person_id=person_id, role=role)


def authenticate(request: Request, tokens: TokenService) -> AuthenticatedIdentity:
    """
    Validate the bearer token on the request and attach the identity to
    `request.state.user` for downstream handlers.
    """
    token = _bearer_token(request)
    if token is None:
        raise UnauthorizedError(get_error_message("no_token"), code="NO_TOKEN")

    try:
        payload = tokens.verify(token)
    except TokenExpired:
        raise UnauthorizedError(get_error_message("token_expired"), code="TOKEN_EXPIRED")
    except TokenInvalid:
        logger.info("Rejected invalid token on %s", request.url.path)
        raise UnauthorizedError(get_error_message("invalid_token"), code="INVALID_TOKEN")

    identity = identity_from_payload(payload)
    request.state.user = identity
    return identity


def get_current_user(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> AuthenticatedIdentity:
    return authenticate(request, tokens)
