import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import begin_write
from ..models.person import ApplicationStatus, Person, Role
from ..services.credential_restore import (
    RestoreResult,
    complete_restore,
    request_restore,
    verify_email,
    verify_person_number,
)
from ..services.emailer import send_restore_email_safe
from ..utils.dependencies import AuthenticatedIdentity, get_current_user, get_db, get_settings, get_token_service
from ..utils.error_handlers import (
    ConflictError,
    NotFoundError,
    SecurityError,
    UnauthorizedError,
    ValidationError,
    create_error_response,
    get_error_message,
    handle_database_error,
)
from ..utils.jwt import TokenExpired, TokenInvalid, TokenService
from ..utils.security import hash_password, is_password_hashed, verify_password
from ..utils.validation import (
    validate_email,
    validate_password,
    validate_person_number,
    validate_string_field,
    validate_username,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


class LoginRequest(BaseModel):
    username: str | None = None
    password: str | None = None
    rememberMe: bool = False


class SignupRequest(BaseModel):
    firstName: str | None = None
    lastName: str | None = None
    email: str | None = None
    personNumber: str | None = None
    username: str | None = None
    password: str | None = None


class EmailRequest(BaseModel):
    email: str | None = None


class PersonNumberRequest(BaseModel):
    personNumber: str | None = None


class UpdateCredentialsRequest(BaseModel):
    token: str | None = None
    username: str | None = None
    newPassword: str | None = None


class TokenRequest(BaseModel):
    token: str | None = None


def _user_to_public(person: Person) -> dict:
    return {
        "username": person.username,
        "person_id": person.person_id,
        "role": int(person.role_id),
        "application_status": person.status if person.role_id == int(Role.APPLICANT) else None,
    }


def _restore_response(result: RestoreResult, **extra) -> JSONResponse | dict:
    if not result.success:
        return create_error_response(result.status_code, result.message, result.error.value)
    return {"success": True, "message": result.message, **extra}


@router.post("/login")
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    if not payload.username or not payload.password:
        raise ValidationError(get_error_message("missing_credentials"), code="MISSING_CREDENTIALS")

    username = payload.username.strip()
    logger.info("Login attempt for %s", username)
    person = db.execute(select(Person).where(Person.username == username)).scalars().first()
    if not person or not person.password:
        raise UnauthorizedError(get_error_message("invalid_credentials"), code="INVALID_CREDENTIALS")

    if not is_password_hashed(person.password):
        # Stored credential was never run through hash_passwords; refuse rather than compare plaintext.
        logger.error("Unhashed password found in storage for person_id=%s", person.person_id)
        raise SecurityError(get_error_message("security_error"))

    if not verify_password(payload.password, person.password):
        raise UnauthorizedError(get_error_message("invalid_credentials"), code="INVALID_CREDENTIALS")

    token = tokens.issue_session_token(person.person_id, person.role, extended=payload.rememberMe)
    return {
        "success": True,
        "message": "Login successful",
        "token": token,
        "user": _user_to_public(person),
    }


@router.post("/signup", status_code=201)
def signup(
    payload: SignupRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    fields = (
        payload.firstName, payload.lastName, payload.email,
        payload.personNumber, payload.username, payload.password,
    )
    if not all(fields):
        raise ValidationError(get_error_message("missing_fields"), code="MISSING_FIELDS")

    first_name = validate_string_field(payload.firstName, "First name")
    last_name = validate_string_field(payload.lastName, "Last name")
    email = validate_email(payload.email)
    pnr = validate_person_number(payload.personNumber)
    username = validate_username(payload.username)
    validate_password(payload.password)

    begin_write(db)
    if db.execute(select(Person.person_id).where(Person.username == username)).first():
        raise ConflictError(get_error_message("username_taken"), code="USERNAME_TAKEN")
    if db.execute(select(Person.person_id).where(func.lower(Person.email) == email)).first():
        raise ConflictError(get_error_message("email_taken"), code="EMAIL_TAKEN")
    if db.execute(select(Person.person_id).where(Person.pnr == pnr)).first():
        raise ConflictError(get_error_message("person_number_taken"), code="PERSON_NUMBER_TAKEN")

    person = Person(
        name=first_name,
        surname=last_name,
        email=email,
        pnr=pnr,
        username=username,
        password=hash_password(payload.password),
        role_id=int(Role.APPLICANT),
        status=ApplicationStatus.UNSENT.value,
    )
    try:
        db.add(person)
        db.commit()
        db.refresh(person)
    except IntegrityError as e:
        db.rollback()
        raise handle_database_error(e, "creating user")

    logger.info("Created applicant person_id=%s", person.person_id)
    token = tokens.issue_session_token(person.person_id, person.role)
    return {
        "success": True,
        "message": "User created successfully",
        "userId": person.person_id,
        "token": token,
    }


@router.post("/verify-email")
def verify_email_route(payload: EmailRequest, db: Session = Depends(get_db)):
    return _restore_response(verify_email(db, payload.email))


@router.post("/verify-person-number")
def verify_person_number_route(payload: PersonNumberRequest, db: Session = Depends(get_db)):
    return _restore_response(verify_person_number(db, payload.personNumber))


@router.post("/send-update-email")
def send_update_email(
    payload: EmailRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    result = request_restore(db, tokens, payload.email, frontend_url=settings.frontend_url)
    if not result.success:
        return _restore_response(result)

    background_tasks.add_task(
        send_restore_email_safe,
        settings,
        to_email=result.email,
        body=result.email_text,
    )
    return _restore_response(result, emailText=result.email_text)


@router.post("/update-credentials")
def update_credentials(
    payload: UpdateCredentialsRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    result = complete_restore(db, tokens, payload.token, payload.username, payload.newPassword)
    return _restore_response(result)


@router.post("/validate-token")
def validate_token(payload: TokenRequest, tokens: TokenService = Depends(get_token_service)):
    if not payload.token or not payload.token.strip():
        raise ValidationError("Token is required", code="MISSING_TOKEN")
    try:
        decoded = tokens.verify(payload.token.strip())
    except TokenExpired:
        raise UnauthorizedError(get_error_message("token_expired"), code="TOKEN_EXPIRED")
    except TokenInvalid:
        raise UnauthorizedError(get_error_message("invalid_token"), code="INVALID_TOKEN")
    return {"success": True, "decoded": decoded}


@router.get("/me")
def me(user: AuthenticatedIdentity = Depends(get_current_user), db: Session = Depends(get_db)):
    person = db.get(Person, user.person_id)
    if person is None:
        raise NotFoundError(get_error_message("user_not_found"), code="USER_NOT_FOUND")
    return {
        "success": True,
        "user": {
            **_user_to_public(person),
            "name": person.name,
            "surname": person.surname,
            "email": person.email,
        },
    }


@router.post("/logout")
def logout():
    # Tokens are stateless; the client drops its copy and it expires on its own.
    return {"success": True, "message": "Logged out successfully"}
