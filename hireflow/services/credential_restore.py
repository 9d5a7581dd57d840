"""
Credential restore: prove control of the registered email, then pick a new
username and password without knowing the old ones.

    request_restore(email)            -> restore token (15 min) + link, mailed out-of-band
    complete_restore(token, ...)      -> username and password replaced in one UPDATE

The restore token is only checked for signature, kind and expiry; there is no
single-use bookkeeping, so it can be replayed until it expires.
"""
import enum
import logging
from dataclasses import dataclass
from urllib.parse import urlencode

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import begin_write
from ..models.person import Person
from ..utils.error_handlers import AppError, get_error_message
from ..utils.jwt import KIND_RESTORE, TokenExpired, TokenInvalid, TokenService
from ..utils.security import hash_password
from ..utils.validation import validate_email, validate_password, validate_person_number, validate_username

logger = logging.getLogger(__name__)


class RestoreError(str, enum.Enum):
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_PERSON_NUMBER = "INVALID_PERSON_NUMBER"
    EMAIL_NOT_FOUND = "EMAIL_NOT_FOUND"
    PERSON_NUMBER_NOT_FOUND = "PERSON_NUMBER_NOT_FOUND"
    MISSING_FIELDS = "MISSING_FIELDS"
    INVALID_USERNAME = "INVALID_USERNAME"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USERNAME_TAKEN = "USERNAME_TAKEN"


# HTTP status for every failure the flow can report.
RESTORE_ERROR_STATUS = {
    RestoreError.INVALID_EMAIL: 400,
    RestoreError.INVALID_PERSON_NUMBER: 400,
    RestoreError.EMAIL_NOT_FOUND: 404,
    RestoreError.PERSON_NUMBER_NOT_FOUND: 404,
    RestoreError.MISSING_FIELDS: 400,
    RestoreError.INVALID_USERNAME: 400,
    RestoreError.WEAK_PASSWORD: 400,
    RestoreError.INVALID_TOKEN: 400,
    RestoreError.TOKEN_EXPIRED: 400,
    RestoreError.USER_NOT_FOUND: 404,
    RestoreError.USERNAME_TAKEN: 409,
}


@dataclass(frozen=True)
class RestoreResult:
    success: bool
    message: str
    error: RestoreError | None = None
    email: str | None = None
    token: str | None = None
    link: str | None = None
    email_text: str | None = None

    @property
    def status_code(self) -> int:
        return 200 if self.error is None else RESTORE_ERROR_STATUS[self.error]


def _fail(error: RestoreError, message: str) -> RestoreResult:
    return RestoreResult(success=False, message=message, error=error)


def _from_validation(exc: AppError, error: RestoreError) -> RestoreResult:
    return _fail(error, exc.message)


def _find_by_email(db: Session, email: str) -> Person | None:
    return db.execute(select(Person).where(func.lower(Person.email) == email)).scalars().first()


def verify_email(db: Session, email) -> RestoreResult:
    try:
        email = validate_email(email)
    except AppError as e:
        return _from_validation(e, RestoreError.INVALID_EMAIL)

    if _find_by_email(db, email) is None:
        return _fail(RestoreError.EMAIL_NOT_FOUND, get_error_message("email_not_found"))
    return RestoreResult(success=True, message="Email verified.", email=email)


def verify_person_number(db: Session, person_number) -> RestoreResult:
    try:
        pnr = validate_person_number(person_number)
    except AppError as e:
        return _from_validation(e, RestoreError.INVALID_PERSON_NUMBER)

    person = db.execute(select(Person).where(Person.pnr == pnr)).scalars().first()
    if person is None:
        return _fail(RestoreError.PERSON_NUMBER_NOT_FOUND, get_error_message("person_number_not_found"))
    return RestoreResult(success=True, message="Person number verified.", email=person.email)


def build_restore_link(frontend_url: str, token: str) -> str:
    return f"{frontend_url.rstrip('/')}/update-credentials?{urlencode({'token': token})}"


def compose_restore_email(person: Person, link: str) -> str:
    greeting = person.name or person.username
    lines = [
        f"Hi {greeting},",
        "",
        "We received a request to restore the credentials of your HireFlow account.",
        "Open the link below to choose a new username and password. It is valid for 15 minutes.",
        "",
        link,
        "",
        "If you did not ask for this, you can ignore this email.",
        "",
        "Best regards,",
        "HireFlow",
    ]
    return "\n".join(lines)


def request_restore(db: Session, tokens: TokenService, email, *, frontend_url: str) -> RestoreResult:
    verified = verify_email(db, email)
    if not verified.success:
        return verified

    person = _find_by_email(db, verified.email)
    token = tokens.issue_restore_token(person.person_id, person.email)
    link = build_restore_link(frontend_url, token)
    logger.info("Issued restore token for person_id=%s", person.person_id)
    return RestoreResult(
        success=True,
        message="Email verified. A link to restore your credentials has been sent.",
        email=person.email,
        token=token,
        link=link,
        email_text=compose_restore_email(person, link),
    )


def complete_restore(db: Session, tokens: TokenService, token, username, new_password) -> RestoreResult:
    if not token or not username or not new_password:
        return _fail(RestoreError.MISSING_FIELDS, "Token, username and new password are required.")

    try:
        payload = tokens.verify(token)
    except TokenExpired:
        return _fail(RestoreError.TOKEN_EXPIRED, "Restore link has expired. Please request a new one.")
    except TokenInvalid:
        return _fail(RestoreError.INVALID_TOKEN, get_error_message("invalid_token"))

    email = payload.get("email")
    if payload.get("kind") != KIND_RESTORE or not isinstance(email, str) or not email:
        return _fail(RestoreError.INVALID_TOKEN, get_error_message("invalid_token"))

    try:
        username = validate_username(username)
    except AppError as e:
        return _from_validation(e, RestoreError.INVALID_USERNAME)
    try:
        validate_password(new_password)
    except AppError as e:
        return _from_validation(e, RestoreError.WEAK_PASSWORD)

    begin_write(db)
    person = _find_by_email(db, email.lower())
    if person is None:
        db.rollback()
        return _fail(RestoreError.USER_NOT_FOUND, get_error_message("user_not_found"))

    owner = db.execute(select(Person.person_id).where(Person.username == username)).first()
    if owner is not None and owner[0] != person.person_id:
        db.rollback()
        return _fail(RestoreError.USERNAME_TAKEN, get_error_message("username_taken"))

    hashed = hash_password(new_password)
    try:
        result = db.execute(
            update(Person)
            .where(Person.person_id == person.person_id)
            .values(username=username, password=hashed)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except IntegrityError:
        # Someone claimed the username between the check and the write.
        db.rollback()
        return _fail(RestoreError.USERNAME_TAKEN, get_error_message("username_taken"))

    if result.rowcount != 1:
        return _fail(RestoreError.USER_NOT_FOUND, get_error_message("user_not_found"))

    logger.info("Credentials restored for person_id=%s", person.person_id)
    return RestoreResult(success=True, message="Credentials updated successfully.", email=person.email)
