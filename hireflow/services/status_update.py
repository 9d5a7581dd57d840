"""
Application status updates with optimistic concurrency control.

A recruiter sends the `last_updated` value they last read together with the new
status. The write is a single conditional UPDATE guarded by that value, so of two
recruiters who read the same row, only the first to commit succeeds; the other is
told to reload. There is no automatic retry: a stale decision goes back to a human.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..database import begin_write
from ..models.person import ApplicationStatus, Person, Role
from ..utils.error_handlers import get_error_message
from ..utils.timestamps import format_timestamp, parse_timestamp, utcnow
from ..utils.validation import is_positive_int

logger = logging.getLogger(__name__)

# Statuses a recruiter may set. `unsent` belongs to the applicant side of the lifecycle.
SETTABLE_STATUSES = (
    ApplicationStatus.UNHANDLED.value,
    ApplicationStatus.ACCEPTED.value,
    ApplicationStatus.REJECTED.value,
)

_ONE_TICK = timedelta(microseconds=1)


class UpdateOutcome(str, enum.Enum):
    UPDATED = "UPDATED"
    INVALID = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"


@dataclass(frozen=True)
class StatusUpdateResult:
    outcome: UpdateOutcome
    message: str
    updated_last_updated: datetime | None = None

    @property
    def success(self) -> bool:
        return self.outcome is UpdateOutcome.UPDATED

    def to_dict(self) -> dict:
        body = {"success": self.success, "message": self.message}
        if self.success:
            body["updatedLastUpdated"] = format_timestamp(self.updated_last_updated)
        else:
            body["code"] = self.outcome.value
        return body


def _invalid(message: str) -> StatusUpdateResult:
    return StatusUpdateResult(UpdateOutcome.INVALID, message)


def validate_update_request(
    application_id: Any,
    new_status: Any,
    observed_last_updated: Any,
    *,
    now: datetime,
) -> tuple[StatusUpdateResult | None, datetime | None]:
    """Return (error, None) on bad input, or (None, parsed observed timestamp)."""
    if not is_positive_int(application_id):
        return _invalid("Invalid application_id. It must be a positive number."), None

    if new_status not in SETTABLE_STATUSES:
        return _invalid(f"Invalid status. Allowed values: {', '.join(SETTABLE_STATUSES)}"), None

    try:
        observed = parse_timestamp(observed_last_updated)
    except (TypeError, ValueError):
        return _invalid("Invalid lastUpdated. It must be a valid date string."), None

    if observed > now:
        return _invalid("lastUpdated cannot be a future date."), None

    return None, observed


def update_application_status(
    db: Session,
    application_id: Any,
    new_status: Any,
    observed_last_updated: Any,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> StatusUpdateResult:
    now = clock()
    error, observed = validate_update_request(application_id, new_status, observed_last_updated, now=now)
    if error is not None:
        return error

    # Strictly after the version we are replacing, even if the server clock lags behind it.
    new_last_updated = max(now, observed + _ONE_TICK)

    # Compare and write in one statement: no window between reading the version and
    # replacing it.
    stmt = (
        update(Person)
        .where(
            Person.person_id == application_id,
            Person.role_id == int(Role.APPLICANT),
            Person.last_updated == observed,
        )
        .values(status=new_status, last_updated=new_last_updated)
        .execution_options(synchronize_session=False)
    )
    begin_write(db)
    try:
        result = db.execute(stmt)
        if result.rowcount == 1:
            db.commit()
            logger.info(
                "Application %s set to %s (version %s -> %s)",
                application_id, new_status, format_timestamp(observed), format_timestamp(new_last_updated),
            )
            return StatusUpdateResult(
                UpdateOutcome.UPDATED,
                "Application status updated successfully.",
                new_last_updated,
            )
        db.rollback()
    except Exception:
        db.rollback()
        raise

    # Nothing matched: either the application does not exist or its version moved on.
    current = db.execute(
        select(Person.last_updated).where(
            Person.person_id == application_id,
            Person.role_id == int(Role.APPLICANT),
        )
    ).first()
    db.rollback()

    if current is None:
        return StatusUpdateResult(UpdateOutcome.NOT_FOUND, get_error_message("application_not_found"))

    logger.info(
        "Rejected stale update of application %s: observed %s, current %s",
        application_id, format_timestamp(observed), format_timestamp(current[0]),
    )
    return StatusUpdateResult(UpdateOutcome.CONFLICT, get_error_message("stale_application"))
