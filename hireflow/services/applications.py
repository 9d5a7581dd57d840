import logging
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..database import begin_write
from ..models.availability import Availability
from ..models.competence import Competence, CompetenceProfile
from ..models.person import ApplicationStatus, Person, Role
from ..utils.error_handlers import ValidationError
from ..utils.timestamps import format_timestamp, utcnow
from ..utils.validation import parse_date, validate_positive_int

logger = logging.getLogger(__name__)

MAX_YEARS_OF_EXPERIENCE = 99


def _application_to_public(person: Person) -> dict:
    competences = sorted(person.competence_profiles, key=lambda cp: cp.competence_profile_id)
    availability = sorted(person.availability, key=lambda a: (a.from_date, a.to_date))
    return {
        "application_id": person.person_id,
        "name": person.name,
        "surname": person.surname,
        "email": person.email,
        "application_status": person.status,
        "competences": [
            {
                "competence_id": cp.competence_id,
                "name": cp.competence.name if cp.competence else None,
                "years_of_experience": cp.years_of_experience,
            }
            for cp in competences
        ],
        "availability": [
            {"from_date": a.from_date.isoformat(), "to_date": a.to_date.isoformat()}
            for a in availability
        ],
        "last_updated": format_timestamp(person.last_updated),
    }


def _applications_query():
    return (
        select(Person)
        .where(Person.role_id == int(Role.APPLICANT))
        .options(
            selectinload(Person.competence_profiles).selectinload(CompetenceProfile.competence),
            selectinload(Person.availability),
        )
    )


def list_applications(db: Session) -> list[dict]:
    """Every submitted application, oldest applicant first."""
    people = db.execute(
        _applications_query()
        .where(Person.status != ApplicationStatus.UNSENT.value)
        .order_by(Person.person_id)
    ).scalars().all()
    return [_application_to_public(p) for p in people]


def get_application(db: Session, person_id: int) -> dict | None:
    person = db.execute(_applications_query().where(Person.person_id == person_id)).scalars().first()
    return _application_to_public(person) if person else None


def list_competences(db: Session) -> list[dict]:
    rows = db.execute(select(Competence).order_by(Competence.competence_id)).scalars().all()
    return [{"competence_id": c.competence_id, "name": c.name} for c in rows]


def _validate_expertise(db: Session, expertise: Any) -> list[tuple[int, float]]:
    if not isinstance(expertise, list) or not expertise:
        raise ValidationError("Expertise must be a non-empty array.")

    items: list[tuple[int, float]] = []
    for item in expertise:
        if not isinstance(item, dict):
            raise ValidationError("Each expertise item must be an object.")
        try:
            competence_id = int(item.get("competence_id"))
            years = float(item.get("years_of_experience"))
        except (TypeError, ValueError):
            competence_id, years = 0, -1.0
        if competence_id <= 0 or not 0 <= years <= MAX_YEARS_OF_EXPERIENCE:
            raise ValidationError(
                "Each expertise item must have a valid competence_id and "
                f"years_of_experience (0-{MAX_YEARS_OF_EXPERIENCE})."
            )
        items.append((competence_id, years))

    wanted = {cid for cid, _ in items}
    known = set(
        db.execute(select(Competence.competence_id).where(Competence.competence_id.in_(wanted))).scalars()
    )
    unknown = sorted(wanted - known)
    if unknown:
        raise ValidationError("Unknown competence_id.", details={"competence_ids": unknown})
    return items


def _validate_availability(availability: Any, *, today: date) -> list[tuple[date, date]]:
    if not isinstance(availability, list) or not availability:
        raise ValidationError("Availability must be a non-empty array.")

    periods: list[tuple[date, date]] = []
    for period in availability:
        if not isinstance(period, dict) or not period.get("from_date") or not period.get("to_date"):
            raise ValidationError("Each availability period must have a from_date and to_date.")
        from_date = parse_date(period.get("from_date"), "from_date")
        to_date = parse_date(period.get("to_date"), "to_date")
        if from_date < today:
            raise ValidationError("Start date cannot be in the past.")
        if from_date > to_date:
            raise ValidationError("from_date cannot be later than to_date.")
        periods.append((from_date, to_date))
    return periods


def submit_application(
    db: Session,
    person_id: Any,
    expertise: Any,
    availability: Any,
    *,
    today: date | None = None,
) -> Person:
    """
    Store an applicant's competences and availability and put the application in the
    recruiters' queue (status `unhandled`). All rows are written in one transaction.
    """
    validate_positive_int(person_id, "userId")
    periods = _validate_availability(availability, today=today or utcnow().date())

    begin_write(db)
    try:
        items = _validate_expertise(db, expertise)

        # Row lock so a concurrent status update cannot interleave with the version bump.
        person = db.get(Person, person_id, with_for_update=True)
        if person is None or person.role_id != int(Role.APPLICANT):
            raise ValidationError("Invalid userId. No applicant with this id.")

        for competence_id, years in items:
            db.add(CompetenceProfile(person_id=person_id, competence_id=competence_id, years_of_experience=years))
        for from_date, to_date in periods:
            db.add(Availability(person_id=person_id, from_date=from_date, to_date=to_date))
        person.status = ApplicationStatus.UNHANDLED.value
        person.last_updated = max(utcnow(), person.last_updated + timedelta(microseconds=1))
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Application submitted: person_id=%s expertise=%d availability=%d",
        person_id, len(items), len(periods),
    )
    return person
