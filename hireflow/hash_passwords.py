#!/usr/bin/env python3
"""
One-off migration: hash every stored password that is still plaintext.

Imported person rows may carry plaintext passwords; login refuses to compare
against those. Run once after an import:

    python -m hireflow.hash_passwords
"""
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import load_settings
from .database import begin_write, build_engine, build_session_factory, init_db
from .models.person import Person
from .utils.security import hash_password, is_password_hashed

logger = logging.getLogger(__name__)


@dataclass
class HashReport:
    hashed: int = 0
    already_hashed: int = 0
    missing: int = 0
    unhashable: int = 0


def hash_existing_passwords(db: Session) -> HashReport:
    report = HashReport()
    begin_write(db)
    people = db.execute(select(Person).order_by(Person.person_id)).scalars().all()
    for person in people:
        if not person.password:
            logger.info("Skipping person %s: no password set", person.person_id)
            report.missing += 1
            continue
        if is_password_hashed(person.password):
            report.already_hashed += 1
            continue
        try:
            person.password = hash_password(person.password)
        except ValueError as e:
            # bcrypt cannot take it (over 72 bytes); the account needs a credential restore.
            logger.warning("Skipping person %s: %s", person.person_id, e)
            report.unhashable += 1
            continue
        report.hashed += 1
        logger.info("Hashed password for person %s", person.person_id)

    db.commit()
    return report


def main() -> None:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(message)s")

    engine = build_engine(settings.database_url)
    init_db(engine)
    with build_session_factory(engine)() as db:
        report = hash_existing_passwords(db)
    engine.dispose()

    logger.info(
        "Password hashing completed: %d hashed, %d already hashed, %d without password, %d unhashable",
        report.hashed, report.already_hashed, report.missing, report.unhashable,
    )


if __name__ == "__main__":
    main()
