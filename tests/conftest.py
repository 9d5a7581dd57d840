import itertools
import os
from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Keep a developer's .env from leaking into the test settings.
os.environ["DISABLE_DOTENV"] = "1"

from hireflow.config import Settings  # noqa: E402
from hireflow.main import create_app  # noqa: E402
from hireflow.models.person import ApplicationStatus, Person, Role  # noqa: E402
from hireflow.utils.security import hash_password  # noqa: E402
from hireflow.utils.timestamps import utcnow  # noqa: E402

DEFAULT_PASSWORD = "Testpass123!"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+pysqlite:///{(tmp_path / 'test.sqlite3').as_posix()}",
        jwt_secret="test-secret",
        frontend_url="http://frontend.test",
    )


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    """A HireFlow app wired to a temporary SQLite file; SMTP is left unconfigured."""
    return create_app(settings)


@pytest.fixture()
def client(app: FastAPI):
    # Entering the context runs startup: tables are created and competences seeded.
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def session_factory(app: FastAPI, client: TestClient):
    return app.state.session_factory


@pytest.fixture()
def db_session(session_factory):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def token_service(app: FastAPI):
    return app.state.token_service


@pytest.fixture()
def create_person(db_session):
    """Insert a person row directly; signup can only create applicants."""
    counter = itertools.count(1)

    def _create(
        *,
        role: Role = Role.APPLICANT,
        username: str | None = None,
        password: str | None = DEFAULT_PASSWORD,
        email: str | None = None,
        status: ApplicationStatus = ApplicationStatus.UNSENT,
        last_updated: datetime | None = None,
        hash_it: bool = True,
    ) -> Person:
        n = next(counter)
        person = Person(
            name=f"First{n}",
            surname=f"Last{n}",
            username=username or f"user{n}",
            email=email or f"user{n}@example.com",
            pnr=f"19900101-{n:04d}",
            password=hash_password(password) if (password and hash_it) else password,
            role_id=int(role),
            status=status.value,
            last_updated=last_updated or utcnow(),
        )
        db_session.add(person)
        db_session.commit()
        # Detached, so a later rollback on db_session cannot expire it and reading an
        # attribute never reopens a transaction on this session.
        db_session.expunge(person)
        return person

    return _create


def fetch_person(session_factory, person_id: int) -> Person | None:
    """Read a row in a short-lived session of its own."""
    with session_factory() as db:
        return db.get(Person, person_id)


def login(client, username: str, password: str = DEFAULT_PASSWORD, **extra):
    return client.post("/users/login", json={"username": username, "password": password, **extra})


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def token_for(client, username: str, password: str = DEFAULT_PASSWORD) -> str:
    r = login(client, username, password)
    assert r.status_code == 200, r.text
    return r.json()["token"]
