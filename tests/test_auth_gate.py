from datetime import datetime, timedelta, timezone

import pytest
from conftest import auth_headers, token_for

from hireflow.models.person import ApplicationStatus, Role
from hireflow.utils.dependencies import AuthenticatedIdentity, identity_from_payload
from hireflow.utils.error_handlers import ForbiddenError, UnauthorizedError
from hireflow.utils.jwt import SESSION_TOKEN_TTL, TokenService
from hireflow.utils.roles import require_role, require_self_or_elevated

RECRUITER = AuthenticatedIdentity(person_id=1, role=Role.RECRUITER)
APPLICANT = AuthenticatedIdentity(person_id=2, role=Role.APPLICANT)


class TestRoleChecks:
    def test_matching_role_passes(self):
        require_role(RECRUITER, Role.RECRUITER)
        require_role(APPLICANT, Role.APPLICANT)

    def test_wrong_role_is_forbidden(self):
        with pytest.raises(ForbiddenError) as exc:
            require_role(APPLICANT, Role.RECRUITER)
        assert exc.value.status_code == 403
        assert exc.value.code == "NOT_AUTHORIZED"

    def test_recruiter_may_act_on_anyone(self):
        require_self_or_elevated(RECRUITER, 99)

    def test_applicant_may_act_on_self(self):
        require_self_or_elevated(APPLICANT, 2)

    def test_applicant_may_not_act_on_others(self):
        with pytest.raises(ForbiddenError):
            require_self_or_elevated(APPLICANT, 3)


class TestIdentityFromPayload:
    def test_session_claims(self):
        identity = identity_from_payload({"personId": 5, "role": 2, "kind": "session"})
        assert identity == AuthenticatedIdentity(person_id=5, role=Role.APPLICANT)

    @pytest.mark.parametrize(
        "payload",
        [
            {"personId": 5, "email": "a@example.com", "kind": "restore"},
            {"personId": 5, "role": 3, "kind": "session"},
            {"personId": 5, "kind": "session"},
            {"personId": "5", "role": 1, "kind": "session"},
            {"role": 1, "kind": "session"},
            {"personId": 5, "role": 1},
        ],
    )
    def test_unexpected_claims_are_invalid(self, payload):
        with pytest.raises(UnauthorizedError) as exc:
            identity_from_payload(payload)
        assert exc.value.code == "INVALID_TOKEN"


def test_missing_token_is_401_no_token(client):
    r = client.get("/users/me")
    assert r.status_code == 401, r.text
    assert r.json()["code"] == "NO_TOKEN"


def test_non_bearer_header_is_401_no_token(client):
    r = client.get("/users/me", headers={"Authorization": "Basic dXNlcjpwYXNz"})
    assert r.status_code == 401
    assert r.json()["code"] == "NO_TOKEN"


def test_garbage_token_is_401_invalid(client):
    r = client.get("/users/me", headers=auth_headers("garbage"))
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_TOKEN"


def test_expired_token_is_401_expired(client, settings, create_person):
    person = create_person()
    issued = datetime.now(timezone.utc) - SESSION_TOKEN_TTL - timedelta(seconds=5)
    token = TokenService(settings.jwt_secret, clock=lambda: issued).issue_session_token(person.person_id, 2)
    r = client.get("/users/me", headers=auth_headers(token))
    assert r.status_code == 401
    assert r.json()["code"] == "TOKEN_EXPIRED"


def test_restore_token_is_not_a_session(client, token_service, create_person):
    person = create_person()
    token = token_service.issue_restore_token(person.person_id, person.email)
    r = client.get("/users/me", headers=auth_headers(token))
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_TOKEN"


def test_valid_token_reaches_handler(client, create_person):
    person = create_person(username="gatekeeper")
    r = client.get("/users/me", headers=auth_headers(token_for(client, "gatekeeper")))
    assert r.status_code == 200, r.text
    assert r.json()["user"]["person_id"] == person.person_id


def test_applicant_cannot_update_application_status(client, create_person):
    target = create_person(status=ApplicationStatus.UNHANDLED)
    create_person(username="sneaky")
    r = client.post(
        "/applications/update",
        headers=auth_headers(token_for(client, "sneaky")),
        json={"application_id": target.person_id, "status": "accepted", "lastUpdated": "2024-01-01T00:00:00Z"},
    )
    assert r.status_code == 403, r.text
    assert r.json()["code"] == "NOT_AUTHORIZED"


def test_applicant_cannot_fetch_applications(client, create_person):
    create_person(username="curious")
    r = client.get("/applications/fetch", headers=auth_headers(token_for(client, "curious")))
    assert r.status_code == 403


def test_recruiter_cannot_submit_for_an_applicant(client, create_person):
    applicant = create_person()
    create_person(role=Role.RECRUITER, username="recruiter")
    r = client.post(
        "/applications/submit",
        headers=auth_headers(token_for(client, "recruiter")),
        json={
            "userId": applicant.person_id,
            "expertise": [{"competence_id": 1, "years_of_experience": 2}],
            "availability": [{"from_date": "2099-01-01", "to_date": "2099-02-01"}],
        },
    )
    assert r.status_code == 403, r.text


def test_applicant_cannot_submit_for_someone_else(client, create_person):
    other = create_person()
    create_person(username="impostor")
    r = client.post(
        "/applications/submit",
        headers=auth_headers(token_for(client, "impostor")),
        json={
            "userId": other.person_id,
            "expertise": [{"competence_id": 1, "years_of_experience": 2}],
            "availability": [{"from_date": "2099-01-01", "to_date": "2099-02-01"}],
        },
    )
    assert r.status_code == 403, r.text
    assert r.json()["code"] == "NOT_AUTHORIZED"


def test_applicant_reads_only_own_application(client, create_person):
    me = create_person(username="reader")
    other = create_person()
    token = token_for(client, "reader")

    own = client.get(f"/applications/{me.person_id}", headers=auth_headers(token))
    assert own.status_code == 200, own.text
    assert own.json()["application"]["application_id"] == me.person_id

    theirs = client.get(f"/applications/{other.person_id}", headers=auth_headers(token))
    assert theirs.status_code == 403


def test_recruiter_reads_any_application(client, create_person):
    applicant = create_person()
    create_person(role=Role.RECRUITER, username="boss")
    r = client.get(f"/applications/{applicant.person_id}", headers=auth_headers(token_for(client, "boss")))
    assert r.status_code == 200, r.text
