import threading
from datetime import datetime, timedelta

import pytest
from conftest import fetch_person

from hireflow.models.person import ApplicationStatus, Person, Role
from hireflow.services.status_update import UpdateOutcome, update_application_status
from hireflow.utils.timestamps import format_timestamp, parse_timestamp, utcnow

T0 = datetime(2024, 1, 1, 0, 0, 0)
T0_ISO = "2024-01-01T00:00:00Z"


@pytest.fixture()
def application(create_person):
    return create_person(status=ApplicationStatus.UNHANDLED, last_updated=T0)


def test_update_with_current_version_succeeds(db_session, session_factory, application):
    result = update_application_status(db_session, application.person_id, "accepted", T0_ISO)

    assert result.outcome is UpdateOutcome.UPDATED
    assert result.success
    assert result.updated_last_updated > T0

    stored = fetch_person(session_factory, application.person_id)
    assert stored.status == "accepted"
    assert stored.last_updated == result.updated_last_updated


def test_stale_version_is_rejected_after_another_update(db_session, session_factory, application):
    first = update_application_status(db_session, application.person_id, "accepted", T0_ISO)
    assert first.success

    second = update_application_status(db_session, application.person_id, "rejected", T0_ISO)
    assert second.outcome is UpdateOutcome.CONFLICT
    assert "Refresh" in second.message

    stored = fetch_person(session_factory, application.person_id)
    assert stored.status == "accepted"
    assert stored.last_updated == first.updated_last_updated


def test_returned_version_can_be_used_for_the_next_update(db_session, application):
    first = update_application_status(db_session, application.person_id, "accepted", T0_ISO)
    second = update_application_status(
        db_session, application.person_id, "rejected", format_timestamp(first.updated_last_updated)
    )
    assert second.success
    assert second.updated_last_updated > first.updated_last_updated


def test_read_then_concurrent_commit_then_write_conflicts(session_factory, application):
    # Recruiter A reads the row; recruiter B updates and commits before A writes.
    with session_factory() as reader:
        observed = format_timestamp(reader.get(Person, application.person_id).last_updated)
        reader.rollback()

    with session_factory() as other:
        assert update_application_status(other, application.person_id, "rejected", observed).success

    with session_factory() as writer:
        result = update_application_status(writer, application.person_id, "accepted", observed)
    assert result.outcome is UpdateOutcome.CONFLICT
    assert fetch_person(session_factory, application.person_id).status == "rejected"


def test_racing_updates_with_same_version_have_exactly_one_winner(session_factory, application):
    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = []
    errors = []
    lock = threading.Lock()

    def attempt(status: str) -> None:
        try:
            with session_factory() as db:
                barrier.wait()
                result = update_application_status(db, application.person_id, status, T0_ISO)
            with lock:
                outcomes.append(result.outcome)
        except Exception as e:  # surfaced through the assertion below
            with lock:
                errors.append(e)

    threads = [
        threading.Thread(target=attempt, args=("accepted" if i % 2 else "rejected",))
        for i in range(workers)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    assert outcomes.count(UpdateOutcome.UPDATED) == 1
    assert outcomes.count(UpdateOutcome.CONFLICT) == workers - 1


def test_unknown_application_is_not_found(db_session, application):
    result = update_application_status(db_session, application.person_id + 1000, "accepted", T0_ISO)
    assert result.outcome is UpdateOutcome.NOT_FOUND


def test_recruiter_row_is_not_an_application(db_session, create_person):
    recruiter = create_person(role=Role.RECRUITER, last_updated=T0)
    result = update_application_status(db_session, recruiter.person_id, "accepted", T0_ISO)
    assert result.outcome is UpdateOutcome.NOT_FOUND


def test_equivalent_timestamp_in_another_offset_matches(db_session, application):
    result = update_application_status(db_session, application.person_id, "accepted", "2024-01-01T01:00:00+01:00")
    assert result.success


def test_millisecond_browser_timestamp_matches(db_session, create_person):
    person = create_person(status=ApplicationStatus.UNHANDLED, last_updated=datetime(2024, 3, 5, 12, 30, 15, 250000))
    result = update_application_status(db_session, person.person_id, "rejected", "2024-03-05T12:30:15.250Z")
    assert result.success


@pytest.mark.parametrize(
    "application_id, status, last_updated",
    [
        (0, "accepted", T0_ISO),
        (-3, "accepted", T0_ISO),
        ("1", "accepted", T0_ISO),
        (True, "accepted", T0_ISO),
        (None, "accepted", T0_ISO),
        (1, "unsent", T0_ISO),
        (1, "ACCEPTED", T0_ISO),
        (1, None, T0_ISO),
        (1, "accepted", "yesterday"),
        (1, "accepted", None),
        (1, "accepted", 1704067200),
        (1, "accepted", "0001-01-01T00:00:00+01:00"),
        (2**63, "accepted", T0_ISO),
    ],
)
def test_invalid_input_is_rejected_before_storage(db_session, application_id, status, last_updated):
    result = update_application_status(db_session, application_id, status, last_updated)
    assert result.outcome is UpdateOutcome.INVALID
    assert result.to_dict()["code"] == "INVALID_INPUT"


def test_future_timestamp_is_rejected(db_session, application):
    future = format_timestamp(utcnow() + timedelta(hours=1))
    result = update_application_status(db_session, application.person_id, "accepted", future)
    assert result.outcome is UpdateOutcome.INVALID
    assert "future" in result.message


def test_new_version_is_after_observed_even_with_lagging_clock(db_session, create_person):
    observed = datetime(2024, 6, 1, 12, 0, 0)
    person = create_person(status=ApplicationStatus.UNHANDLED, last_updated=observed)
    # Server clock sits exactly on the stored version.
    result = update_application_status(
        db_session, person.person_id, "accepted", format_timestamp(observed), clock=lambda: observed
    )
    assert result.success
    assert result.updated_last_updated == observed + timedelta(microseconds=1)


def test_success_payload_shape(db_session, application):
    body = update_application_status(db_session, application.person_id, "accepted", T0_ISO).to_dict()
    assert body["success"] is True
    assert parse_timestamp(body["updatedLastUpdated"]) > T0
    assert "code" not in body


def test_largest_storable_id_is_looked_up(db_session, application):
    result = update_application_status(db_session, 2**63 - 1, "accepted", T0_ISO)
    assert result.outcome is UpdateOutcome.NOT_FOUND


def test_open_read_does_not_block_writers(session_factory, application):
    with session_factory() as reader:
        assert reader.get(Person, application.person_id).status == "unhandled"
        # reader still holds its read transaction
        with session_factory() as writer:
            result = update_application_status(writer, application.person_id, "accepted", T0_ISO)
        assert result.success
        reader.rollback()
    assert fetch_person(session_factory, application.person_id).status == "accepted"
