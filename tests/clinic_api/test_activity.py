from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from clinic_api.models.patient import Appointment
from clinic_api.services import activity
from clinic_api.services.activity import (
    ACTIVE_STATUS,
    INACTIVE_STATUS,
    combine_appointment_timestamp,
    is_appointment_active,
    refresh_activity_statuses,
)

KARACHI = ZoneInfo('Asia/Karachi')
HOUR = timedelta(hours=1)
APPOINTMENT_DATE = date(2026, 1, 5)
APPOINTMENT_TIME = time(10, 0)


def _at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2026, 1, 5, hour, minute, second, tzinfo=KARACHI)


@pytest.mark.parametrize(
    ('now', 'expected'),
    [
        (_at(9, 59, 59), False),
        (_at(10, 0), True),
        (_at(10, 30), True),
        (_at(10, 59, 59), True),
        (_at(11, 0), False),
        (_at(12, 0), False),
    ],
)
def test_forward_window_includes_start_and_excludes_end(now: datetime, expected: bool) -> None:
    assert is_appointment_active(APPOINTMENT_DATE, APPOINTMENT_TIME, now, HOUR, 'forward', KARACHI) is expected


@pytest.mark.parametrize(
    ('now', 'expected'),
    [
        (_at(9, 59), False),
        (_at(10, 0), True),
        (_at(10, 45), True),
        (_at(11, 0), True),
        (_at(11, 0, 1), False),
    ],
)
def test_backward_window_is_selectable(now: datetime, expected: bool) -> None:
    assert is_appointment_active(APPOINTMENT_DATE, APPOINTMENT_TIME, now, HOUR, 'backward', KARACHI) is expected


@pytest.mark.parametrize(
    ('appointment_date', 'appointment_time'),
    [(None, APPOINTMENT_TIME), (APPOINTMENT_DATE, None), (None, None)],
)
def test_missing_schedule_is_never_active(appointment_date, appointment_time) -> None:
    assert is_appointment_active(appointment_date, appointment_time, _at(10, 0), HOUR, 'forward', KARACHI) is False


def test_now_in_another_timezone_is_converted() -> None:
    now_utc = datetime(2026, 1, 5, 5, 30, tzinfo=timezone.utc)

    assert is_appointment_active(APPOINTMENT_DATE, APPOINTMENT_TIME, now_utc, HOUR, 'forward', KARACHI) is True


def test_naive_now_is_read_in_reference_timezone() -> None:
    assert is_appointment_active(APPOINTMENT_DATE, APPOINTMENT_TIME, datetime(2026, 1, 5, 10, 15), HOUR, 'forward', KARACHI)


def test_window_crossing_midnight() -> None:
    now = datetime(2026, 1, 6, 0, 10, tzinfo=KARACHI)

    assert is_appointment_active(APPOINTMENT_DATE, time(23, 30), now, HOUR, 'forward', KARACHI) is True


def test_unknown_policy_is_rejected() -> None:
    with pytest.raises(ValueError):
        is_appointment_active(APPOINTMENT_DATE, APPOINTMENT_TIME, _at(10, 0), HOUR, 'sideways', KARACHI)


def test_combine_appointment_timestamp_localizes_wall_clock_time() -> None:
    combined = combine_appointment_timestamp(APPOINTMENT_DATE, APPOINTMENT_TIME, KARACHI)

    assert combined == datetime(2026, 1, 5, 5, 0, tzinfo=timezone.utc)


def test_refresh_activity_statuses_persists_flags_and_orders_schedule(db_session) -> None:
    db_session.add_all(
        [
            Appointment(name='stale', appointment_date=APPOINTMENT_DATE, appointment_time=time(8, 0), is_active=True),
            Appointment(name='unscheduled', is_active=True),
            Appointment(name='current', appointment_date=APPOINTMENT_DATE, appointment_time=time(9, 45)),
            Appointment(name='upcoming', appointment_date=APPOINTMENT_DATE, appointment_time=time(11, 0)),
        ]
    )
    db_session.commit()

    statuses = refresh_activity_statuses(db_session, _at(10, 0), HOUR, 'forward', KARACHI)

    assert [(row['name'], row['status']) for row in statuses] == [
        ('stale', INACTIVE_STATUS),
        ('current', ACTIVE_STATUS),
        ('upcoming', INACTIVE_STATUS),
        ('unscheduled', INACTIVE_STATUS),
    ]
    assert statuses[-1]['appointment_timestamp'] is None

    db_session.expire_all()
    stored = {appointment.name: appointment.is_active for appointment in db_session.query(Appointment).all()}
    assert stored == {'stale': False, 'unscheduled': False, 'current': True, 'upcoming': False}


def test_refresh_activity_statuses_with_no_appointments(db_session) -> None:
    assert refresh_activity_statuses(db_session, _at(10, 0), HOUR, 'forward', KARACHI) == []


@pytest.mark.parametrize(
    ('now_utc', 'expected'),
    [
        (datetime(2026, 11, 1, 5, 30, tzinfo=timezone.utc), True),
        (datetime(2026, 11, 1, 6, 15, tzinfo=timezone.utc), True),
        (datetime(2026, 11, 1, 6, 30, tzinfo=timezone.utc), False),
        (datetime(2026, 11, 1, 6, 45, tzinfo=timezone.utc), False),
    ],
)
def test_forward_window_spans_elapsed_time_across_fall_back(now_utc: datetime, expected: bool) -> None:
    # 01:30 on the fall-back day is first read as EDT (05:30 UTC); the clock repeats 01:00-02:00.
    new_york = ZoneInfo('America/New_York')

    assert is_appointment_active(date(2026, 11, 1), time(1, 30), now_utc, HOUR, 'forward', new_york) is expected


def test_forward_window_across_spring_forward() -> None:
    new_york = ZoneInfo('America/New_York')
    # 01:30 EST is 06:30 UTC; one hour later is 07:30 UTC (03:30 EDT).
    scheduled_date, scheduled_time = date(2026, 3, 8), time(1, 30)

    assert is_appointment_active(
        scheduled_date, scheduled_time, datetime(2026, 3, 8, 7, 29, tzinfo=timezone.utc), HOUR, 'forward', new_york
    )
    assert not is_appointment_active(
        scheduled_date, scheduled_time, datetime(2026, 3, 8, 7, 30, tzinfo=timezone.utc), HOUR, 'forward', new_york
    )


def test_refresh_does_not_mark_a_concurrently_rescheduled_appointment_active(
    db_session, session_factory, monkeypatch: pytest.MonkeyPatch
) -> None:
    appointment = Appointment(name='moved', appointment_date=APPOINTMENT_DATE, appointment_time=APPOINTMENT_TIME)
    db_session.add(appointment)
    db_session.commit()
    appointment_id = appointment.id

    evaluate = activity.is_appointment_active

    def reschedule_during_evaluation(*args, **kwargs):
        result = evaluate(*args, **kwargs)
        other = session_factory()
        try:
            other.get(Appointment, appointment_id).appointment_date = date(2026, 2, 1)
            other.commit()
        finally:
            other.close()
        return result

    monkeypatch.setattr(activity, 'is_appointment_active', reschedule_during_evaluation)

    statuses = refresh_activity_statuses(db_session, _at(10, 30), HOUR, 'forward', KARACHI)

    assert [(row['appointment_date'], row['status']) for row in statuses] == [(date(2026, 2, 1), INACTIVE_STATUS)]
    db_session.expire_all()
    assert db_session.get(Appointment, appointment_id).is_active is False
