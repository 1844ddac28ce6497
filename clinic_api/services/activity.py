"""Appointment activity-window evaluation.

An appointment scheduled at ``T`` (its date and time read as wall-clock time
in the reference timezone) is active under the ``forward`` policy when
``T <= now < T + window``. The ``backward`` policy keeps the older
``now - window <= T <= now`` rule available through configuration.
Appointments missing a date or a time are never active.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from sqlalchemy import bindparam, select, update
from sqlalchemy.orm import Session

from clinic_api.core import config
from clinic_api.models.patient import Appointment


logger = logging.getLogger(__name__)

FORWARD_POLICY = 'forward'
BACKWARD_POLICY = 'backward'
ACTIVE_STATUS = 'active'
INACTIVE_STATUS = 'no active'


def reference_timezone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or config.REFERENCE_TIMEZONE)


def default_window() -> timedelta:
    return timedelta(minutes=config.ACTIVITY_WINDOW_MINUTES)


def current_reference_time(tz: tzinfo | None = None) -> datetime:
    return datetime.now(tz or reference_timezone())


def to_reference_time(now: datetime, tz: tzinfo) -> datetime:
    return now.replace(tzinfo=tz) if now.tzinfo is None else now.astimezone(tz)


def combine_appointment_timestamp(
    appointment_date: date | None,
    appointment_time: time | None,
    tz: tzinfo,
) -> datetime | None:
    if appointment_date is None or appointment_time is None:
        return None
    return datetime.combine(appointment_date, appointment_time.replace(tzinfo=None), tzinfo=tz)


def is_within_window(scheduled_at: datetime, now: datetime, window: timedelta, policy: str) -> bool:
    # Same-tzinfo datetimes compare by wall clock; UTC keeps DST transitions exact.
    scheduled_at = scheduled_at.astimezone(timezone.utc)
    now = now.astimezone(timezone.utc)
    if policy == FORWARD_POLICY:
        return scheduled_at <= now < scheduled_at + window
    if policy == BACKWARD_POLICY:
        return now - window <= scheduled_at <= now
    raise ValueError(f'Unknown activity window policy: {policy!r}')


def is_appointment_active(
    appointment_date: date | None,
    appointment_time: time | None,
    now: datetime,
    window: timedelta | None = None,
    policy: str | None = None,
    tz: tzinfo | None = None,
) -> bool:
    tz = tz or reference_timezone()
    scheduled_at = combine_appointment_timestamp(appointment_date, appointment_time, tz)
    if scheduled_at is None:
        return False

    now = to_reference_time(now, tz)
    return is_within_window(scheduled_at, now, window or default_window(), policy or config.ACTIVITY_WINDOW_POLICY)


def schedule_ordering() -> tuple:
    """Date then time ascending, with missing values sorted last."""
    return (
        Appointment.appointment_date.is_(None),
        Appointment.appointment_date.asc(),
        Appointment.appointment_time.is_(None),
        Appointment.appointment_time.asc(),
    )


def refresh_activity_statuses(
    db: Session,
    now: datetime,
    window: timedelta | None = None,
    policy: str | None = None,
    tz: tzinfo | None = None,
) -> list[dict]:
    """Recompute ``is_active`` for every appointment and return the schedule.

    The schedule is read with row locks where the backend supports them, and
    an appointment is only marked active if its date and time still match
    what was evaluated, so a reschedule racing the refresh stays inactive.
    The updates and the read-back are committed together before returning.
    """
    tz = tz or reference_timezone()
    window = window or default_window()
    policy = policy or config.ACTIVITY_WINDOW_POLICY

    schedule = db.execute(
        select(Appointment.id, Appointment.appointment_date, Appointment.appointment_time).with_for_update()
    ).all()
    active_rows = [
        {'row_id': appointment_id, 'row_date': appointment_date, 'row_time': appointment_time}
        for appointment_id, appointment_date, appointment_time in schedule
        if is_appointment_active(appointment_date, appointment_time, now, window, policy, tz)
    ]

    db.execute(
        update(Appointment)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    if active_rows:
        patient_table = Appointment.__table__
        db.execute(
            update(patient_table)
            .where(
                patient_table.c.id == bindparam('row_id'),
                patient_table.c.appointment_date == bindparam('row_date'),
                patient_table.c.appointment_time == bindparam('row_time'),
            )
            .values(is_active=True),
            active_rows,
        )

    rows = db.execute(
        select(
            Appointment.id,
            Appointment.name,
            Appointment.appointment_date,
            Appointment.appointment_time,
            Appointment.is_active,
        ).order_by(*schedule_ordering())
    ).all()
    db.commit()

    active_count = sum(1 for row in rows if row.is_active)
    logger.info('Refreshed appointment statuses: %s active of %s', active_count, len(rows))

    statuses = []
    for appointment_id, name, appointment_date, appointment_time, is_active in rows:
        scheduled_at = combine_appointment_timestamp(appointment_date, appointment_time, tz)
        statuses.append(
            {
                'id': appointment_id,
                'name': name,
                'appointment_date': appointment_date,
                'appointment_time': appointment_time,
                'appointment_timestamp': scheduled_at.isoformat() if scheduled_at else None,
                'status': ACTIVE_STATUS if is_active else INACTIVE_STATUS,
            }
        )
    return statuses
