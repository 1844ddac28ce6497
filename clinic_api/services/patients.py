import logging
from datetime import date

from sqlalchemy.orm import Session

from clinic_api.core.errors import NotFoundError
from clinic_api.models.account import Account
from clinic_api.models.patient import CLINICAL_FIELDS, Appointment
from clinic_api.services.activity import schedule_ordering


logger = logging.getLogger(__name__)

DEMOGRAPHIC_FIELDS = ('name', 'phone_number', 'address', 'age', 'gender', 'disease')
SCHEDULING_FIELDS = ('appointment_date', 'appointment_time')
UPDATABLE_FIELDS = SCHEDULING_FIELDS + CLINICAL_FIELDS
CREATABLE_FIELDS = DEMOGRAPHIC_FIELDS + SCHEDULING_FIELDS + ('doctor_id',) + CLINICAL_FIELDS


def get_appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFoundError('Patient not found')
    return appointment


def create_appointment(db: Session, fields: dict) -> Appointment:
    values = {name: fields.get(name) for name in CREATABLE_FIELDS}

    doctor_id = values['doctor_id']
    if doctor_id is not None and not db.query(Account.id).filter(Account.doctor_id == doctor_id).first():
        raise NotFoundError('Doctor ID not found')

    appointment = Appointment(**values, is_active=False)
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    logger.info('Created patient %s for doctor %s', appointment.id, doctor_id)

    return appointment


def list_appointments(db: Session) -> list[dict]:
    return [
        {'id': appointment_id, 'name': name}
        for appointment_id, name in db.query(Appointment.id, Appointment.name).all()
    ]


def list_by_doctor(db: Session, doctor_id: str) -> list[Appointment]:
    return (
        db.query(Appointment)
        .filter(Appointment.doctor_id == doctor_id)
        .order_by(*schedule_ordering())
        .all()
    )


def list_by_date(db: Session, appointment_date: date) -> list[Appointment]:
    return (
        db.query(Appointment)
        .filter(Appointment.appointment_date == appointment_date)
        .order_by(Appointment.appointment_time.is_(None), Appointment.appointment_time.asc())
        .all()
    )


def update_appointment(db: Session, appointment_id: int, fields: dict) -> Appointment:
    appointment = get_appointment_or_404(db, appointment_id)

    for name in UPDATABLE_FIELDS:
        setattr(appointment, name, fields.get(name))
    # A rescheduled appointment stays inactive until the next status refresh.
    appointment.is_active = False

    db.commit()
    db.refresh(appointment)
    logger.info('Updated patient %s', appointment_id)

    return appointment


def delete_appointment(db: Session, appointment_id: int) -> None:
    appointment = get_appointment_or_404(db, appointment_id)
    db.delete(appointment)
    db.commit()
    logger.info('Deleted patient %s', appointment_id)
