import logging
from collections.abc import Callable
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.core import config
from clinic_api.core.dependencies import ensure_database_ready, get_clock, get_db
from clinic_api.core.errors import InternalError
from clinic_api.services import patients
from clinic_api.services.activity import reference_timezone, refresh_activity_statuses, to_reference_time

router = APIRouter(tags=['patients'])

logger = logging.getLogger(__name__)


class ClinicalDetails(BaseModel):
    initial_complaints: str | None = None
    medical_history: str | None = None
    family_history: str | None = None
    social_history: str | None = None
    on_medications: str | None = None
    vitals: str | None = None
    allergies: str | None = None
    surgeries: str | None = None
    location: str | None = None
    professional: str | None = None


class CreatePatientRequest(ClinicalDetails):
    name: str
    phone_number: str | None = None
    address: str | None = None
    age: int | None = None
    gender: str | None = None
    disease: str | None = None
    doctor_id: str | None = None
    appointment_date: date | None = None
    appointment_time: time | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient name is required.')
        return normalized

    @field_validator('doctor_id')
    @classmethod
    def validate_doctor_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class UpdatePatientRequest(ClinicalDetails):
    appointment_date: date | None = None
    appointment_time: time | None = None


class PatientSummaryResponse(BaseModel):
    id: int
    name: str


class PatientResponse(ClinicalDetails):
    id: int
    name: str
    phone_number: str | None = None
    address: str | None = None
    age: int | None = None
    gender: str | None = None
    disease: str | None = None
    doctor_id: str | None = None
    appointment_date: date | None = None
    appointment_time: time | None = None
    is_active: bool

    class Config:
        from_attributes = True


class PatientStatusResponse(BaseModel):
    id: int
    name: str
    appointment_date: date | None = None
    appointment_time: time | None = None
    appointment_timestamp: str | None = None
    status: str


def _internal_error(db: Session, operation: str, exc: SQLAlchemyError) -> InternalError:
    db.rollback()
    logger.exception('%s failed', operation)
    return InternalError('Internal server error')


@router.post('/create', status_code=status.HTTP_201_CREATED)
def create_patient(data: CreatePatientRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        patient = patients.create_appointment(db, data.model_dump())
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'Create patient', exc) from exc

    return {
        'message': 'Patient created successfully',
        'patient': PatientResponse.model_validate(patient),
    }


@router.get('/all')
def list_patients(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        summaries = patients.list_appointments(db)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'List patients', exc) from exc

    return {
        'message': 'Patients fetched successfully',
        'patients': [PatientSummaryResponse(**summary) for summary in summaries],
    }


@router.get('/by-doctor/{doctor_id}')
def list_patients_by_doctor(doctor_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointments = patients.list_by_doctor(db, doctor_id)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'List patients by doctor', exc) from exc

    return {
        'message': 'Patients fetched successfully',
        'patients': [PatientResponse.model_validate(appointment) for appointment in appointments],
    }


@router.get('/by-date/{appointment_date}')
def list_patients_by_date(appointment_date: date, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointments = patients.list_by_date(db, appointment_date)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'List patients by date', exc) from exc

    return {
        'message': 'Patients fetched successfully',
        'patients': [PatientResponse.model_validate(appointment) for appointment in appointments],
    }


@router.get('/patient/{patient_id}')
def get_patient(patient_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        patient = patients.get_appointment_or_404(db, patient_id)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'Get patient', exc) from exc

    return {
        'message': 'Patient fetched successfully',
        'patient': PatientResponse.model_validate(patient),
    }


@router.delete('/delete/{patient_id}')
def delete_patient(patient_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        patients.delete_appointment(db, patient_id)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'Delete patient', exc) from exc

    return {'message': 'Appointment deleted successfully'}


@router.put('/patients/{patient_id}')
def update_patient(patient_id: int, data: UpdatePatientRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        patient = patients.update_appointment(db, patient_id, data.model_dump())
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'Update patient', exc) from exc

    return {
        'message': 'Appointment updated successfully',
        'updated_patient': PatientResponse.model_validate(patient),
    }


@router.get('/update-status')
def update_patient_statuses(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    ensure_database_ready()

    tz = reference_timezone()
    now = to_reference_time(clock(), tz)

    try:
        statuses = refresh_activity_statuses(db, now, tz=tz)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'Update patient statuses', exc) from exc

    return {
        'message': 'Patient statuses updated successfully',
        'current_time': now.strftime('%Y-%m-%d %H:%M:%S'),
        'timezone': config.REFERENCE_TIMEZONE,
        'patients': [PatientStatusResponse(**row) for row in statuses],
    }
