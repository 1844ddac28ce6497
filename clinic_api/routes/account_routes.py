import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.core.dependencies import ensure_database_ready, get_db, get_notifier
from clinic_api.core.errors import InternalError
from clinic_api.services import accounts
from clinic_api.services.notifications import CredentialNotifier

router = APIRouter(tags=['admin'])

logger = logging.getLogger(__name__)


class CreateAccountRequest(BaseModel):
    name: str
    email: str
    hospital: str | None = None
    degree: str | None = None
    password: str
    doctor_id: str

    @field_validator('name', 'doctor_id')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Field is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized or '@' not in normalized:
            raise ValueError('A valid email is required.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Password is required.')
        return value


class LoginRequest(BaseModel):
    doctor_id: str
    password: str

    @field_validator('doctor_id')
    @classmethod
    def strip_doctor_id(cls, value: str) -> str:
        return value.strip()


class ChangePasswordRequest(BaseModel):
    doctor_id: str
    password: str
    new_password: str = Field(alias='newPassword')
    confirm_password: str | None = Field(default=None, alias='confirmPassword')

    @field_validator('doctor_id')
    @classmethod
    def strip_doctor_id(cls, value: str) -> str:
        return value.strip()

    class Config:
        populate_by_name = True


class AccountResponse(BaseModel):
    id: int
    name: str
    email: str
    hospital: str | None = None
    degree: str | None = None
    doctor_id: str
    is_first_login: bool

    class Config:
        from_attributes = True


def _internal_error(db: Session, operation: str, exc: SQLAlchemyError) -> InternalError:
    db.rollback()
    logger.exception('%s failed', operation)
    return InternalError('Internal server error')


@router.post('/admin', status_code=status.HTTP_201_CREATED)
def create_admin(
    data: CreateAccountRequest,
    db: Session = Depends(get_db),
    notifier: CredentialNotifier = Depends(get_notifier),
):
    ensure_database_ready()

    try:
        account = accounts.create_account(db, data.model_dump(), notifier)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'Create admin', exc) from exc

    if notifier.enabled:
        message = 'Admin added and credentials emailed'
    else:
        message = 'Admin added; credential email is not configured'
    return {
        'message': message,
        'admin': AccountResponse.model_validate(account),
    }


@router.post('/login')
def login_doctor(data: LoginRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        account = accounts.authenticate(db, data.doctor_id, data.password)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'Login', exc) from exc

    return {
        'message': 'Login successful',
        'doctor': AccountResponse.model_validate(account),
    }


@router.post('/change-password')
def change_password(data: ChangePasswordRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        accounts.change_password(
            db,
            data.doctor_id,
            data.password,
            data.new_password,
            data.confirm_password,
        )
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'Change password', exc) from exc

    return {'message': 'Password changed successfully'}


@router.api_route('/doctor-name', methods=['GET', 'POST'])
def list_doctor_names(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        names = accounts.list_account_names(db)
    except SQLAlchemyError as exc:
        raise _internal_error(db, 'List doctor names', exc) from exc

    return {'message': 'Doctor names fetched successfully', 'doctor_names': names}
