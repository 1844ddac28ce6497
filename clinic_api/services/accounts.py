import hmac
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_api.core.errors import BadRequestError, ConflictError, InternalError, NotFoundError, UnauthorizedError
from clinic_api.models.account import Account
from clinic_api.services.notifications import NotificationError


logger = logging.getLogger(__name__)

ACCOUNT_FIELDS = ('name', 'email', 'hospital', 'degree', 'password', 'doctor_id')


def passwords_match(supplied: str, stored: str) -> bool:
    return hmac.compare_digest(supplied.encode('utf-8'), stored.encode('utf-8'))


def find_account(db: Session, doctor_id: str) -> Account | None:
    return db.query(Account).filter(Account.doctor_id == doctor_id).first()


def get_account_or_404(db: Session, doctor_id: str) -> Account:
    account = find_account(db, doctor_id)
    if account is None:
        raise NotFoundError('Doctor ID not found')
    return account


def _raise_if_taken(db: Session, email: str, doctor_id: str) -> None:
    if db.query(Account.id).filter(Account.email == email).first():
        raise ConflictError('Email already exists')
    if db.query(Account.id).filter(Account.doctor_id == doctor_id).first():
        raise ConflictError('Doctor ID already exists')


def create_account(db: Session, fields: dict, notifier) -> Account:
    values = {name: fields.get(name) for name in ACCOUNT_FIELDS}
    _raise_if_taken(db, values['email'], values['doctor_id'])

    account = Account(**values, is_first_login=True)
    db.add(account)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent insert of the same email or doctor_id.
        db.rollback()
        _raise_if_taken(db, values['email'], values['doctor_id'])
        raise ConflictError('Email or Doctor ID already exists') from exc
    db.refresh(account)
    logger.info('Created account %s', account.doctor_id)

    try:
        notifier.send_credentials(account.email, account.doctor_id, values['password'])
    except NotificationError as exc:
        logger.exception('Credential notification failed for account %s', account.doctor_id)
        raise InternalError('Internal server error') from exc

    return account


def authenticate(db: Session, doctor_id: str, password: str) -> Account:
    account = get_account_or_404(db, doctor_id)
    if not passwords_match(password, account.password):
        raise UnauthorizedError('Invalid password')
    return account


def change_password(
    db: Session,
    doctor_id: str,
    current_password: str,
    new_password: str,
    confirm_password: str | None = None,
) -> Account:
    account = get_account_or_404(db, doctor_id)

    if not passwords_match(current_password, account.password):
        raise UnauthorizedError('Current password is incorrect')

    if not new_password:
        raise BadRequestError('New password is required')

    if confirm_password is not None and new_password != confirm_password:
        raise BadRequestError('New password and confirm password do not match')

    account.password = new_password
    account.is_first_login = False
    db.commit()
    db.refresh(account)
    logger.info('Changed password for account %s', doctor_id)

    return account


def list_account_names(db: Session) -> list[str]:
    return [name for (name,) in db.query(Account.name).order_by(Account.name.asc()).all()]
