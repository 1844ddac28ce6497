import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from clinic_api.core.errors import InternalError
from clinic_api.database import SessionLocal, prepare_database
from clinic_api.services.activity import current_reference_time
from clinic_api.services.notifications import CredentialNotifier


logger = logging.getLogger(__name__)


def ensure_database_ready() -> None:
    try:
        prepare_database()
    except SQLAlchemyError as exc:
        logger.exception('Database schema preparation failed')
        raise InternalError('Internal server error') from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Callable[[], datetime]:
    return current_reference_time


def get_notifier() -> CredentialNotifier:
    return CredentialNotifier()
