import logging
import smtplib
from email.message import EmailMessage

from clinic_api.core import config


logger = logging.getLogger(__name__)

CREDENTIALS_SUBJECT = 'Your Doctor Credentials'


class NotificationError(Exception):
    pass


def build_credentials_message(sender: str, recipient: str, doctor_id: str, password: str) -> EmailMessage:
    message = EmailMessage()
    message['From'] = f'{config.EMAIL_FROM_NAME} <{sender}>'
    message['To'] = recipient
    message['Subject'] = CREDENTIALS_SUBJECT
    message.set_content(f'Doctor ID: {doctor_id}\nPassword: {password}')
    return message


class CredentialNotifier:
    """Delivers newly created account credentials by email over SMTP/SSL."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: int | None = None,
    ) -> None:
        self.host = host or config.SMTP_HOST
        self.port = port or config.SMTP_PORT
        self.username = username if username is not None else config.EMAIL_USER
        self.password = password if password is not None else config.EMAIL_PASS
        self.timeout = timeout or config.EMAIL_TIMEOUT_SECONDS

    @property
    def enabled(self) -> bool:
        return bool(self.username and self.password)

    def send_credentials(self, email: str, doctor_id: str, password: str) -> None:
        if not self.enabled:
            logger.warning('Email delivery is not configured; credentials for %s were not sent', doctor_id)
            return

        message = build_credentials_message(self.username, email, doctor_id, password)
        try:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f'Could not deliver credentials to {email}') from exc

        logger.info('Sent credentials for %s to %s', doctor_id, email)
