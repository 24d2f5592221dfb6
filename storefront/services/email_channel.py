# storefront/services/email_channel.py
import smtplib
from email.message import EmailMessage

from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class EmailChannel:
    """
    Wysylka maili przez SMTP.
    Bez SMTP_HOST (dev, testy) wiadomosc jest tylko logowana.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        user: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        timeout: int = 10,
    ):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = user if user is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.sender = sender or settings.EMAIL_FROM
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def send(self, to: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.info(f"[EMAIL disabled] to={to} subject={subject!r}")
            return False

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password or "")
            smtp.send_message(message)

        logger.info(f"Email '{subject}' sent to {to}")
        return True
