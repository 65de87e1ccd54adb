# backend/idbroker/services/email_console.py
import logging
from typing import Any

logger = logging.getLogger(__name__)


class ConsoleEmailService:
    """Email service that writes outgoing mail to the log instead of sending it."""

    def __init__(self, from_address: str, *_: Any, **__: Any) -> None:
        self.from_address = from_address

    def send_email(self, to_email: str, subject: str, body_text: str) -> bool:
        logger.info(
            "Email from %s to %s\nSubject: %s\n\n%s",
            self.from_address,
            to_email,
            subject,
            body_text,
        )
        return True
