"""
Notification boundary - fire-and-forget email about schedule progress.

Delivery failures are logged and never stop a run.
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Sends a message to an address."""

    @abstractmethod
    def send_email(self, address: str, message: str) -> None:
        pass


class LoggingNotifier(Notifier):
    """Default notifier: writes the message to the log."""

    def send_email(self, address: str, message: str) -> None:
        logger.info(f"Notification for {address}: {message}")


class SmtpNotifier(Notifier):
    """Sends notifications through an SMTP relay."""

    def __init__(self, host: str, port: int = 25, sender: str = "flowsched@localhost", timeout: float = 10.0):
        self.host = host
        self.port = port
        self.sender = sender
        self.timeout = timeout

    def send_email(self, address: str, message: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = address
        msg["Subject"] = message.splitlines()[0][:120] if message else "flowsched"
        msg.set_content(message)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.send_message(msg)


def notify(notifier: Optional[Notifier], address: str, message: str) -> bool:
    """
    Send a notification, logging instead of raising on failure.

    Returns:
        True if the notifier accepted the message
    """
    if notifier is None or not address:
        return False
    try:
        notifier.send_email(address, message)
    except Exception as e:
        logger.warning(f"Failed to notify {address}: {e}")
        return False
    return True
