"""Out-of-band delivery of verification and password reset tokens"""

from typing import List, NamedTuple, Protocol

from ..utils.logger import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    def send_verification(self, email: str, token: str) -> None:
        ...

    def send_password_reset(self, email: str, token: str) -> None:
        ...


class LoggingNotifier:
    """Stub notifier: writes the token to the log instead of sending email"""

    def send_verification(self, email: str, token: str) -> None:
        logger.info("Verification email", email=email, token=token, deliver_token=True)

    def send_password_reset(self, email: str, token: str) -> None:
        logger.info("Password reset email", email=email, token=token, deliver_token=True)


class OutboxMessage(NamedTuple):
    kind: str
    email: str
    token: str


class OutboxNotifier:
    """Keeps sent messages in memory"""

    def __init__(self):
        self.outbox: List[OutboxMessage] = []

    def send_verification(self, email: str, token: str) -> None:
        self.outbox.append(OutboxMessage("verification", email, token))

    def send_password_reset(self, email: str, token: str) -> None:
        self.outbox.append(OutboxMessage("reset", email, token))

    def last_token(self, kind: str, email: str) -> str:
        """Most recent token of ``kind`` sent to ``email``"""
        for message in reversed(self.outbox):
            if message.kind == kind and message.email == email:
                return message.token
        raise LookupError(f"No {kind} message sent to {email}")
