"""Login throttling records"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LoginAttempt(BaseModel):
    """A failed login attempt"""

    model_config = ConfigDict(frozen=True)

    email: str
    timestamp: datetime
    source: str = "unknown"


class AccountLock(BaseModel):
    """Temporary lock on an email after too many failures"""

    model_config = ConfigDict(frozen=True)

    email: str
    locked_until: datetime

    def is_active(self, now: datetime) -> bool:
        return self.locked_until > now
