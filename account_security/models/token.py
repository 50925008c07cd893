"""Single-use token records"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

TokenKind = Literal["verification", "reset"]


class IssuedToken(BaseModel):
    """Token bound to an email, invalid at or after ``expires_at``"""

    model_config = ConfigDict(frozen=True)

    token: str
    email: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class VerificationToken(IssuedToken):
    """Email verification token (several may be live per email)"""


class PasswordResetToken(IssuedToken):
    """Password reset token (at most one live per email)"""
