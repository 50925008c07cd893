"""Data models for accounts, tokens and login throttling"""

from .attempt import AccountLock, LoginAttempt
from .password import PasswordCheck
from .token import IssuedToken, PasswordResetToken, TokenKind, VerificationToken
from .user import SessionUser, UserRecord

__all__ = [
    "AccountLock",
    "LoginAttempt",
    "PasswordCheck",
    "IssuedToken",
    "PasswordResetToken",
    "TokenKind",
    "VerificationToken",
    "SessionUser",
    "UserRecord",
]
