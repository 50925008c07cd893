"""Custom exceptions for the account security module"""

from typing import Optional


class AccountSecurityError(Exception):
    """Base exception for account security errors"""

    code = "account_security_error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)


class DuplicateEmailError(AccountSecurityError):
    """Email is already registered"""

    code = "duplicate_email"


class WeakPasswordError(AccountSecurityError):
    """Password does not satisfy the password policy"""

    code = "weak_password"

    def __init__(self, message: str, reason: str):
        self.reason = reason
        super().__init__(message)


class InvalidEmailError(AccountSecurityError):
    """Email address is malformed"""

    code = "invalid_email"


class InvalidCredentialsError(AccountSecurityError):
    """Email/password pair did not authenticate"""

    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class UserNotFoundError(InvalidCredentialsError):
    """No account exists for the email"""

    code = "user_not_found"


class WrongPasswordError(InvalidCredentialsError):
    """Password did not match the stored credential"""

    code = "wrong_password"


class EmailNotVerifiedError(AccountSecurityError):
    """Credentials are correct but the email has not been verified"""

    code = "email_not_verified"


class AccountLockedError(AccountSecurityError):
    """Too many failed attempts; account is temporarily locked"""

    code = "account_locked"

    def __init__(self, message: str, remaining_seconds: int):
        self.remaining_seconds = remaining_seconds
        super().__init__(message)


class InvalidTokenError(AccountSecurityError):
    """Token is unknown or already consumed"""

    code = "invalid_token"


class TokenExpiredError(AccountSecurityError):
    """Token is past its expiry"""

    code = "expired"


class InvalidOrExpiredTokenError(AccountSecurityError):
    """Password reset token could not be used"""

    code = "invalid_or_expired_token"


class NotAuthenticatedError(AccountSecurityError):
    """Operation requires an active session"""

    code = "not_authenticated"


class StorageError(AccountSecurityError):
    """Persistence backend could not be written"""

    code = "storage_error"


class ConfigError(AccountSecurityError):
    """Configuration error"""

    code = "config_error"
