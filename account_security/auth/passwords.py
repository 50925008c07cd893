"""Password hashing and password policy"""

import re

import bcrypt

from ..models.password import PasswordCheck
from ..utils.exceptions import WeakPasswordError

DEFAULT_MIN_LENGTH = 8
# bcrypt only accepts up to 72 bytes of input
MAX_PASSWORD_BYTES = 72

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt"""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False


def validate_password(password: str, min_length: int = DEFAULT_MIN_LENGTH) -> PasswordCheck:
    """
    Check a password against the policy.

    Rules run in a fixed order (minimum length, maximum bytes, uppercase,
    lowercase, digit, symbol) and the first failing rule is reported.
    """
    if len(password) < min_length:
        return PasswordCheck(
            valid=False,
            reason="too_short",
            message=f"Password must be at least {min_length} characters long",
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return PasswordCheck(
            valid=False,
            reason="too_long",
            message=f"Password must be at most {MAX_PASSWORD_BYTES} bytes long",
        )
    if not _UPPER.search(password):
        return PasswordCheck(
            valid=False,
            reason="missing_uppercase",
            message="Password must include at least one uppercase letter",
        )
    if not _LOWER.search(password):
        return PasswordCheck(
            valid=False,
            reason="missing_lowercase",
            message="Password must include at least one lowercase letter",
        )
    if not _DIGIT.search(password):
        return PasswordCheck(
            valid=False,
            reason="missing_digit",
            message="Password must include at least one number",
        )
    if not _SYMBOL.search(password):
        return PasswordCheck(
            valid=False,
            reason="missing_symbol",
            message="Password must include at least one special character",
        )
    return PasswordCheck(valid=True)


def enforce_password_policy(password: str, min_length: int = DEFAULT_MIN_LENGTH) -> None:
    """Raise WeakPasswordError when ``password`` fails the policy"""
    check = validate_password(password, min_length)
    if not check.valid:
        raise WeakPasswordError(check.message, reason=check.reason)
