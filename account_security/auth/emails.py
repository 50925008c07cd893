"""Email normalization"""

import unicodedata

from email_validator import EmailNotValidError, validate_email


def normalize_email(email: str) -> str:
    """
    Canonical lookup key for an email address.

    Valid addresses take email-validator's normalized form (the same one
    ``EmailStr`` stores), lower-cased. Anything else is stripped,
    NFC-composed and lower-cased so it can still key failed attempts.
    """
    value = unicodedata.normalize("NFC", (email or "").strip())
    try:
        return validate_email(value, check_deliverability=False).normalized.lower()
    except EmailNotValidError:
        return value.lower()
