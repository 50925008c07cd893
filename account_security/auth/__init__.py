"""Authentication helpers: email normalization, password policy and hashing"""

from .emails import normalize_email
from .passwords import hash_password, validate_password, verify_password

__all__ = [
    "normalize_email",
    "hash_password",
    "validate_password",
    "verify_password",
]
