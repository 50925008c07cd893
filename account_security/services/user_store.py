"""
Credential store: email-keyed user records persisted in the ``users`` table.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError

from ..auth.emails import normalize_email
from ..auth.passwords import DEFAULT_MIN_LENGTH, enforce_password_policy, hash_password
from ..models.user import UserRecord
from ..storage import USERS_KEY, KeyValueStore
from ..storage.tables import load_records, save_records
from ..utils.clock import ensure_utc
from ..utils.exceptions import (
    DuplicateEmailError,
    InvalidEmailError,
    UserNotFoundError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class UserStore:
    """Credential store backed by a key-value table"""

    def __init__(
        self,
        store: KeyValueStore,
        bcrypt_rounds: int = 12,
        password_min_length: int = DEFAULT_MIN_LENGTH,
    ):
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds
        self.password_min_length = password_min_length

    def load_users(self) -> List[UserRecord]:
        """Load all users from storage"""
        return load_records(self.store, USERS_KEY, UserRecord)

    def save_users(self, users: List[UserRecord]) -> None:
        save_records(self.store, USERS_KEY, users)

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        """Find user by email"""
        email = normalize_email(email)
        return next((u for u in self.load_users() if normalize_email(u.email) == email), None)

    def register(
        self,
        name: str,
        email: str,
        password: str,
        now: Optional[datetime] = None,
        check_policy: bool = True,
    ) -> UserRecord:
        """
        Create a new unverified user.

        - Email must be unique (case-insensitive).
        - Password must pass the policy and is stored only as a bcrypt hash.
          Pass ``check_policy=False`` when the caller already enforced it.
        """
        email = normalize_email(email)
        users = self.load_users()
        if any(normalize_email(u.email) == email for u in users):
            raise DuplicateEmailError("Email is already registered")
        if check_policy:
            enforce_password_policy(password, self.password_min_length)

        try:
            user = UserRecord(
                email=email,
                name=name,
                password_hash=hash_password(password, self.bcrypt_rounds),
                email_verified=False,
                registered_at=ensure_utc(now),
            )
        except ValidationError as e:
            raise InvalidEmailError(f"Invalid email address: {email}") from e
        if user.email != email:
            # Keep the lookup key, not the validator's own normalization
            user = user.model_copy(update={"email": email})

        users.append(user)
        self.save_users(users)
        logger.info("User registered", user_id=user.id, email=user.email)
        return user

    def _update(self, email: str, **updates) -> UserRecord:
        email = normalize_email(email)
        users = self.load_users()
        for i, user in enumerate(users):
            if normalize_email(user.email) == email:
                updated = user.model_copy(update=updates)
                users[i] = updated
                self.save_users(users)
                return updated
        raise UserNotFoundError(f"No user registered with {email}")

    def update_password(self, email: str, new_password: str, check_policy: bool = True) -> UserRecord:
        """Replace the stored credential for an existing user"""
        if self.find_by_email(email) is None:
            raise UserNotFoundError(f"No user registered with {normalize_email(email)}")
        if check_policy:
            enforce_password_policy(new_password, self.password_min_length)
        user = self._update(email, password_hash=hash_password(new_password, self.bcrypt_rounds))
        logger.info("Password updated", user_id=user.id)
        return user

    def mark_verified(self, email: str) -> UserRecord:
        """Mark the user's email as verified (idempotent)"""
        user = self.find_by_email(email)
        if user is None:
            raise UserNotFoundError(f"No user registered with {normalize_email(email)}")
        if user.email_verified:
            return user
        user = self._update(email, email_verified=True)
        logger.info("Email verified", user_id=user.id)
        return user
