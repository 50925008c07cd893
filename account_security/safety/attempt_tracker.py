"""Failed-login tracking and temporary account lockout"""

import math
from datetime import datetime, timedelta
from threading import RLock
from typing import Dict, List, Optional

from ..auth.emails import normalize_email
from ..models.attempt import AccountLock, LoginAttempt
from ..storage import LOCKED_ACCOUNTS_KEY, LOGIN_ATTEMPTS_KEY, KeyValueStore
from ..storage.tables import load_mapping, load_records, save_mapping, save_records
from ..utils.clock import ensure_utc
from ..utils.logger import get_logger

logger = get_logger(__name__)

MAX_ATTEMPTS = 5
ATTEMPT_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=30)


class AttemptTracker:
    """
    Sliding-window failure counter with timed lockout.

    Per email: Clear -> Accumulating (1..max_attempts-1 failures inside the
    window) -> Locked (max_attempts reached) -> Clear once ``locked_until``
    passes or the email logs in successfully.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_attempts: int = MAX_ATTEMPTS,
        window: timedelta = ATTEMPT_WINDOW,
        lockout_duration: timedelta = LOCKOUT_DURATION,
        default_source: str = "unknown",
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.window = window
        self.lockout_duration = lockout_duration
        self.default_source = default_source
        self.lock = RLock()

    def _load_attempts(self) -> List[LoginAttempt]:
        return load_records(self.store, LOGIN_ATTEMPTS_KEY, LoginAttempt)

    def _save_attempts(self, attempts: List[LoginAttempt]) -> None:
        save_records(self.store, LOGIN_ATTEMPTS_KEY, attempts)

    def _load_locks(self) -> Dict[str, AccountLock]:
        return load_mapping(self.store, LOCKED_ACCOUNTS_KEY, AccountLock)

    def _save_locks(self, locks: Dict[str, AccountLock]) -> None:
        save_mapping(self.store, LOCKED_ACCOUNTS_KEY, locks)

    def _in_window(self, attempt: LoginAttempt, now: datetime) -> bool:
        # An attempt exactly at the window boundary has expired
        return attempt.timestamp > now - self.window

    def record_failure(
        self,
        email: str,
        now: Optional[datetime] = None,
        source: Optional[str] = None,
    ) -> bool:
        """
        Record a failed login attempt.

        Returns:
            True if this failure locked the account
        """
        now = ensure_utc(now)
        email = normalize_email(email)
        with self.lock:
            attempts = [
                a for a in self._load_attempts()
                if a.email != email or self._in_window(a, now)
            ]
            attempts.append(
                LoginAttempt(email=email, timestamp=now, source=source or self.default_source)
            )
            self._save_attempts(attempts)

            count = sum(1 for a in attempts if a.email == email)
            if count < self.max_attempts:
                logger.info("Failed login recorded", email=email, failed_attempts=count)
                return False

            locks = self._load_locks()
            locks[email] = AccountLock(email=email, locked_until=now + self.lockout_duration)
            self._save_locks(locks)
            logger.warning(
                "Account locked",
                email=email,
                failed_attempts=count,
                locked_until=locks[email].locked_until.isoformat(),
            )
            return True

    def _active_lock(self, email: str, now: datetime) -> Optional[AccountLock]:
        """Return the live lock for ``email``, purging expired locks on the way"""
        locks = self._load_locks()
        live = {k: v for k, v in locks.items() if v.is_active(now)}
        if len(live) != len(locks):
            self._save_locks(live)
        return live.get(email)

    def is_locked(self, email: str, now: Optional[datetime] = None) -> bool:
        """True while a lock exists with ``locked_until > now``"""
        now = ensure_utc(now)
        with self.lock:
            return self._active_lock(normalize_email(email), now) is not None

    def remaining_lock_seconds(self, email: str, now: Optional[datetime] = None) -> int:
        """Whole seconds until the lock lifts (rounded up), or 0 when not locked"""
        now = ensure_utc(now)
        with self.lock:
            lock = self._active_lock(normalize_email(email), now)
        if lock is None:
            return 0
        return max(0, math.ceil((lock.locked_until - now).total_seconds()))

    def attempt_count(self, email: str, now: Optional[datetime] = None) -> int:
        """Failed attempts for ``email`` still inside the window"""
        now = ensure_utc(now)
        email = normalize_email(email)
        with self.lock:
            return sum(
                1 for a in self._load_attempts()
                if a.email == email and self._in_window(a, now)
            )

    def clear(self, email: str) -> None:
        """Forget all attempts and any lock for ``email``"""
        email = normalize_email(email)
        with self.lock:
            attempts = self._load_attempts()
            remaining = [a for a in attempts if a.email != email]
            if len(remaining) != len(attempts):
                self._save_attempts(remaining)
            locks = self._load_locks()
            if locks.pop(email, None) is not None:
                self._save_locks(locks)

    def purge_expired(self, now: Optional[datetime] = None) -> None:
        """Drop attempts outside the window and locks that have elapsed"""
        now = ensure_utc(now)
        with self.lock:
            attempts = self._load_attempts()
            fresh = [a for a in attempts if self._in_window(a, now)]
            if len(fresh) != len(attempts):
                self._save_attempts(fresh)
            self._active_lock("", now)
