"""
Session manager: the caller-facing account operations.

Orchestrates the credential store, the two token stores and the attempt
tracker, and holds the currently authenticated user. Every operation runs
under one re-entrant lock so check-then-act sequences (duplicate check then
insert, lock check then record) are atomic within the process.
"""

from datetime import datetime, timedelta
from threading import RLock
from typing import Optional

from ..models.user import SessionUser
from ..safety.attempt_tracker import AttemptTracker
from ..services.notifier import LoggingNotifier, Notifier
from ..services.token_store import TokenStore
from ..services.user_store import UserStore
from ..storage import CURRENT_SESSION_KEY, KeyValueStore
from ..storage.tables import load_record, save_record
from ..utils.clock import Clock, ensure_utc, utc_now
from ..utils.config import SecuritySettings
from ..utils.exceptions import (
    AccountLockedError,
    EmailNotVerifiedError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
    NotAuthenticatedError,
    TokenExpiredError,
    UserNotFoundError,
    WrongPasswordError,
)
from ..utils.logger import get_logger
from .emails import normalize_email
from .passwords import enforce_password_policy, hash_password, verify_password

logger = get_logger(__name__)

# Compared against when the email is unknown so both failure paths cost a bcrypt check
_DUMMY_PASSWORD = "not-a-real-password"


class SessionManager:
    """Login, registration, verification and password reset for one session"""

    def __init__(
        self,
        store: KeyValueStore,
        users: UserStore,
        verification_tokens: TokenStore,
        reset_tokens: TokenStore,
        attempts: AttemptTracker,
        notifier: Optional[Notifier] = None,
        settings: Optional[SecuritySettings] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.users = users
        self.verification_tokens = verification_tokens
        self.reset_tokens = reset_tokens
        self.attempts = attempts
        self.notifier = notifier or LoggingNotifier()
        self.settings = settings or SecuritySettings()
        self.clock = clock
        self.lock = RLock()
        self._dummy_hash: Optional[str] = None
        self._current: Optional[SessionUser] = self._restore_session()

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    def _restore_session(self) -> Optional[SessionUser]:
        session = load_record(self.store, CURRENT_SESSION_KEY, SessionUser)
        if session is None:
            return None
        user = self.users.find_by_email(session.email)
        if user is None or user.id != session.id:
            # Stale session pointing to missing user
            logger.warning("Discarding stale session", email=session.email)
            self.store.remove(CURRENT_SESSION_KEY)
            return None
        return user.to_session_user()

    def _set_session(self, user: SessionUser) -> None:
        save_record(self.store, CURRENT_SESSION_KEY, user)
        self._current = user

    @property
    def current_user(self) -> Optional[SessionUser]:
        return self._current

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now or self.clock())

    def _ensure_unlocked(self, email: str, now: datetime) -> None:
        if self.attempts.is_locked(email, now):
            remaining = self.attempts.remaining_lock_seconds(email, now)
            raise AccountLockedError(
                f"Account temporarily locked. Try again in {remaining} seconds",
                remaining_seconds=remaining,
            )

    def _dummy_verify(self, password: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = hash_password(_DUMMY_PASSWORD, self.settings.bcrypt_rounds)
        verify_password(password, self._dummy_hash)

    def _notify(self, kind: str, email: str, token: str) -> None:
        try:
            if kind == "verification":
                self.notifier.send_verification(email, token)
            else:
                self.notifier.send_password_reset(email, token)
        except Exception as e:
            logger.error("Notification failed", kind=kind, email=email, error=str(e))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def login(
        self,
        email: str,
        password: str,
        now: Optional[datetime] = None,
        source: Optional[str] = None,
    ) -> SessionUser:
        """
        Authenticate and establish the session.

        Raises:
            AccountLockedError: too many recent failures
            UserNotFoundError / WrongPasswordError: bad credentials (failure recorded)
            EmailNotVerifiedError: correct credentials, unverified email (nothing recorded)
        """
        now = self._now(now)
        email = normalize_email(email)
        with self.lock:
            self._ensure_unlocked(email, now)

            user = self.users.find_by_email(email)
            if user is None:
                self._dummy_verify(password)
                self.attempts.record_failure(email, now, source)
                raise UserNotFoundError()

            if not verify_password(password, user.password_hash):
                self.attempts.record_failure(email, now, source)
                raise WrongPasswordError()

            if not user.email_verified:
                raise EmailNotVerifiedError("Email address has not been verified")

            self.attempts.clear(email)
            session_user = user.to_session_user()
            self._set_session(session_user)
            logger.info("Login succeeded", user_id=user.id, email=email)
            return session_user

    def register(
        self,
        name: str,
        email: str,
        password: str,
        now: Optional[datetime] = None,
    ) -> SessionUser:
        """Create an unverified account, send its verification token and sign it in"""
        now = self._now(now)
        with self.lock:
            enforce_password_policy(password, self.settings.password_min_length)
            user = self.users.register(name, email, password, now, check_policy=False)
            token = self.verification_tokens.issue(
                user.email,
                timedelta(seconds=self.settings.verification_token_ttl_seconds),
                now,
            )
            self._notify("verification", user.email, token)
            session_user = user.to_session_user()
            self._set_session(session_user)
            return session_user

    def resend_verification_email(self, now: Optional[datetime] = None) -> None:
        """Issue another verification token for the signed-in user; older tokens stay valid"""
        now = self._now(now)
        with self.lock:
            if self._current is None:
                raise NotAuthenticatedError("Sign in to resend the verification email")
            email = self._current.email
            token = self.verification_tokens.issue(
                email,
                timedelta(seconds=self.settings.verification_token_ttl_seconds),
                now,
            )
            self._notify("verification", email, token)

    def verify_email(self, token: str, now: Optional[datetime] = None) -> SessionUser:
        """
        Consume a verification token and mark its account verified.

        Raises:
            InvalidTokenError: unknown or already used token
            TokenExpiredError: token past its expiry
        """
        now = self._now(now)
        with self.lock:
            email = self.verification_tokens.consume(token, now)
            user = self.users.mark_verified(email)
            session_user = user.to_session_user()
            if self._current is not None and normalize_email(self._current.email) == email:
                self._set_session(session_user)
            return session_user

    def request_password_reset(self, email: str, now: Optional[datetime] = None) -> None:
        """
        Issue a reset token for ``email``.

        The caller sees the same outcome whether or not the account exists;
        the token is only delivered to existing accounts. Tokens for unknown
        emails stay in the reset table until they expire, so deployments must
        call ``purge_expired`` periodically to bound its size.
        """
        now = self._now(now)
        email = normalize_email(email)
        with self.lock:
            self._ensure_unlocked(email, now)
            token = self.reset_tokens.issue(
                email,
                timedelta(seconds=self.settings.reset_token_ttl_seconds),
                now,
            )
            if self.users.find_by_email(email) is None:
                logger.info("Password reset requested for unknown email", email=email)
                return
            self._notify("reset", email, token)

    def reset_password(self, token: str, new_password: str, now: Optional[datetime] = None) -> None:
        """
        Set a new password using a reset token.

        Raises:
            WeakPasswordError: new password fails the policy (token not consumed)
            InvalidOrExpiredTokenError: token unknown, used or expired
        """
        now = self._now(now)
        with self.lock:
            enforce_password_policy(new_password, self.settings.password_min_length)
            try:
                email = self.reset_tokens.consume(token, now)
            except (InvalidTokenError, TokenExpiredError) as e:
                raise InvalidOrExpiredTokenError("Invalid or expired reset token") from e
            try:
                self.users.update_password(email, new_password, check_policy=False)
            except UserNotFoundError as e:
                raise InvalidOrExpiredTokenError("Invalid or expired reset token") from e

    def logout(self) -> None:
        """Clear the session"""
        with self.lock:
            if self._current is not None:
                logger.info("Logged out", user_id=self._current.id)
            self._current = None
            self.store.remove(CURRENT_SESSION_KEY)

    # ------------------------------------------------------------------
    # Queries and maintenance
    # ------------------------------------------------------------------

    def is_account_locked(self, email: str, now: Optional[datetime] = None) -> bool:
        return self.attempts.is_locked(email, self._now(now))

    def get_remaining_lock_time(self, email: str, now: Optional[datetime] = None) -> int:
        """Seconds until the account unlocks, 0 if not locked"""
        return self.attempts.remaining_lock_seconds(email, self._now(now))

    def purge_expired(self, now: Optional[datetime] = None) -> None:
        """Sweep expired tokens, stale attempts and elapsed locks"""
        now = self._now(now)
        with self.lock:
            removed = self.verification_tokens.purge_expired(now)
            removed += self.reset_tokens.purge_expired(now)
            self.attempts.purge_expired(now)
        logger.debug("Expired records purged", expired_removed=removed)
