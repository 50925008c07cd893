"""Tests for login, registration, verification and password reset flows"""

import unicodedata
from datetime import datetime, timedelta

import pytest

from account_security.app import create_session_manager
from account_security.auth import passwords
from account_security.auth.emails import normalize_email
from account_security.storage import CURRENT_SESSION_KEY
from account_security.utils.exceptions import (
    AccountLockedError,
    DuplicateEmailError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
    NotAuthenticatedError,
    TokenExpiredError,
    UserNotFoundError,
    WeakPasswordError,
    WrongPasswordError,
)

STRONG_PASSWORD = "Str0ng!Pass"


def register_verified(manager, outbox, email, password=STRONG_PASSWORD, name="Test User"):
    manager.register(name, email, password)
    manager.verify_email(outbox.last_token("verification", email))
    manager.logout()


def test_register_signs_in_unverified_user(manager, outbox):
    user = manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    assert user.email == "a@b.com"
    assert user.name == "Ana"
    assert user.email_verified is False
    assert manager.current_user == user
    assert manager.is_authenticated
    assert outbox.last_token("verification", "a@b.com")


def test_session_user_excludes_password_material(manager):
    user = manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    assert "password_hash" not in user.model_dump()


def test_register_then_verify_then_login(manager, outbox):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    manager.verify_email(outbox.last_token("verification", "a@b.com"))
    manager.logout()

    user = manager.login("a@b.com", STRONG_PASSWORD)
    assert user.email_verified is True
    assert manager.current_user.email == "a@b.com"


def test_verify_refreshes_current_session(manager, outbox):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    manager.verify_email(outbox.last_token("verification", "a@b.com"))
    assert manager.current_user.email_verified is True


def test_verify_does_not_touch_other_session(manager, outbox):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    token_a = outbox.last_token("verification", "a@b.com")
    manager.register("Bob", "bob@b.com", STRONG_PASSWORD)
    verified = manager.verify_email(token_a)
    assert verified.email == "a@b.com"
    assert manager.current_user.email == "bob@b.com"
    assert manager.current_user.email_verified is False


def test_register_weak_password(manager, outbox):
    with pytest.raises(WeakPasswordError) as exc:
        manager.register("Ana", "a@b.com", "NoSpecial1A")
    assert exc.value.reason == "missing_symbol"
    assert not manager.is_authenticated
    assert outbox.outbox == []


def test_register_duplicate(manager):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    with pytest.raises(DuplicateEmailError):
        manager.register("Ana again", "A@B.com", STRONG_PASSWORD)


def test_weak_password_checked_before_duplicate(manager):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    with pytest.raises(WeakPasswordError):
        manager.register("Ana", "a@b.com", "weak")


def test_login_unverified_email(manager):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    manager.logout()
    with pytest.raises(EmailNotVerifiedError):
        manager.login("a@b.com", STRONG_PASSWORD)
    assert not manager.is_authenticated
    # Correct credentials are not counted as failures
    assert manager.attempts.attempt_count("a@b.com", manager.clock()) == 0


def test_login_wrong_password(manager, outbox):
    register_verified(manager, outbox, "a@b.com")
    with pytest.raises(WrongPasswordError):
        manager.login("a@b.com", "Wr0ng!Pass")
    assert manager.attempts.attempt_count("a@b.com", manager.clock()) == 1


def test_unknown_email_is_recorded_and_generic(manager):
    with pytest.raises(UserNotFoundError) as exc:
        manager.login("ghost@b.com", STRONG_PASSWORD)
    assert isinstance(exc.value, InvalidCredentialsError)
    assert manager.attempts.attempt_count("ghost@b.com", manager.clock()) == 1


def test_credential_failures_share_message(manager, outbox):
    register_verified(manager, outbox, "a@b.com")
    with pytest.raises(InvalidCredentialsError) as wrong:
        manager.login("a@b.com", "Wr0ng!Pass")
    with pytest.raises(InvalidCredentialsError) as missing:
        manager.login("ghost@b.com", "Wr0ng!Pass")
    assert str(wrong.value) == str(missing.value)


def test_lockout_after_five_failures(manager, outbox, t0):
    register_verified(manager, outbox, "x@y.com")
    for i in range(5):
        with pytest.raises(WrongPasswordError):
            manager.login("x@y.com", "Wr0ng!Pass", now=t0 + timedelta(seconds=i))

    with pytest.raises(AccountLockedError) as exc:
        manager.login("x@y.com", STRONG_PASSWORD, now=t0 + timedelta(seconds=5))
    assert exc.value.remaining_seconds > 0
    assert manager.is_account_locked("x@y.com", t0 + timedelta(seconds=5))
    assert manager.get_remaining_lock_time("x@y.com", t0 + timedelta(seconds=5)) == 1799


def test_lockout_for_unknown_email(manager, t0):
    for _ in range(5):
        with pytest.raises(UserNotFoundError):
            manager.login("ghost@b.com", "whatever", now=t0)
    assert manager.is_account_locked("ghost@b.com", t0)


def test_login_allowed_after_lock_expires(manager, outbox, t0):
    register_verified(manager, outbox, "x@y.com")
    for _ in range(5):
        with pytest.raises(WrongPasswordError):
            manager.login("x@y.com", "Wr0ng!Pass", now=t0)
    later = t0 + timedelta(minutes=30)
    assert not manager.is_account_locked("x@y.com", later)
    assert manager.login("x@y.com", STRONG_PASSWORD, now=later).email == "x@y.com"


def test_successful_login_clears_failures(manager, outbox, t0):
    register_verified(manager, outbox, "x@y.com")
    for _ in range(4):
        with pytest.raises(WrongPasswordError):
            manager.login("x@y.com", "Wr0ng!Pass", now=t0)
    manager.login("x@y.com", STRONG_PASSWORD, now=t0)
    assert manager.attempts.attempt_count("x@y.com", t0) == 0
    assert not manager.is_account_locked("x@y.com", t0)

    # A fresh failure starts counting from one again
    with pytest.raises(WrongPasswordError):
        manager.login("x@y.com", "Wr0ng!Pass", now=t0)
    assert not manager.is_account_locked("x@y.com", t0)
    assert manager.attempts.attempt_count("x@y.com", t0) == 1


def test_verify_email_invalid_and_expired(manager, outbox, t0):
    with pytest.raises(InvalidTokenError):
        manager.verify_email("bogus")
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    token = outbox.last_token("verification", "a@b.com")
    with pytest.raises(TokenExpiredError):
        manager.verify_email(token, now=t0 + timedelta(hours=24))


def test_resend_verification_requires_session(manager):
    with pytest.raises(NotAuthenticatedError):
        manager.resend_verification_email()


def test_resend_keeps_old_tokens_valid(manager, outbox):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    first = outbox.last_token("verification", "a@b.com")
    manager.resend_verification_email()
    second = outbox.last_token("verification", "a@b.com")
    assert first != second
    manager.verify_email(first)
    # Still live and single-use on its own
    manager.verify_email(second)
    with pytest.raises(InvalidTokenError):
        manager.verify_email(second)


def test_password_reset_round_trip(manager, outbox):
    register_verified(manager, outbox, "a@b.com")
    manager.request_password_reset("a@b.com")
    token = outbox.last_token("reset", "a@b.com")
    manager.reset_password(token, "N3w!Password")

    assert manager.login("a@b.com", "N3w!Password").email == "a@b.com"
    manager.logout()
    with pytest.raises(WrongPasswordError):
        manager.login("a@b.com", STRONG_PASSWORD)


def test_reset_token_single_use(manager, outbox):
    register_verified(manager, outbox, "a@b.com")
    manager.request_password_reset("a@b.com")
    token = outbox.last_token("reset", "a@b.com")
    manager.reset_password(token, "N3w!Password")
    with pytest.raises(InvalidOrExpiredTokenError):
        manager.reset_password(token, "An0ther!Password")


def test_reset_with_expired_token(manager, outbox, t0):
    register_verified(manager, outbox, "a@b.com")
    manager.request_password_reset("a@b.com", now=t0)
    token = outbox.last_token("reset", "a@b.com")
    with pytest.raises(InvalidOrExpiredTokenError):
        manager.reset_password(token, "N3w!Password", now=t0 + timedelta(days=1))


def test_reset_weak_password_keeps_token(manager, outbox):
    register_verified(manager, outbox, "a@b.com")
    manager.request_password_reset("a@b.com")
    token = outbox.last_token("reset", "a@b.com")
    with pytest.raises(WeakPasswordError):
        manager.reset_password(token, "weak")
    manager.reset_password(token, "N3w!Password")


def test_second_reset_request_invalidates_first(manager, outbox):
    register_verified(manager, outbox, "a@b.com")
    manager.request_password_reset("a@b.com")
    first = outbox.last_token("reset", "a@b.com")
    manager.request_password_reset("a@b.com")
    with pytest.raises(InvalidOrExpiredTokenError):
        manager.reset_password(first, "N3w!Password")


def test_reset_request_for_unknown_email_is_silent(manager, outbox):
    assert manager.request_password_reset("ghost@b.com") is None
    assert outbox.outbox == []


def test_reset_request_when_locked(manager, t0):
    for _ in range(5):
        with pytest.raises(UserNotFoundError):
            manager.login("ghost@b.com", "whatever", now=t0)
    with pytest.raises(AccountLockedError):
        manager.request_password_reset("ghost@b.com", now=t0)


def test_logout(manager, kv_store):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    manager.logout()
    assert manager.current_user is None
    assert kv_store.get(CURRENT_SESSION_KEY) is None
    # No failure modes
    manager.logout()


def test_session_restored_from_store(manager, settings, kv_store, outbox):
    user = manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    restored = create_session_manager(
        settings=settings, store=kv_store, notifier=outbox, configure_logging=False
    )
    assert restored.current_user == user


def test_stale_session_discarded(settings, kv_store):
    kv_store.set(
        CURRENT_SESSION_KEY,
        '{"id": "gone", "email": "gone@b.com", "name": "Gone", "email_verified": true}',
    )
    manager = create_session_manager(settings=settings, store=kv_store, configure_logging=False)
    assert manager.current_user is None
    assert kv_store.get(CURRENT_SESSION_KEY) is None


def test_notifier_failure_does_not_abort(settings, kv_store):
    class BrokenNotifier:
        def send_verification(self, email, token):
            raise RuntimeError("smtp down")

        def send_password_reset(self, email, token):
            raise RuntimeError("smtp down")

    manager = create_session_manager(
        settings=settings, store=kv_store, notifier=BrokenNotifier(), configure_logging=False
    )
    user = manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    assert manager.current_user == user


def test_purge_expired(manager, outbox, t0):
    manager.register("Ana", "a@b.com", STRONG_PASSWORD, now=t0)
    token = outbox.last_token("verification", "a@b.com")
    manager.purge_expired(now=t0 + timedelta(days=2))
    with pytest.raises(InvalidTokenError):
        manager.verify_email(token, now=t0)


def test_register_rejects_password_over_bcrypt_limit(manager):
    with pytest.raises(WeakPasswordError) as exc:
        manager.register("Ana", "long@b.com", "Aa1!" + "x" * 80)
    assert exc.value.reason == "too_long"
    assert manager.current_user is None


def test_reset_rejects_password_over_bcrypt_limit(manager, outbox):
    register_verified(manager, outbox, "a@b.com")
    manager.request_password_reset("a@b.com")
    token = outbox.last_token("reset", "a@b.com")
    with pytest.raises(WeakPasswordError) as exc:
        manager.reset_password(token, "Aa1!" + "é" * 40)
    assert exc.value.reason == "too_long"
    # Token survives the rejected attempt
    manager.reset_password(token, "N3w!Password")


def test_password_policy_runs_once_per_register(manager, monkeypatch):
    calls = []
    original = passwords.validate_password

    def counting(password, min_length=passwords.DEFAULT_MIN_LENGTH):
        calls.append(password)
        return original(password, min_length)

    monkeypatch.setattr(passwords, "validate_password", counting)
    manager.register("Ana", "a@b.com", STRONG_PASSWORD)
    assert calls == [STRONG_PASSWORD]


def test_decomposed_unicode_email_round_trip(manager, outbox):
    decomposed = unicodedata.normalize("NFD", "josé@b.com")
    key = normalize_email(decomposed)
    user = manager.register("José", decomposed, STRONG_PASSWORD)
    assert user.email == key
    manager.verify_email(outbox.last_token("verification", key))
    manager.logout()

    assert manager.login(decomposed, STRONG_PASSWORD).email == key
    manager.logout()
    composed = unicodedata.normalize("NFC", "josé@b.com")
    assert manager.login(composed, STRONG_PASSWORD).email == key


def test_unicode_email_forms_are_duplicates(manager):
    manager.register("José", unicodedata.normalize("NFD", "josé@b.com"), STRONG_PASSWORD)
    with pytest.raises(DuplicateEmailError):
        manager.register("Other", unicodedata.normalize("NFC", "JOSÉ@b.com"), STRONG_PASSWORD)


def test_naive_now_against_stored_failures(manager, t0):
    for _ in range(5):
        with pytest.raises(UserNotFoundError):
            manager.login("ghost@b.com", "whatever", now=t0)

    naive = datetime(2026, 1, 1, 12, 0)
    with pytest.raises(UserNotFoundError):
        manager.login("other@b.com", "x", now=naive)
    assert manager.is_account_locked("ghost@b.com", now=naive)
    assert manager.get_remaining_lock_time("ghost@b.com", now=naive) == 30 * 60
    with pytest.raises(AccountLockedError):
        manager.login("ghost@b.com", "whatever", now=naive)


def test_naive_now_against_stored_tokens(manager, outbox, t0):
    register_verified(manager, outbox, "a@b.com")
    manager.request_password_reset("a@b.com", now=t0)
    token = outbox.last_token("reset", "a@b.com")
    with pytest.raises(InvalidOrExpiredTokenError):
        manager.reset_password(token, "N3w!Password", now=datetime(2026, 1, 2, 12, 0))

    manager.request_password_reset("a@b.com", now=t0)
    token = outbox.last_token("reset", "a@b.com")
    manager.reset_password(token, "N3w!Password", now=datetime(2026, 1, 1, 13, 0))


def test_purge_drops_reset_tokens_for_unknown_emails(manager, t0):
    manager.request_password_reset("ghost@b.com", now=t0)
    assert len(manager.reset_tokens._load()) == 1
    manager.purge_expired(now=t0 + timedelta(days=2))
    assert manager.reset_tokens._load() == {}
