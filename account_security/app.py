"""Application wiring"""

from datetime import timedelta
from typing import Optional

from .auth.session_manager import SessionManager
from .safety.attempt_tracker import AttemptTracker
from .services.notifier import Notifier
from .services.token_store import TokenStore
from .services.user_store import UserStore
from .storage import KeyValueStore, create_store
from .utils.clock import Clock, utc_now
from .utils.config import Settings, load_settings
from .utils.logger import get_logger, setup_logger

logger = get_logger(__name__)


def create_session_manager(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    notifier: Optional[Notifier] = None,
    clock: Clock = utc_now,
    configure_logging: bool = True,
) -> SessionManager:
    """
    Build a session manager and its stores from settings.

    Args:
        settings: Loaded settings; read via load_settings() when omitted
        store: Persistence backend; built from settings.storage when omitted
        notifier: Token delivery; defaults to the logging stub
        clock: Source of the current time
        configure_logging: Whether to install the logging configuration
    """
    settings = settings or load_settings()

    if configure_logging:
        setup_logger(
            log_level=settings.logging.level,
            log_format=settings.logging.format,
            file_path=settings.logging.file_path,
            max_bytes=settings.logging.max_bytes,
            backup_count=settings.logging.backup_count,
        )

    security = settings.security
    store = store or create_store(settings.storage)

    users = UserStore(
        store,
        bcrypt_rounds=security.bcrypt_rounds,
        password_min_length=security.password_min_length,
    )
    attempts = AttemptTracker(
        store,
        max_attempts=security.max_attempts,
        window=timedelta(seconds=security.attempt_window_seconds),
        lockout_duration=timedelta(seconds=security.lockout_seconds),
        default_source=security.default_source,
    )

    manager = SessionManager(
        store=store,
        users=users,
        verification_tokens=TokenStore(store, "verification"),
        reset_tokens=TokenStore(store, "reset"),
        attempts=attempts,
        notifier=notifier,
        settings=security,
        clock=clock,
    )
    logger.info(
        "Account security initialized",
        storage_backend=settings.storage.backend,
        max_attempts=security.max_attempts,
        restored_session=manager.is_authenticated,
    )
    return manager
