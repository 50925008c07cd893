from datetime import datetime, timezone

import pytest

from account_security.app import create_session_manager
from account_security.services.notifier import OutboxNotifier
from account_security.storage import MemoryKeyValueStore
from account_security.utils.config import SecuritySettings, Settings, StorageSettings

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def settings():
    # Minimum bcrypt cost keeps the suite fast
    return Settings(
        security=SecuritySettings(bcrypt_rounds=4),
        storage=StorageSettings(backend="memory"),
    )


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def outbox():
    return OutboxNotifier()


@pytest.fixture
def manager(settings, kv_store, outbox):
    return create_session_manager(
        settings=settings,
        store=kv_store,
        notifier=outbox,
        clock=lambda: T0,
        configure_logging=False,
    )
