"""Persistence backends and table keys"""

from .kv_store import (
    CURRENT_SESSION_KEY,
    LOCKED_ACCOUNTS_KEY,
    LOGIN_ATTEMPTS_KEY,
    PASSWORD_RESET_TOKENS_KEY,
    USERS_KEY,
    VERIFICATION_TOKENS_KEY,
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    create_store,
)

__all__ = [
    "CURRENT_SESSION_KEY",
    "LOCKED_ACCOUNTS_KEY",
    "LOGIN_ATTEMPTS_KEY",
    "PASSWORD_RESET_TOKENS_KEY",
    "USERS_KEY",
    "VERIFICATION_TOKENS_KEY",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "create_store",
]
