"""Credential, token and notification services"""

from .notifier import LoggingNotifier, Notifier, OutboxNotifier
from .token_store import TokenStore
from .user_store import UserStore

__all__ = [
    "LoggingNotifier",
    "Notifier",
    "OutboxNotifier",
    "TokenStore",
    "UserStore",
]
