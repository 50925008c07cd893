"""Account security: credential store, single-use tokens and login throttling"""

from .app import create_session_manager
from .auth.session_manager import SessionManager
from .models import SessionUser, UserRecord
from .utils.config import Settings, load_settings

__version__ = "1.0.0"

__all__ = [
    "create_session_manager",
    "SessionManager",
    "SessionUser",
    "UserRecord",
    "Settings",
    "load_settings",
]
