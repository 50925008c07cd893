"""
Key-value persistence backends.

Each key is a logical table (users, verification_tokens, ...) holding a
serialized JSON document. Reads fail open: an unreadable table is absent.
"""

import shutil
import tempfile
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Protocol, Union

from ..utils.config import StorageSettings
from ..utils.exceptions import StorageError
from ..utils.logger import get_logger

logger = get_logger(__name__)

USERS_KEY = "users"
VERIFICATION_TOKENS_KEY = "verification_tokens"
PASSWORD_RESET_TOKENS_KEY = "password_reset_tokens"
LOGIN_ATTEMPTS_KEY = "login_attempts"
LOCKED_ACCOUNTS_KEY = "locked_accounts"
CURRENT_SESSION_KEY = "current_session"


class KeyValueStore(Protocol):
    """Persistence collaborator used by every store"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Dict-backed store for tests and ephemeral use"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileKeyValueStore:
    """One ``<key>.json`` file per table under ``data_dir``, written atomically"""

    def __init__(self, data_dir: Union[str, Path] = "data"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(exist_ok=True, parents=True)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self.data_dir / f"{safe}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read table", key=key, path=str(path), error=str(e))
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            with tempfile.NamedTemporaryFile(
                mode="w", dir=str(path.parent), delete=False, encoding="utf-8"
            ) as tf:
                tf.write(value)
                temp_path = Path(tf.name)
        except OSError as e:
            raise StorageError(f"Failed to save {key} to {path}: {e}") from e

        try:
            # Atomic move/replace
            shutil.move(str(temp_path), str(path))
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"Failed to save {key} to {path}: {e}") from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Failed to remove {key} at {path}: {e}") from e


def create_store(settings: StorageSettings) -> KeyValueStore:
    """Build the backend named in the storage settings"""
    if settings.backend == "memory":
        return MemoryKeyValueStore()
    return JsonFileKeyValueStore(settings.data_dir)
