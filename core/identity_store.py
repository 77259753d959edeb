"""
Identity store: which player "I" am in each room

A client remembers its own player id per room code so that reloading
the page keeps it in the game. Keys look like "player_ABC123".

Two backends:
- MemoryIdentityStore: per process, handy for tests and bots
- FileIdentityStore: JSON file, survives restarts of the same client

default_identity_store() opens the file named by Settings.identity_store_path.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union
from uuid import UUID

from services.naming_service import normalize_room_code
from database import Settings, get_settings

logger = logging.getLogger(__name__)


def identity_key(room_code: str) -> str:
    return f"player_{normalize_room_code(room_code)}"


class IdentityStore(ABC):
    """Opaque key/value storage for the local player's id"""

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def _write(self, key: str, value: Optional[str]) -> None:
        """Store value under key; None removes the key"""

    def get_local_player_id(self, room_code: str) -> Optional[UUID]:
        value = self._read(identity_key(room_code))
        if value is None:
            return None
        try:
            return UUID(value)
        except ValueError:
            logger.warning(f"Ignoring malformed player id stored for room {room_code}: {value!r}")
            return None

    def set_local_player_id(self, room_code: str, player_id: Union[UUID, str]) -> None:
        self._write(identity_key(room_code), str(UUID(str(player_id))))

    def clear_local_player_id(self, room_code: str) -> None:
        self._write(identity_key(room_code), None)


class MemoryIdentityStore(IdentityStore):

    def __init__(self):
        self._values: Dict[str, str] = {}

    def _read(self, key):
        return self._values.get(key)

    def _write(self, key, value):
        if value is None:
            self._values.pop(key, None)
        else:
            self._values[key] = value


class FileIdentityStore(IdentityStore):
    """
    Stores the mapping as a JSON object in a single file

    The file is re-read on every access so several store instances on
    the same path stay consistent.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Identity file {self.path} is corrupted, starting empty")
            return {}
        return data if isinstance(data, dict) else {}

    def _read(self, key):
        with self._lock:
            return self._load().get(key)

    def _write(self, key, value):
        with self._lock:
            data = self._load()
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def default_identity_store(settings: Optional[Settings] = None) -> FileIdentityStore:
    """File store at the configured identity_store_path"""
    settings = settings or get_settings()
    return FileIdentityStore(settings.identity_store_path)
