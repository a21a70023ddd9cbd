"""
Session Storage
===============
Durable persistence for the last known token and user.

The host application supplies a ``StoragePort``; two implementations ship
with the SDK:

    - ``InMemoryStorage``    process-local, for tests and short-lived hosts
    - ``FileSystemStorage``  JSON file under ``~/.trainingpeaks-sdk``

Both go through the serializers, so whatever is stored round-trips with
its expiry instant intact.  Stored tokens are returned as-is, expired or
not: token lifecycle belongs to the repository.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..errors import StorageError
from .models import AuthToken, User, is_token_expired
from .serialization import (
    deserialize_token,
    deserialize_user,
    serialize_token,
    serialize_user,
)

logger = logging.getLogger(__name__)

_DEFAULT_STORAGE_DIR = ".trainingpeaks-sdk"
_DATA_FILE_NAME = "auth-session.json"


class StoragePort(ABC):
    """Contract for durable session state."""

    @abstractmethod
    async def get_token(self) -> Optional[AuthToken]:
        ...

    @abstractmethod
    async def get_user(self) -> Optional[User]:
        ...

    @abstractmethod
    async def store_token(self, token: AuthToken) -> None:
        ...

    @abstractmethod
    async def store_user(self, user: User) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    async def get_user_id(self) -> Optional[str]:
        user = await self.get_user()
        return user.id if user else None

    async def has_valid_auth(self) -> bool:
        token = await self.get_token()
        return token is not None and not is_token_expired(token)


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryStorage(StoragePort):
    """Keeps serialized payloads in memory (not shared between instances)."""

    def __init__(self):
        self._token: Optional[Dict[str, Any]] = None
        self._user: Optional[Dict[str, Any]] = None

    async def get_token(self) -> Optional[AuthToken]:
        return deserialize_token(self._token) if self._token else None

    async def get_user(self) -> Optional[User]:
        return deserialize_user(self._user) if self._user else None

    async def store_token(self, token: AuthToken) -> None:
        self._token = serialize_token(token)

    async def store_user(self, user: User) -> None:
        self._user = serialize_user(user)

    async def clear(self) -> None:
        self._token = None
        self._user = None


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------

class FileSystemStorage(StoragePort):
    """Persists the session as a single JSON document.

    File layout::

        {"token": {...} | null, "user": {...} | null, "lastUpdated": "<iso>"}
    """

    def __init__(self, storage_dir: Optional[Union[str, Path]] = None):
        if storage_dir is None:
            storage_dir = Path.home() / _DEFAULT_STORAGE_DIR
        self.storage_dir = Path(storage_dir)
        self._lock = asyncio.Lock()

    @property
    def data_file(self) -> Path:
        return self.storage_dir / _DATA_FILE_NAME

    # ── StoragePort ───────────────────────────────────────────────

    async def get_token(self) -> Optional[AuthToken]:
        data = await self._run(self._read)
        raw = data.get("token")
        return deserialize_token(raw) if raw else None

    async def get_user(self) -> Optional[User]:
        data = await self._run(self._read)
        raw = data.get("user")
        return deserialize_user(raw) if raw else None

    async def store_token(self, token: AuthToken) -> None:
        await self._update("token", serialize_token(token))

    async def store_user(self, user: User) -> None:
        await self._update("user", serialize_user(user))

    async def clear(self) -> None:
        async with self._lock:
            await self._run(self._remove)
        logger.info(f"[STORAGE] Cleared session file {self.data_file}")

    async def exists(self) -> bool:
        return await self._run(self.data_file.exists)

    # ── Internal ──────────────────────────────────────────────────

    async def _update(self, key: str, value: Dict[str, Any]) -> None:
        async with self._lock:
            data = await self._run(self._read)
            data[key] = value
            await self._run(self._write, data)

    @staticmethod
    async def _run(func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _read(self) -> Dict[str, Any]:
        path = self.data_file
        if not path.exists():
            return {"token": None, "user": None}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise StorageError(
                f"Failed to read stored data from {path}: {exc}",
                context={"path": str(path)},
                original_error=exc,
            ) from exc
        if not isinstance(data, dict):
            raise StorageError(
                f"Stored data in {path} is not a JSON object",
                context={"path": str(path)},
            )
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        path = self.data_file
        payload = dict(data)
        payload["lastUpdated"] = datetime.now(timezone.utc).isoformat()
        tmp_path = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StorageError(
                f"Failed to write data to {path}: {exc}",
                context={"path": str(path)},
                original_error=exc,
            ) from exc

    def _remove(self) -> None:
        try:
            self.data_file.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(
                f"Failed to clear stored data: {exc}",
                context={"path": str(self.data_file)},
                original_error=exc,
            ) from exc
