from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import redis

ACCESS_TOKEN = "accessToken"
REFRESH_TOKEN = "refreshToken"


class TokenStore(ABC):
    """Synchronous key-value store for the two session tokens."""

    @abstractmethod
    def get(self, name: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, name: str, value: str) -> None: ...

    @abstractmethod
    def remove(self, name: str) -> None: ...


class MemoryTokenStore(TokenStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, name: str) -> Optional[str]:
        return self._data.get(name)

    def set(self, name: str, value: str) -> None:
        self._data[name] = value

    def remove(self, name: str) -> None:
        self._data.pop(name, None)


class FileTokenStore(TokenStore):
    """Tokens kept in a JSON file so they survive restarts."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        data = json.loads(raw)
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".tokens-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, name: str) -> Optional[str]:
        return self._read().get(name)

    def set(self, name: str, value: str) -> None:
        data = self._read()
        data[name] = value
        self._write(data)

    def remove(self, name: str) -> None:
        data = self._read()
        if name in data:
            del data[name]
            self._write(data)


class RedisTokenStore(TokenStore):
    def __init__(self, host: str = "localhost", port: int = 6379, prefix: str = "invoicedesk:", client: Optional[redis.Redis] = None):
        self.r = client if client is not None else redis.Redis(host=host, port=port, decode_responses=True)
        self.prefix = prefix

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def get(self, name: str) -> Optional[str]:
        value = self.r.get(self._key(name))
        return value or None

    def set(self, name: str, value: str) -> None:
        self.r.set(self._key(name), value)

    def remove(self, name: str) -> None:
        self.r.delete(self._key(name))


def build_token_store(settings) -> TokenStore:
    kind = (settings.TOKEN_STORE or "").lower()
    if kind == "memory":
        return MemoryTokenStore()
    if kind == "file":
        return FileTokenStore(settings.TOKEN_FILE)
    if kind == "redis":
        return RedisTokenStore(settings.REDIS_HOST, settings.REDIS_PORT, settings.REDIS_KEY_PREFIX)
    raise ValueError(f"Unknown TOKEN_STORE: {settings.TOKEN_STORE!r}")
