from __future__ import annotations

import os
from pathlib import Path

from cryptography.fernet import Fernet

from usage_monitor.core.config.settings import get_settings


def _load_or_create_key(path: Path) -> bytes:
    if path.is_file():
        return path.read_bytes().strip()
    path.parent.mkdir(parents=True, exist_ok=True)
    key = Fernet.generate_key()
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(key)
    return key


class TokenEncryptor:
    def __init__(self, key: bytes | None = None, *, key_file: Path | None = None) -> None:
        if key is None:
            key = _load_or_create_key(key_file or get_settings().encryption_key_file)
        self._fernet = Fernet(key)

    def encrypt(self, token: str) -> bytes:
        return self._fernet.encrypt(token.encode("utf-8"))

    def decrypt(self, encrypted: bytes) -> str:
        return self._fernet.decrypt(encrypted).decode("utf-8")
