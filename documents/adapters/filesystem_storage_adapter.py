"""Filesystem implementation of StorageAdapter.

Stores blobs under the configured root, sharded by the first two
characters of a random id. Optional at-rest encryption via a Fernet
key ring.
"""

from __future__ import annotations
from typing import Optional
from pathlib import Path
import logging
import os
import re
import uuid

from documents.adapters.encryption import KeyRing
from documents.adapters.storage_adapter import StorageAdapter

logger = logging.getLogger(__name__)

_REF_RE = re.compile(r"^[0-9a-f]{32}(\.[A-Za-z0-9]{1,8})?$")


class FilesystemStorageAdapter(StorageAdapter):
    """Local filesystem implementation of StorageAdapter."""

    def __init__(self, root_path: str | Path, *, keyring: Optional[KeyRing] = None):
        """
        Initialize filesystem storage.

        Args:
            root_path: Root directory for blob storage
            keyring: Encryption keys; None or empty stores plaintext
        """
        self._root = Path(root_path)
        self._root.mkdir(parents=True, exist_ok=True)
        self._keys = keyring or KeyRing()

    def _path(self, ref: str) -> Path:
        if not _REF_RE.match(ref or ""):
            raise FileNotFoundError(f"Invalid storage reference: {ref!r}")
        return self._root / ref[:2] / ref

    def store(self, data: bytes, *, suffix: str = "") -> str:
        """Write bytes atomically and return their reference."""
        suffix = suffix if suffix and re.fullmatch(r"\.[A-Za-z0-9]{1,8}", suffix) else ""
        ref = f"{uuid.uuid4().hex}{suffix}"
        target = self._path(ref)
        target.parent.mkdir(parents=True, exist_ok=True)

        tmp = target.with_name(target.name + ".tmp")
        tmp.write_bytes(self._keys.encrypt(bytes(data)))
        os.replace(tmp, target)
        logger.debug("Stored %d bytes as %s", len(data), ref)
        return ref

    def fetch(self, ref: str) -> bytes:
        """Read and decrypt stored bytes."""
        path = self._path(ref)
        if not path.is_file():
            raise FileNotFoundError(f"No stored content for {ref!r}")
        return self._keys.decrypt(path.read_bytes())

    def delete(self, ref: str) -> bool:
        """Remove stored bytes."""
        try:
            path = self._path(ref)
        except FileNotFoundError:
            return False
        if not path.is_file():
            return False
        path.unlink()
        return True

    def exists(self, ref: str) -> bool:
        """Check if file exists."""
        try:
            return self._path(ref).is_file()
        except FileNotFoundError:
            return False
