# documents/adapters/encryption.py
from __future__ import annotations

import logging
from typing import Iterable, List

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

# Content written before encryption was switched on is still readable.
_PLAIN_MAGIC = (b"\x89PNG\r\n\x1a\n", b"\xff\xd8\xff", b"%PDF-")


def _is_plain(data: bytes) -> bool:
    return any(data.startswith(m) for m in _PLAIN_MAGIC)


class KeyRing:
    """
    Fernet key ring:
    - first entry is the current key (used for ENCRYPT),
    - remaining entries are legacy keys (used only for DECRYPT).
    Keys are base64 strings as produced by ``Fernet.generate_key()``.
    An empty ring stores plaintext.
    """

    def __init__(self, keys: Iterable[str | bytes] = ()) -> None:
        self._ferns: List[Fernet] = []
        for k in keys:
            raw = k.encode("ascii") if isinstance(k, str) else bytes(k)
            try:
                self._ferns.append(Fernet(raw))
            except ValueError as ex:
                # A malformed current key must not silently downgrade to plaintext.
                if not self._ferns:
                    raise ValueError("Current storage encryption key is malformed") from ex
                logger.warning("Ignoring malformed legacy storage key: %s", ex)

    @property
    def enabled(self) -> bool:
        return bool(self._ferns)

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt ``data`` with the CURRENT key; passthrough without keys."""
        if not self._ferns:
            return data
        return self._ferns[0].encrypt(data)

    def decrypt(self, token: bytes) -> bytes:
        """
        Try the current key first, then legacy keys.
        If all fail, accept legacy plain PNG/JPEG/PDF content as-is.
        Otherwise raise InvalidToken.
        """
        if not self._ferns:
            return token
        for f in self._ferns:
            try:
                return f.decrypt(token)
            except InvalidToken:
                continue
        if _is_plain(token):
            return token
        raise InvalidToken("Unable to decrypt stored blob")
