# =============================================================================
# utils/secret_log.py - Encrypted append-only log of generated passwords
# =============================================================================

import base64
import binascii
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

KEY_LENGTH = 32
NONCE_LENGTH = 12


class SecretLogError(Exception):
    """A password log line that cannot be decoded or decrypted with the given key"""

    def __init__(self, path: Path, line_number: int, reason: str):
        super().__init__(f"{path} line {line_number}: {reason}")
        self.line_number = line_number


def generate_key() -> str:
    """Fresh base64-encoded 256-bit key for SECRET_LOG_KEY"""
    return base64.b64encode(AESGCM.generate_key(bit_length=KEY_LENGTH * 8)).decode("ascii")


def decode_key(key_b64: Optional[str]) -> Optional[bytes]:
    """Decode a base64 key, returning None unless it is exactly 32 bytes"""
    if not key_b64:
        return None
    try:
        key = base64.b64decode(key_b64.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None
    return key if len(key) == KEY_LENGTH else None


class EncryptedSecretLog:
    """
    Appends one AES-256-GCM encrypted line per generated password.

    Each line is base64(nonce + ciphertext) of
    '<timestamp>\\t<identifier>\\t<secret>'.
    """

    def __init__(self, path: str, key: bytes):
        if len(key) != KEY_LENGTH:
            raise ValueError(f"Secret log key must be {KEY_LENGTH} bytes")
        self.path = Path(path)
        self._aead = AESGCM(key)
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, path: str, key_b64: Optional[str]) -> Optional["EncryptedSecretLog"]:
        """Build a log from config, or None when the key is absent or invalid"""
        key = decode_key(key_b64)
        if key is None:
            if key_b64:
                logging.getLogger(cls.__name__).warning(
                    "SECRET_LOG_KEY is not a base64 encoded 32-byte key - password logging disabled"
                )
            return None
        return cls(path, key)

    def record(self, identifier: str, secret: str) -> None:
        plaintext = f"{datetime.now().isoformat(timespec='seconds')}\t{identifier}\t{secret}"
        nonce = os.urandom(NONCE_LENGTH)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="ascii") as handle:
            handle.write(base64.b64encode(nonce + ciphertext).decode("ascii") + "\n")

        self.logger.debug(f"Recorded generated password for {identifier}")

    def read_entries(self) -> List[Tuple[str, str, str]]:
        """
        Decrypt every line into (timestamp, identifier, secret).

        Raises:
            SecretLogError: for the first line that is not valid base64, fails
                authentication (wrong key or tampering) or is malformed
        """
        entries = []
        if not self.path.exists():
            return entries

        with open(self.path, "r", encoding="ascii", errors="replace") as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                entries.append(self._decrypt_line(line, line_number))
        return entries

    def _decrypt_line(self, line: str, line_number: int) -> Tuple[str, str, str]:
        try:
            blob = base64.b64decode(line, validate=True)
        except (binascii.Error, ValueError):
            raise SecretLogError(self.path, line_number, "not valid base64")

        try:
            plaintext = self._aead.decrypt(blob[:NONCE_LENGTH], blob[NONCE_LENGTH:], None)
        except (InvalidTag, ValueError):
            raise SecretLogError(self.path, line_number, "decryption failed (wrong key or corrupted entry)")

        fields = plaintext.decode("utf-8", errors="replace").split("\t", 2)
        if len(fields) != 3:
            raise SecretLogError(self.path, line_number, "unexpected entry format")
        return fields[0], fields[1], fields[2]
