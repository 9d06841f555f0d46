"""Hashing helpers that turn credentials into Merkle leaves."""

from __future__ import annotations

import hashlib
import unicodedata

from .constants import CREDENTIAL_SALT, FIELD_MODULUS, HASH_SIZE, LEAF_TAG, NODE_TAG
from .errors import InvalidInputError


def _digest(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def _to_field(digest: bytes) -> bytes:
    value = int.from_bytes(digest, "big") % FIELD_MODULUS
    return value.to_bytes(HASH_SIZE, "big")


def normalize_credential(credential: str) -> str:
    """Fold a credential into its canonical text form.

    Compatibility characters are composed (NFKC), surrounding whitespace is
    removed and the result is case folded, so ``" Alice@Example.COM"`` and
    ``"alice@example.com"`` map to the same leaf.
    """

    return unicodedata.normalize("NFKC", credential).strip().casefold()


def _as_text(credential: str | bytes) -> str:
    if isinstance(credential, (bytes, bytearray)):
        try:
            return bytes(credential).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidInputError("Credential is not valid UTF-8") from exc
    if isinstance(credential, str):
        return credential
    raise InvalidInputError(f"Unsupported credential type: {type(credential).__name__}")


class CredentialHasher:
    """Deterministic credential to leaf mapping.

    The leaf is ``SHA3(LEAF_TAG || SHA3(credential) || salt)`` reduced into
    the BN254 scalar field. The salt is public and fixed, so the mapping is
    stable across processes.
    """

    def __init__(self, *, normalize: bool = True, salt: bytes = CREDENTIAL_SALT) -> None:
        self.normalize = normalize
        self.salt = bytes(salt)

    def prepare(self, credential: str | bytes) -> bytes:
        text = _as_text(credential)
        if self.normalize:
            text = normalize_credential(text)
        if not text:
            raise InvalidInputError("Credential must not be empty")
        try:
            return text.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise InvalidInputError("Credential cannot be encoded as UTF-8") from exc

    def hash(self, credential: str | bytes) -> bytes:
        material = self.prepare(credential)
        inner = _digest(material)
        return _to_field(_digest(LEAF_TAG + inner + self.salt))


_DEFAULT_HASHER = CredentialHasher()


def hash_credential(credential: str | bytes) -> bytes:
    """Hash a credential with the default (normalizing) hasher."""

    return _DEFAULT_HASHER.hash(credential)


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Combine two child hashes under canonical ordering (smaller first)."""

    low, high = (a, b) if a <= b else (b, a)
    return _to_field(_digest(NODE_TAG + low + high))


def to_hex(value: bytes) -> str:
    return "0x" + value.hex()


def from_hex(value: str) -> bytes:
    """Decode a fixed-width hash from hex, with or without ``0x``."""

    if not isinstance(value, str):
        raise ValueError("Hash must be a hex string")
    text = value[2:] if value[:2].lower() == "0x" else value
    raw = bytes.fromhex(text)
    if len(raw) != HASH_SIZE:
        raise ValueError(f"Hash must be {HASH_SIZE} bytes, got {len(raw)}")
    return raw


def short_hex(value: bytes) -> str:
    return value.hex()[:12]


__all__ = [
    "CredentialHasher",
    "from_hex",
    "hash_credential",
    "hash_pair",
    "normalize_credential",
    "short_hex",
    "to_hex",
]
