"""Optimistic concurrency tokens."""
from __future__ import annotations

import base64
import binascii
import hmac
import secrets

TOKEN_BYTES = 8


def new_concurrency_key() -> bytes:
    """Return a fresh random token; every write to an entity row stores a new one."""

    return secrets.token_bytes(TOKEN_BYTES)


def check_token(stored: bytes | None, supplied: bytes | None) -> bool:
    """Byte-exact comparison of the stored and caller-supplied tokens."""

    if stored is None or supplied is None:
        return False
    return hmac.compare_digest(bytes(stored), bytes(supplied))


def encode_token(token: bytes) -> str:
    return base64.b64encode(token).decode("ascii")


def decode_token(value: str) -> bytes:
    """Decode a wire token, raising ``ValueError`` for malformed input."""

    try:
        raw = base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError("concurrency key is not valid base64") from exc
    if len(raw) != TOKEN_BYTES:
        raise ValueError(f"concurrency key must decode to {TOKEN_BYTES} bytes")
    return raw


__all__ = ["TOKEN_BYTES", "check_token", "decode_token", "encode_token", "new_concurrency_key"]
