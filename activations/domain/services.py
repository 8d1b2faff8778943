# activations/domain/services.py
from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta

CODE_BYTES = 24


def generate_code(nbytes: int = CODE_BYTES) -> str:
    """URL-safe random code; 24 bytes give a 32 character string."""
    return secrets.token_urlsafe(nbytes)


def code_digest(code: str) -> str:
    """
    Hex SHA-256 of a code. Stores persist and look up this value only; the
    plaintext is handed out once, by issue().
    No salt: lookups need a deterministic key, and codes carry 192 random bits.
    """
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def validity_cutoff(now: datetime, expiry_seconds: int) -> datetime:
    """
    Records created at or before the cutoff are expired.
    A record is valid iff created_at > now - expiry.
    """
    return now - timedelta(seconds=expiry_seconds)
